# src/paywall/tokens.py - v1
"""Signed entitlement tokens (HS256 JWT via PyJWT).

A token binds a service, a run and the paying transaction, and expires
together with the entitlement that carries it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel

from paygent.core.errors import ConfigurationError, InvalidEntitlementTokenError
from paygent.core.models import Service, utcnow

ALGORITHM = "HS256"
TOKEN_TYPE = "entitlement"


class EntitlementClaims(BaseModel):
    """Verified contents of an entitlement token."""

    service: Service
    run_id: str
    tx_id: str
    issuer: str
    issued_at: datetime
    expires_at: datetime


class EntitlementSigner:
    """Mints and verifies entitlement tokens with a pre-shared secret."""

    def __init__(self, secret: str, issuer: str = "paygent", ttl_hours: float = 24.0) -> None:
        if not secret:
            raise ConfigurationError("PAYWALL_SIGNING_SECRET is required")
        self._secret = secret
        self._issuer = issuer
        self._ttl = timedelta(hours=ttl_hours)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def mint(
        self,
        service: Service,
        run_id: str,
        tx_id: str,
        issued_at: datetime | None = None,
    ) -> tuple[str, datetime]:
        """Sign a token for ``service``.

        Returns:
            ``(token, expires_at)``. Expiry is truncated to whole seconds
            so that it matches the token's ``exp`` claim exactly.
        """
        iat = (issued_at or utcnow()).replace(microsecond=0)
        expires_at = iat + self._ttl
        payload = {
            "service": service.value,
            "runId": run_id,
            "txId": tx_id,
            "type": TOKEN_TYPE,
            "iat": iat,
            "exp": expires_at,
            "iss": self._issuer,
            "sub": service.value,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return token, expires_at

    def verify(self, token: str) -> EntitlementClaims:
        """Check signature, issuer and expiry.

        Raises:
            InvalidEntitlementTokenError: Any check failed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "iss", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidEntitlementTokenError("Entitlement token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidEntitlementTokenError(f"Invalid entitlement token: {exc}") from exc

        if payload.get("type") != TOKEN_TYPE:
            raise InvalidEntitlementTokenError("Token is not an entitlement token")
        try:
            return EntitlementClaims(
                service=Service(payload["service"]),
                run_id=payload["runId"],
                tx_id=payload["txId"],
                issuer=payload["iss"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, ValueError) as exc:
            raise InvalidEntitlementTokenError(f"Malformed entitlement claims: {exc}") from exc
