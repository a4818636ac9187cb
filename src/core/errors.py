# src/core/errors.py - v1
"""Exception taxonomy shared by the orchestrator, paywall and HTTP layer."""

from __future__ import annotations

from paygent.config.settings import ConfigurationError


class PaygentError(Exception):
    """Base class for domain errors."""


class AdapterError(PaygentError):
    """An external backend (reasoning, embedding, payment) failed."""


class ReasoningError(AdapterError):
    """Reasoning backend failed or returned an unusable answer."""


class EmbeddingError(AdapterError):
    """Embedding backend failed."""


class PaymentError(AdapterError):
    """Payment backend failed to execute a transfer."""


class PaymentVerificationError(PaygentError):
    """A payment transaction did not reach a confirmed state."""

    def __init__(self, tx_hash: str, status: str) -> None:
        self.tx_hash = tx_hash
        self.status = status
        super().__init__(f"Transaction {tx_hash or '<none>'} not confirmed (status: {status})")


class InvalidTransitionError(PaygentError):
    """Attempted a phase transition the state machine does not allow."""

    def __init__(self, previous: object, requested: object) -> None:
        self.previous = previous
        self.requested = requested
        super().__init__(f"Invalid phase transition: {previous} -> {requested}")


class InvalidEntitlementTokenError(PaygentError):
    """Entitlement token failed signature, issuer or expiry checks."""


class UnknownServiceError(PaygentError, ValueError):
    """Service name is not one of the paywalled services."""


class RunNotFoundError(PaygentError, LookupError):
    """No run with the given id exists."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class RunCancelledError(PaygentError):
    """Raised inside the orchestrator when a cancel request is observed."""


__all__ = [
    "AdapterError",
    "ConfigurationError",
    "EmbeddingError",
    "InvalidEntitlementTokenError",
    "InvalidTransitionError",
    "PaygentError",
    "PaymentError",
    "PaymentVerificationError",
    "ReasoningError",
    "RunCancelledError",
    "RunNotFoundError",
    "UnknownServiceError",
]
