# tests/unit/core/test_errors.py - v1
"""Tests for core/errors.py - exception hierarchy."""

from __future__ import annotations

from paygent.core.errors import (
    AdapterError,
    ConfigurationError,
    EmbeddingError,
    InvalidTransitionError,
    PaygentError,
    PaymentError,
    PaymentVerificationError,
    ReasoningError,
    RunNotFoundError,
    UnknownServiceError,
)
from paygent.core.models import Phase


class TestHierarchy:
    def test_adapter_errors(self):
        for cls in (ReasoningError, EmbeddingError, PaymentError):
            assert issubclass(cls, AdapterError)
            assert issubclass(cls, PaygentError)

    def test_unknown_service_is_value_error(self):
        assert issubclass(UnknownServiceError, ValueError)

    def test_run_not_found_is_lookup_error(self):
        err = RunNotFoundError("r9")
        assert isinstance(err, LookupError)
        assert err.run_id == "r9"
        assert "r9" in str(err)

    def test_configuration_error_reexported(self):
        assert issubclass(ConfigurationError, Exception)


class TestMessages:
    def test_verification_error(self):
        err = PaymentVerificationError("0xabc", "pending")
        assert err.tx_hash == "0xabc"
        assert "pending" in str(err)

    def test_invalid_transition(self):
        err = InvalidTransitionError(Phase.THINK, Phase.BUILD)
        assert err.previous == Phase.THINK
        assert err.requested == Phase.BUILD
