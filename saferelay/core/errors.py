# /saferelay/core/errors.py
# Typed failures of the gas preparation pipeline. None of them are retried
# internally; the caller decides whether to abort or switch strategy.


class SafeRelayError(Exception):
    """Base class for every failure raised by saferelay."""


class NetworkFailure(SafeRelayError):
    """The node or relay backend was unreachable or answered with a non-success response."""


class FeeQueryFailed(NetworkFailure):
    """The fee-history query could not be completed or returned unusable data."""


class RelayRequestFailed(NetworkFailure):
    """The relay backend rejected a request or answered ``success: false``."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class InsufficientBalance(SafeRelayError):
    """The wallet cannot cover gas cost plus transferred value."""

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Not enough balance to send this value and pay for gas "
            f"(required={required}, available={available})"
        )
        self.required = required
        self.available = available


class GasEstimationFailed(SafeRelayError):
    """Direct estimation reverted, typically because the target is not deployed yet."""


class EstimationSimulationFailed(SafeRelayError):
    """simulateAndRevert did not revert with the accessor's payload."""


class DecodeFailure(SafeRelayError):
    """A payload was too short or malformed to decode."""
