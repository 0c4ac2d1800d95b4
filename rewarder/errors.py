"""Exceptions raised by the bonus rewarder and its collaborators."""

from __future__ import annotations


class RewarderError(Exception):
    """Base class for all rewarder failures."""


class UnauthorizedError(RewarderError):
    """Raised when the caller is not allowed to invoke an entry point."""

    def __init__(self, message: str, caller: str = "") -> None:
        super().__init__(message)
        self.caller = caller


class NothingToClaimError(RewarderError):
    """Raised by an explicit claim when no bonus window qualifies."""

    def __init__(self, position_id: int) -> None:
        super().__init__(f"Nothing to claim for position {position_id}")
        self.position_id = position_id


class InvalidConfigurationError(RewarderError):
    """Raised when construction-time parameters violate an invariant."""


class ArithmeticOverflowError(RewarderError, OverflowError):
    """Raised when reward arithmetic leaves the uint256 range."""


class TransferFailedError(RewarderError):
    """Raised by a reward token when a transfer cannot fully complete."""

    def __init__(self, message: str, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
