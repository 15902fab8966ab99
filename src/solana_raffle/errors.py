from __future__ import annotations

from typing import List, Optional, Tuple


class RaffleError(RuntimeError):
    """Base class for every rejected raffle operation."""

    def __init__(self, message: str, raffle_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.raffle_id = raffle_id


class InvalidInput(RaffleError):
    pass


class RaffleNotFound(InvalidInput):
    pass


class RaffleNotActive(RaffleError):
    pass


class CapacityExceeded(RaffleError):
    pass


class DuplicateEntryNotAllowed(RaffleError):
    pass


class PaymentMismatch(RaffleError):
    pass


class Overflow(RaffleError):
    pass


class NoParticipants(RaffleError):
    pass


class NotEnoughEntries(RaffleError):
    pass


class NotEligible(RaffleError):
    pass


class Unauthorized(RaffleError):
    pass


class AlreadyCompleted(RaffleError):
    pass


class InsufficientFunds(RaffleError):
    pass


class TransferFailed(RaffleError):
    def __init__(
        self,
        message: str,
        raffle_id: Optional[int] = None,
        unreconciled: Optional[List[Tuple[str, int]]] = None,
    ) -> None:
        super().__init__(message, raffle_id)
        # Transfers that were paid out and could not be reversed
        self.unreconciled = list(unreconciled or [])


class AuditMismatch(RaffleError):
    pass
