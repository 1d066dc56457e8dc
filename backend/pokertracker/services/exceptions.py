"""
Domain exceptions for the ledger services.

Services raise these; the HTTP layer maps them to status codes in
``pokertracker.main`` so service code stays transport-agnostic.
"""


class LedgerError(Exception):
    """Base exception for ledger service errors."""
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LedgerError):
    """Referenced game, player, group or settlement does not exist."""
    status_code = 404


class InvalidStateError(LedgerError):
    """Operation not allowed in the current state or with the given input."""
    status_code = 400


class ConcurrentModificationError(LedgerError):
    """A game kept changing underneath a write after all retries."""
    status_code = 409


class SettlementPersistenceError(LedgerError):
    """Game is completed but its settlements could not be stored.

    The game stays in settlement status PENDING so a later call or the
    recovery task can generate them.
    """
    status_code = 503
