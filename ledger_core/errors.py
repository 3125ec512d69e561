"""
Failure reasons for conference ledger operations.
Every error is terminal for the operation that raised it and leaves the
store untouched; callers decide whether to retry with corrected input.
"""

class LedgerError(Exception):
    """Base class for rejected ledger operations. `reason` is the user-facing string."""
    reason = "Ledger operation rejected"

    def __init__(self, conference_id: str, message: str = ""):
        self.conference_id = conference_id
        super().__init__(message or f"{self.reason}: '{conference_id}'")


class AlreadyExists(LedgerError):
    reason = "Conference already exists"


class NotFound(LedgerError):
    reason = "Conference does not exist"


class InvalidProof(LedgerError):
    """The collaborator rejected the encrypted input and its proof at creation."""
    reason = "Invalid encrypted input proof"


class ProofInvalid(LedgerError):
    """The collaborator rejected a decryption claim."""
    reason = "Invalid decryption proof"


class InvalidWindow(LedgerError):
    reason = "Invalid conference time window"


class WindowClosed(LedgerError):
    reason = "Conference time window is closed"


class AlreadyDecrypted(LedgerError):
    reason = "Data already verified"


class Forbidden(LedgerError):
    reason = "Only the creator can perform this operation"


class StillActive(LedgerError):
    reason = "Conference has not reached its end time"


class AlreadyEnded(LedgerError):
    reason = "Conference already ended"
