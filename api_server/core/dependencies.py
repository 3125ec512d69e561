# api_server/core/dependencies.py
from fastapi import HTTPException, Request, status

from ledger_core.ledger import ConferenceLedger

def get_ledger(request: Request) -> ConferenceLedger:
    """Returns the ledger the lifespan manager placed on app.state."""
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Conference ledger not available.")
    return ledger
