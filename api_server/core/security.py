# api_server/core/security.py
from fastapi import Security, HTTPException, status, Depends
from fastapi.security.api_key import APIKeyHeader
import os
from typing import Optional

# --- Define the expected API Key ---
# Read from SERVER_API_KEY, falling back to a development default.
SERVER_API_KEY_ENV_VAR = "SERVER_API_KEY"
DEFAULT_DEV_API_KEY = "dev_conference_ledger_api_key"

API_KEY = os.environ.get(SERVER_API_KEY_ENV_VAR, DEFAULT_DEV_API_KEY)

API_KEY_NAME = "X-API-Key" # Custom header name for clients to send the key
CALLER_HEADER_NAME = "X-Caller-Address" # Account identity of the caller (creator checks)

# auto_error=False allows us to give custom messages for missing vs. invalid
api_key_header_auth = APIKeyHeader(name=API_KEY_NAME, auto_error=False)
caller_header = APIKeyHeader(name=CALLER_HEADER_NAME, auto_error=False)

async def get_api_key(api_key_header: Optional[str] = Security(api_key_header_auth)):
    """
    Dependency to validate the API key from the X-API-Key header.
    Compares the provided header against the server's expected API_KEY.
    """
    if api_key_header is None: # Header was missing
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated: X-API-Key header missing.",
        )
    if api_key_header == API_KEY:
        return api_key_header
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API Key.",
    )

async def verify_api_key(api_key: str = Depends(get_api_key)):
    """Route-level guard; get_api_key raises when authentication fails."""
    return True

async def get_caller_address(caller: Optional[str] = Security(caller_header)) -> str:
    """
    Dependency returning the caller identity used for creator checks.
    Addresses are compared case-insensitively, as account addresses are.
    """
    if caller is None or not caller.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{CALLER_HEADER_NAME} header missing.",
        )
    return caller.strip().lower()
