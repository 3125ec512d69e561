# api_server/main.py
import os
import sys
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
from fastapi.middleware.cors import CORSMiddleware

# --- Add project root to sys.path so ledger_core / fhe_gateway import when
# the server is started from a checkout without installing the project ---
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ledger_core.ledger import ConferenceLedger
from .core.config import build_default_ledger, configure_logging
from .routers import conferences, relayer, system

logger = logging.getLogger(__name__)

def create_app(ledger: Optional[ConferenceLedger] = None) -> FastAPI:
    """
    Builds the API application.

    Args:
        ledger: Ledger to serve. When omitted, the lifespan manager builds one
                from environment configuration at startup.
    """
    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        if ledger is not None:
            app_instance.state.ledger = ledger
        else:
            configure_logging()
            logger.info("API Startup: building conference ledger from configuration...")
            app_instance.state.ledger = build_default_ledger()
        logger.info("API Startup: conference ledger ready (FHE available: %s).",
                    app_instance.state.ledger.is_available())

        yield # Application runs here

        logger.info("API Shutdown: %d conference(s) recorded.",
                    len(app_instance.state.ledger.list_ids()))

    app = FastAPI(
        title="Secure Conference Ledger API",
        description="Conference records holding FHE-encrypted stream keys, with time-window gated public decryption.",
        version="0.1.0",
        lifespan=lifespan
    )

    # --- CORS Middleware Configuration ---
    origins = [
        "http://localhost",
        "http://localhost:3000", # Web client dev server
        "http://127.0.0.1",
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],    # Includes X-API-Key and X-Caller-Address
    )

    app.include_router(conferences.router, prefix="/api/v1")
    app.include_router(system.router, prefix="/api/v1")
    app.include_router(relayer.router, prefix="/api/v1")

    @app.get("/", tags=["Root"])
    async def read_root():
        return {"message": "Welcome to the Secure Conference Ledger API!"}

    return app

app = create_app()

# To run this API server (from the project root):
# 1. Optionally set LEDGER_STORE_BACKEND=vault with VAULT_ADDR and VAULT_TOKEN.
# 2. Set SERVER_API_KEY (and FHE_GATEWAY_KEY_HEX to keep handles valid across restarts).
# 3. Execute: uvicorn api_server.main:app --reload

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api_server.main:app", host=os.environ.get("LEDGER_HOST", "127.0.0.1"),
                port=int(os.environ.get("LEDGER_PORT", "8000")))
