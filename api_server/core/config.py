# api_server/core/config.py
"""
Environment-driven settings for the ledger API and the factory that builds
the default ledger from them.
"""
import logging
import os

from fhe_gateway.abi import from_hex
from fhe_gateway.collaborator import SoftwareSimulatedFHE
from ledger_core.ledger import ConferenceLedger
from ledger_core.record_store import (
    InMemoryRecordStore, VaultRecordStore, RecordStoreInterface,
    DEFAULT_VAULT_KV_MOUNT_POINT, DEFAULT_RECORD_PATH_PREFIX,
)

logger = logging.getLogger(__name__)

# Environment variable names
STORE_BACKEND_ENV = "LEDGER_STORE_BACKEND"      # "memory" (default) or "vault"
VAULT_MOUNT_ENV = "LEDGER_VAULT_MOUNT"
VAULT_PREFIX_ENV = "LEDGER_VAULT_PREFIX"
FHE_GATEWAY_KEY_ENV = "FHE_GATEWAY_KEY_HEX"     # 32-byte hex; random per process if unset
LOG_LEVEL_ENV = "LEDGER_LOG_LEVEL"

STORE_BACKENDS = ("memory", "vault")

def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

def build_record_store() -> RecordStoreInterface:
    backend = os.environ.get(STORE_BACKEND_ENV, "memory").lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(f"{STORE_BACKEND_ENV} must be one of {STORE_BACKENDS}, got '{backend}'.")
    if backend == "vault":
        return VaultRecordStore(
            mount_point=os.environ.get(VAULT_MOUNT_ENV, DEFAULT_VAULT_KV_MOUNT_POINT),
            path_prefix=os.environ.get(VAULT_PREFIX_ENV, DEFAULT_RECORD_PATH_PREFIX),
        )
    return InMemoryRecordStore()

def build_fhe_gateway() -> SoftwareSimulatedFHE:
    key_hex = os.environ.get(FHE_GATEWAY_KEY_ENV)
    if key_hex:
        return SoftwareSimulatedFHE(gateway_key=from_hex(key_hex))
    logger.warning("%s not set; using a random gateway key for this process.", FHE_GATEWAY_KEY_ENV)
    return SoftwareSimulatedFHE()

def build_default_ledger() -> ConferenceLedger:
    store = build_record_store()
    logger.info("Conference ledger using %s", store.__class__.__name__)
    return ConferenceLedger(store=store, fhe=build_fhe_gateway())
