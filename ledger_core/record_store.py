"""
Persistence for conference records.

Two stores share one interface: an in-process store (the default for the
demo and tests) and a HashiCorp Vault KV v2 store, which keeps each record
at its own path plus an ordered index of ids for enumeration.
"""
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import hvac
from hvac.exceptions import InvalidPath, InvalidRequest, VaultError

from .conference import Conference
from .errors import AlreadyExists, NotFound

logger = logging.getLogger(__name__)

# Environment variable names
VAULT_ADDR_ENV = 'VAULT_ADDR'
VAULT_TOKEN_ENV = 'VAULT_TOKEN'

# Vault KV v2 mount point and path prefix for conference records
DEFAULT_VAULT_KV_MOUNT_POINT = 'secret' # Default for dev mode
DEFAULT_RECORD_PATH_PREFIX = 'conferences'


class RecordStoreInterface(ABC):
    """
    Abstract Base Class for conference record persistence.
    Implementations do not validate lifecycle rules; the ledger does that
    before calling `insert` or `replace`.
    """
    @abstractmethod
    def has(self, conference_id: str) -> bool:
        pass

    @abstractmethod
    def load(self, conference_id: str) -> Conference:
        """Returns the stored record. Raises NotFound for an unknown id."""

    @abstractmethod
    def insert(self, record: Conference) -> None:
        """Stores a new record and appends its id to the index. Raises AlreadyExists."""

    @abstractmethod
    def replace(self, record: Conference) -> None:
        """Overwrites an existing record. Raises NotFound."""

    @abstractmethod
    def list_ids(self) -> List[str]:
        """All ids ever inserted, in insertion order."""


class InMemoryRecordStore(RecordStoreInterface):
    """Process-local store. Thread-safe."""
    def __init__(self):
        self._records: Dict[str, Conference] = {}
        self._ids: List[str] = []
        self._lock = threading.Lock()

    def has(self, conference_id: str) -> bool:
        with self._lock:
            return conference_id in self._records

    def load(self, conference_id: str) -> Conference:
        with self._lock:
            record = self._records.get(conference_id)
        if record is None:
            raise NotFound(conference_id)
        return record

    def insert(self, record: Conference) -> None:
        with self._lock:
            if record.conference_id in self._records:
                raise AlreadyExists(record.conference_id)
            self._records[record.conference_id] = record
            self._ids.append(record.conference_id)

    def replace(self, record: Conference) -> None:
        with self._lock:
            if record.conference_id not in self._records:
                raise NotFound(record.conference_id)
            self._records[record.conference_id] = record

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._ids)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


def _get_vault_client() -> hvac.Client:
    """Initializes and returns an HVAC Vault client instance."""
    vault_addr = os.environ.get(VAULT_ADDR_ENV)
    vault_token = os.environ.get(VAULT_TOKEN_ENV)

    if not vault_addr or not vault_token:
        raise EnvironmentError(
            f"Vault address ('{VAULT_ADDR_ENV}') and token ('{VAULT_TOKEN_ENV}') "
            "must be set as environment variables."
        )

    client = hvac.Client(url=vault_addr, token=vault_token)
    if not client.is_authenticated():
        raise ConnectionError("Failed to authenticate with Vault. Check token and address.")
    return client


class VaultRecordStore(RecordStoreInterface):
    """
    Stores records in Vault KV v2.

    Layout under the mount point:
        <prefix>/records/<hex(utf-8 id)>   one secret per record
        <prefix>/index                      {"ids": [...]} in creation order

    Records are written with check-and-set 0 so a concurrent creator cannot
    overwrite an existing id. Vault failures surface as RuntimeError.
    """
    def __init__(self,
                 client: Optional[hvac.Client] = None,
                 mount_point: str = DEFAULT_VAULT_KV_MOUNT_POINT,
                 path_prefix: str = DEFAULT_RECORD_PATH_PREFIX):
        self.client = client if client is not None else _get_vault_client()
        self.mount_point = mount_point
        self.path_prefix = path_prefix.strip('/')
        self._index_lock = threading.Lock()

    def _record_path(self, conference_id: str) -> str:
        # Hex of the id keeps arbitrary strings path-safe
        return f'{self.path_prefix}/records/{conference_id.encode("utf-8").hex()}'

    def _index_path(self) -> str:
        return f'{self.path_prefix}/index'

    def _read(self, vault_path: str) -> Optional[dict]:
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                mount_point=self.mount_point,
                path=vault_path,
                raise_on_deleted_version=True
            )
        except InvalidPath:
            return None
        except VaultError as e:
            raise RuntimeError(f"Failed to read Vault path {vault_path}: {e}")
        if response is None or 'data' not in response or 'data' not in response['data']:
            return None
        return response['data']['data']

    def has(self, conference_id: str) -> bool:
        return self._read(self._record_path(conference_id)) is not None

    def load(self, conference_id: str) -> Conference:
        data = self._read(self._record_path(conference_id))
        if data is None:
            raise NotFound(conference_id)
        return Conference.from_dict(data)

    def insert(self, record: Conference) -> None:
        vault_path = self._record_path(record.conference_id)
        try:
            self.client.secrets.kv.v2.create_or_update_secret(
                mount_point=self.mount_point,
                path=vault_path,
                secret=record.to_dict(),
                cas=0
            )
        except InvalidRequest:
            # cas=0 rejects writes to a path that already holds a version
            raise AlreadyExists(record.conference_id)
        except VaultError as e:
            raise RuntimeError(f"Failed to store conference at {vault_path}: {e}")

        with self._index_lock:
            try:
                ids = self.list_ids()
                ids.append(record.conference_id)
                self.client.secrets.kv.v2.create_or_update_secret(
                    mount_point=self.mount_point,
                    path=self._index_path(),
                    secret={"ids": ids}
                )
            except (VaultError, RuntimeError) as e:
                # A record missing from the index must not stay behind
                self._discard(vault_path)
                raise RuntimeError(f"Failed to update conference index: {e}")
        logger.debug("Stored conference '%s' at %s/%s", record.conference_id, self.mount_point, vault_path)

    def _discard(self, vault_path: str) -> None:
        try:
            self.client.secrets.kv.v2.delete_metadata_and_all_versions(
                mount_point=self.mount_point,
                path=vault_path
            )
        except VaultError as e:
            logger.error("Could not roll back %s/%s after an index failure: %s", self.mount_point, vault_path, e)

    def replace(self, record: Conference) -> None:
        if not self.has(record.conference_id):
            raise NotFound(record.conference_id)
        vault_path = self._record_path(record.conference_id)
        try:
            self.client.secrets.kv.v2.create_or_update_secret(
                mount_point=self.mount_point,
                path=vault_path,
                secret=record.to_dict()
            )
        except VaultError as e:
            raise RuntimeError(f"Failed to update conference at {vault_path}: {e}")

    def list_ids(self) -> List[str]:
        data = self._read(self._index_path())
        if data is None:
            return []
        return list(data.get("ids", []))
