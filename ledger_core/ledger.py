"""
Module for the conference ledger: the record store operations together with
the access checks that gate each of them.

Every mutation runs under one lock and performs all of its checks before the
first write, so operations are serial and a rejected call leaves the store
exactly as it was. Events enter the history inside that lock, in commit
order; subscribers are notified once it is released.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from fhe_gateway.abi import decode_clear_value
from fhe_gateway.collaborator import FHECollaboratorInterface, FHEError
from .conference import Conference
from .errors import (
    AlreadyDecrypted, AlreadyExists, Forbidden, InvalidProof, InvalidWindow,
    ProofInvalid, StillActive, WindowClosed,
)
from .events import (
    CONFERENCE_CREATED, CONFERENCE_ENDED, DECRYPTION_VERIFIED,
    EventLog, LedgerEvent,
)
from .record_store import RecordStoreInterface

logger = logging.getLogger(__name__)

def unix_now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class LedgerStats:
    total: int
    active: int
    decrypted: int


class ConferenceLedger:
    """
    Holds conference records and enforces their lifecycle.

    Args:
        store: Where records live (in memory, Vault, ...).
        fhe: The external FHE collaborator that validates inputs and claims.
        clock: Returns the current time in unix seconds. Defaults to the wall clock.
        events: Event log receiving one event per committed transition.
    """
    def __init__(self,
                 store: RecordStoreInterface,
                 fhe: FHECollaboratorInterface,
                 clock: Optional[Callable[[], int]] = None,
                 events: Optional[EventLog] = None):
        if not isinstance(store, RecordStoreInterface):
            raise TypeError("store must be an instance of RecordStoreInterface.")
        if not isinstance(fhe, FHECollaboratorInterface):
            raise TypeError("fhe must be an instance of FHECollaboratorInterface.")
        self.store = store
        self.fhe = fhe
        self.clock = clock if clock is not None else unix_now
        self.events = events if events is not None else EventLog()
        self._lock = threading.Lock()

    # --- Mutation API ---
    def create(self,
               conference_id: str,
               encrypted_value: bytes,
               proof: bytes,
               start_time: int,
               end_time: int,
               creator: str,
               name: str = "",
               description: str = "",
               participant_limit: int = 0) -> Conference:
        """
        Creates a conference holding an encrypted stream key.

        Raises:
            AlreadyExists: If `conference_id` is taken.
            InvalidWindow: If start_time >= end_time or end_time is already past.
            InvalidProof: If the collaborator rejects (encrypted_value, proof).
            ValueError/TypeError: For malformed arguments.
        """
        _require_id(conference_id)
        if not isinstance(encrypted_value, bytes) or not encrypted_value:
            raise TypeError("encrypted_value must be non-empty bytes.")
        if not isinstance(proof, bytes):
            raise TypeError("proof must be bytes.")
        for label, value in (("start_time", start_time), ("end_time", end_time),
                             ("participant_limit", participant_limit)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{label} must be an integer.")
            if value < 0:
                raise ValueError(f"{label} must be non-negative.")
        if not isinstance(creator, str) or not creator:
            raise ValueError("creator must be a non-empty string.")

        with self._lock:
            if self.store.has(conference_id):
                raise AlreadyExists(conference_id)
            now = self.clock()
            if start_time >= end_time:
                raise InvalidWindow(conference_id, f"Invalid conference time window: start_time ({start_time}) must be before end_time ({end_time})")
            if end_time < now:
                raise InvalidWindow(conference_id, f"Invalid conference time window: end_time ({end_time}) is already in the past")
            try:
                handle = self.fhe.ingest_external(encrypted_value, proof)
            except FHEError as e:
                raise InvalidProof(conference_id, f"Invalid encrypted input proof for '{conference_id}': {e}")

            record = Conference(
                conference_id=conference_id,
                encrypted_value=handle,
                creator=creator,
                start_time=start_time,
                end_time=end_time,
                created_at=now,
                name=name,
                description=description,
                participant_limit=participant_limit,
            )
            # ACL grants first: a failure here must not leave a stored record behind
            self.fhe.allow_this(handle)
            self.fhe.mark_publicly_decryptable(handle)
            self.store.insert(record)
            event = LedgerEvent(CONFERENCE_CREATED, conference_id, now, {"creator": creator})
            self.events.record(event)

        self.events.notify(event)
        return record

    def submit_decryption(self,
                          conference_id: str,
                          clear_values_encoded: bytes,
                          proof: bytes) -> Conference:
        """
        Accepts a public decryption claim for the conference's stream key.

        The collaborator's proof check is what ties the clear value to the
        handle recorded at creation; the ledger only forwards that handle.

        Raises:
            NotFound, AlreadyDecrypted, WindowClosed, ProofInvalid.
        """
        _require_id(conference_id)
        if not isinstance(clear_values_encoded, bytes) or not isinstance(proof, bytes):
            raise TypeError("clear_values_encoded and proof must be bytes.")

        with self._lock:
            record = self.store.load(conference_id)
            if record.is_decrypted:
                raise AlreadyDecrypted(conference_id)
            now = self.clock()
            if now < record.start_time or now > record.end_time:
                raise WindowClosed(conference_id)
            try:
                self.fhe.verify_decryption_claim([record.encrypted_value], clear_values_encoded, proof)
            except FHEError as e:
                raise ProofInvalid(conference_id, f"Invalid decryption proof for '{conference_id}': {e}")
            try:
                clear_value = decode_clear_value(clear_values_encoded)
            except ValueError as e:
                raise ProofInvalid(conference_id, f"Undecodable clear value for '{conference_id}': {e}")

            updated = record.with_decryption(clear_value)
            self.store.replace(updated)
            event = LedgerEvent(DECRYPTION_VERIFIED, conference_id, now, {"decrypted_value": clear_value})
            self.events.record(event)

        self.events.notify(event)
        return updated

    def end(self, conference_id: str, caller: str) -> Conference:
        """
        Marks a conference as ended. Only the creator may do so, and only
        once end_time has passed.

        Raises:
            NotFound, Forbidden, StillActive, AlreadyEnded.
        """
        _require_id(conference_id)
        with self._lock:
            record = self.store.load(conference_id)
            if caller != record.creator:
                raise Forbidden(conference_id)
            now = self.clock()
            if now <= record.end_time:
                raise StillActive(conference_id)
            updated = record.ended()
            self.store.replace(updated)
            event = LedgerEvent(CONFERENCE_ENDED, conference_id, now, {"caller": caller})
            self.events.record(event)

        self.events.notify(event)
        return updated

    # --- Enumeration API ---
    def get(self, conference_id: str) -> Conference:
        _require_id(conference_id)
        return self.store.load(conference_id)

    def get_encrypted_value(self, conference_id: str) -> bytes:
        return self.get(conference_id).encrypted_value

    def list_ids(self) -> List[str]:
        return self.store.list_ids()

    def is_available(self) -> bool:
        try:
            return bool(self.fhe.is_available())
        except Exception as e:
            logger.warning("FHE availability check failed: %s", e)
            return False

    def stats(self) -> LedgerStats:
        records = self._all_records()
        return LedgerStats(
            total=len(records),
            active=sum(1 for r in records if r.is_active),
            decrypted=sum(1 for r in records if r.is_decrypted),
        )

    def search(self, term: str = "") -> List[Conference]:
        """Case-insensitive substring match on name or creator, in creation order."""
        needle = (term or "").lower()
        return [r for r in self._all_records()
                if needle in r.name.lower() or needle in r.creator.lower()]

    def _all_records(self) -> List[Conference]:
        return [self.store.load(cid) for cid in self.store.list_ids()]


def _require_id(conference_id: str) -> None:
    if not isinstance(conference_id, str):
        raise TypeError("conference_id must be a string.")
    if not conference_id:
        raise ValueError("conference_id must not be empty.")
