"""
The Conference record and its two one-way state machines.

Records are immutable: a transition returns a new record, and the stores
only ever replace a record with the result of a legal transition.
"""
from dataclasses import dataclass, replace, asdict
from enum import Enum
from typing import Any, Dict

from fhe_gateway.abi import to_hex, from_hex
from .errors import AlreadyDecrypted, AlreadyEnded

class ActivityState(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


class DecryptionState(str, Enum):
    PENDING = "pending"
    DECRYPTED = "decrypted"


@dataclass(frozen=True)
class Conference:
    """
    One conference and the encrypted stream key it carries.

    Attributes:
        conference_id: Unique identifier chosen by the creator.
        encrypted_value: Opaque handle of the encrypted stream key.
        creator: Account identity of the caller that created the record.
        start_time: Unix seconds at which the decryption window opens.
        end_time: Unix seconds at which the decryption window closes.
        created_at: Ledger clock reading at creation.
        name, description, participant_limit: Display metadata from the client.
        activity: ACTIVE until the creator ends the conference after end_time.
        decryption: PENDING until a decryption claim is accepted.
        decrypted_value: Clear stream key, 0 while PENDING.
    """
    conference_id: str
    encrypted_value: bytes
    creator: str
    start_time: int
    end_time: int
    created_at: int = 0
    name: str = ""
    description: str = ""
    participant_limit: int = 0
    activity: ActivityState = ActivityState.ACTIVE
    decryption: DecryptionState = DecryptionState.PENDING
    decrypted_value: int = 0

    @property
    def is_active(self) -> bool:
        return self.activity is ActivityState.ACTIVE

    @property
    def is_decrypted(self) -> bool:
        return self.decryption is DecryptionState.DECRYPTED

    def with_decryption(self, clear_value: int) -> "Conference":
        if self.is_decrypted:
            raise AlreadyDecrypted(self.conference_id)
        return replace(self, decryption=DecryptionState.DECRYPTED, decrypted_value=clear_value)

    def ended(self) -> "Conference":
        if not self.is_active:
            raise AlreadyEnded(self.conference_id)
        return replace(self, activity=ActivityState.ENDED)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation used by persistent stores."""
        data = asdict(self)
        data["encrypted_value"] = to_hex(self.encrypted_value)
        data["activity"] = self.activity.value
        data["decryption"] = self.decryption.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conference":
        return cls(
            conference_id=data["conference_id"],
            encrypted_value=from_hex(data["encrypted_value"]),
            creator=data["creator"],
            start_time=int(data["start_time"]),
            end_time=int(data["end_time"]),
            created_at=int(data.get("created_at", 0)),
            name=data.get("name", ""),
            description=data.get("description", ""),
            participant_limit=int(data.get("participant_limit", 0)),
            activity=ActivityState(data.get("activity", ActivityState.ACTIVE.value)),
            decryption=DecryptionState(data.get("decryption", DecryptionState.PENDING.value)),
            decrypted_value=int(data.get("decrypted_value", 0)),
        )
