# api_server/models.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List

from fhe_gateway.abi import to_hex
from ledger_core.conference import Conference
from ledger_core.events import LedgerEvent
from ledger_core.ledger import LedgerStats

# --- Common Base Models ---
class BaseRequest(BaseModel):
    """Base model for API requests, can be extended."""
    pass

class BaseResponse(BaseModel):
    """Base model for API responses, can be extended."""
    pass

# --- Conference Models ---
class CreateConferenceRequest(BaseRequest):
    """Request model for creating a conference with an encrypted stream key."""
    conference_id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier chosen by the creator.",
        examples=["conference-1760870400000"]
    )
    encrypted_value_hex: str = Field(
        ...,
        description="Hex encoded handle of the externally encrypted stream key (0x prefix optional)."
    )
    proof_hex: str = Field(..., description="Hex encoded input proof attesting the encrypted handle.")
    start_time: int = Field(..., ge=0, description="Unix seconds at which the decryption window opens.")
    end_time: int = Field(..., ge=0, description="Unix seconds at which the decryption window closes.")
    name: str = Field(default="", description="Display name of the conference room.")
    description: str = Field(default="")
    participant_limit: int = Field(default=0, ge=0)

class SubmitDecryptionRequest(BaseRequest):
    """A decryption claim: ABI-encoded clear values plus the proof from the relayer."""
    clear_values_hex: str = Field(..., description="Hex encoded ABI clear values (one 32-byte word).")
    proof_hex: str = Field(..., description="Hex encoded decryption proof.")

class ConferenceResponse(BaseResponse):
    conference_id: str
    encrypted_value_hex: str
    creator: str
    start_time: int
    end_time: int
    created_at: int
    name: str
    description: str
    participant_limit: int
    is_active: bool
    is_decrypted: bool
    decrypted_value: int

    @classmethod
    def from_record(cls, record: Conference) -> "ConferenceResponse":
        return cls(
            conference_id=record.conference_id,
            encrypted_value_hex=to_hex(record.encrypted_value),
            creator=record.creator,
            start_time=record.start_time,
            end_time=record.end_time,
            created_at=record.created_at,
            name=record.name,
            description=record.description,
            participant_limit=record.participant_limit,
            is_active=record.is_active,
            is_decrypted=record.is_decrypted,
            decrypted_value=record.decrypted_value,
        )

class ConferenceIdsResponse(BaseResponse):
    conference_ids: List[str] = Field(..., description="All conference ids in creation order.")

class ConferenceListResponse(BaseResponse):
    conferences: List[ConferenceResponse]

class EncryptedValueResponse(BaseResponse):
    conference_id: str
    encrypted_value_hex: str

class StatsResponse(BaseResponse):
    total: int
    active: int
    decrypted: int

    @classmethod
    def from_stats(cls, stats: LedgerStats) -> "StatsResponse":
        return cls(total=stats.total, active=stats.active, decrypted=stats.decrypted)

class EventResponse(BaseResponse):
    kind: str
    conference_id: str
    timestamp: int
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event: LedgerEvent) -> "EventResponse":
        return cls(kind=event.kind, conference_id=event.conference_id,
                   timestamp=event.timestamp, payload=dict(event.payload))

class AvailabilityResponse(BaseResponse):
    available: bool

# --- Relayer Models (simulated FHE gateway) ---
class RelayerEncryptRequest(BaseRequest):
    value: int = Field(..., ge=0, le=2**32 - 1, description="Stream key to encrypt (uint32).")

class RelayerEncryptResponse(BaseResponse):
    handle_hex: str
    proof_hex: str

class RelayerPublicDecryptRequest(BaseRequest):
    handles_hex: List[str] = Field(..., min_length=1)

class RelayerPublicDecryptResponse(BaseResponse):
    clear_values: Dict[str, int] = Field(..., description="Clear value per hex handle.")
    clear_values_hex: str = Field(..., description="ABI-encoded clear values, ready for a decryption claim.")
    proof_hex: str

class GeneralErrorResponse(BaseModel): # For documenting error responses in OpenAPI
    """A generic error response model."""
    detail: str = Field(..., description="A human-readable description of the error.")
