# api_server/routers/conferences.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from fhe_gateway.abi import from_hex, to_hex
from ledger_core import errors
from ledger_core.ledger import ConferenceLedger

from ..core.dependencies import get_ledger
from ..core.security import verify_api_key, get_caller_address
from ..models import (
    CreateConferenceRequest, SubmitDecryptionRequest,
    ConferenceResponse, ConferenceIdsResponse, ConferenceListResponse,
    EncryptedValueResponse, StatsResponse, GeneralErrorResponse,
)

logger = logging.getLogger(__name__)

# Ids may contain "/", so item routes use a path parameter and every
# other GET lives outside /conferences/ where no id can shadow it.
router = APIRouter(
    tags=["Conferences"],
    dependencies=[Depends(verify_api_key)]
)

ERROR_STATUS = {
    errors.NotFound: status.HTTP_404_NOT_FOUND,
    errors.AlreadyExists: status.HTTP_409_CONFLICT,
    errors.AlreadyDecrypted: status.HTTP_409_CONFLICT,
    errors.AlreadyEnded: status.HTTP_409_CONFLICT,
    errors.StillActive: status.HTTP_409_CONFLICT,
    errors.WindowClosed: status.HTTP_409_CONFLICT,
    errors.Forbidden: status.HTTP_403_FORBIDDEN,
    errors.InvalidProof: 422,
    errors.ProofInvalid: 422,
    errors.InvalidWindow: status.HTTP_400_BAD_REQUEST,
}

ERROR_RESPONSES = {
    400: {"model": GeneralErrorResponse, "description": "Malformed input or invalid time window"},
    403: {"model": GeneralErrorResponse, "description": "Caller is not the creator"},
    404: {"model": GeneralErrorResponse, "description": "Conference not found"},
    409: {"model": GeneralErrorResponse, "description": "Operation conflicts with the conference state"},
    422: {"model": GeneralErrorResponse, "description": "Proof rejected by the FHE collaborator"},
}

def handle_ledger_errors(e: Exception, operation_name: str):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, errors.LedgerError):
        raise HTTPException(status_code=ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST), detail=str(e))
    if isinstance(e, (ValueError, TypeError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{operation_name} input error: {e}")
    logger.exception("Unexpected error during %s", operation_name)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Unexpected error during {operation_name}: {e}")


@router.post(
    "/conferences",
    response_model=ConferenceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a conference",
    description="Stores a conference with its encrypted stream key. The key is validated by the FHE collaborator and marked publicly decryptable.",
    responses=ERROR_RESPONSES,
)
async def api_create_conference(request_data: CreateConferenceRequest,
                                caller: str = Depends(get_caller_address),
                                ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        record = ledger.create(
            conference_id=request_data.conference_id,
            encrypted_value=from_hex(request_data.encrypted_value_hex),
            proof=from_hex(request_data.proof_hex),
            start_time=request_data.start_time,
            end_time=request_data.end_time,
            creator=caller,
            name=request_data.name,
            description=request_data.description,
            participant_limit=request_data.participant_limit,
        )
        return ConferenceResponse.from_record(record)
    except Exception as e:
        handle_ledger_errors(e, "Conference Creation")

@router.get("/conferences", response_model=ConferenceIdsResponse, summary="List conference ids in creation order")
async def api_list_conference_ids(ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        return ConferenceIdsResponse(conference_ids=ledger.list_ids())
    except Exception as e:
        handle_ledger_errors(e, "Conference Listing")

@router.get("/conference-stats", response_model=StatsResponse, summary="Counts of total, active and decrypted conferences")
async def api_conference_stats(ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        return StatsResponse.from_stats(ledger.stats())
    except Exception as e:
        handle_ledger_errors(e, "Conference Statistics")

@router.get(
    "/conference-search",
    response_model=ConferenceListResponse,
    summary="Search conferences by name or creator",
)
async def api_search_conferences(term: str = Query(default="", description="Case-insensitive substring."),
                                 ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        return ConferenceListResponse(conferences=[ConferenceResponse.from_record(r) for r in ledger.search(term)])
    except Exception as e:
        handle_ledger_errors(e, "Conference Search")

@router.get("/conferences/{conference_id:path}", response_model=ConferenceResponse, responses=ERROR_RESPONSES,
            summary="Read one conference")
async def api_get_conference(conference_id: str, ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        return ConferenceResponse.from_record(ledger.get(conference_id))
    except Exception as e:
        handle_ledger_errors(e, "Conference Lookup")

@router.get("/encrypted-values/{conference_id:path}", response_model=EncryptedValueResponse,
            responses=ERROR_RESPONSES, summary="Read the encrypted stream key handle")
async def api_get_encrypted_value(conference_id: str, ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        handle = ledger.get_encrypted_value(conference_id)
        return EncryptedValueResponse(conference_id=conference_id, encrypted_value_hex=to_hex(handle))
    except Exception as e:
        handle_ledger_errors(e, "Encrypted Value Lookup")

@router.post(
    "/conferences/{conference_id:path}/decryption",
    response_model=ConferenceResponse,
    responses=ERROR_RESPONSES,
    summary="Submit a decryption claim",
    description="Accepts the ABI-encoded clear stream key with its decryption proof, once, while the conference window is open.",
)
async def api_submit_decryption(conference_id: str,
                                request_data: SubmitDecryptionRequest,
                                ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        record = ledger.submit_decryption(
            conference_id,
            from_hex(request_data.clear_values_hex),
            from_hex(request_data.proof_hex),
        )
        return ConferenceResponse.from_record(record)
    except Exception as e:
        handle_ledger_errors(e, "Decryption Submission")

@router.post("/conferences/{conference_id:path}/end", response_model=ConferenceResponse, responses=ERROR_RESPONSES,
             summary="End a conference (creator only, after end_time)")
async def api_end_conference(conference_id: str,
                             caller: str = Depends(get_caller_address),
                             ledger: ConferenceLedger = Depends(get_ledger)):
    try:
        return ConferenceResponse.from_record(ledger.end(conference_id, caller))
    except Exception as e:
        handle_ledger_errors(e, "Conference End")
