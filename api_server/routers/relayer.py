# api_server/routers/relayer.py
"""
Client-side FHE calls served by the simulated gateway, so HTTP clients can
produce encrypted inputs and decryption claims without the real SDK.
Only available when the ledger's collaborator is a SoftwareSimulatedFHE.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from fhe_gateway.abi import from_hex, to_hex
from fhe_gateway.collaborator import SoftwareSimulatedFHE, FHEError
from ledger_core.ledger import ConferenceLedger

from ..core.dependencies import get_ledger
from ..core.security import verify_api_key
from ..models import (
    RelayerEncryptRequest, RelayerEncryptResponse,
    RelayerPublicDecryptRequest, RelayerPublicDecryptResponse,
)

router = APIRouter(
    prefix="/relayer",
    tags=["Simulated FHE Relayer"],
    dependencies=[Depends(verify_api_key)]
)

def get_simulated_gateway(ledger: ConferenceLedger = Depends(get_ledger)) -> SoftwareSimulatedFHE:
    if not isinstance(ledger.fhe, SoftwareSimulatedFHE):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Relayer endpoints require the simulated FHE gateway.")
    return ledger.fhe

@router.post("/encrypt", response_model=RelayerEncryptResponse, summary="Encrypt a stream key")
async def api_relayer_encrypt(request_data: RelayerEncryptRequest,
                              gateway: SoftwareSimulatedFHE = Depends(get_simulated_gateway)):
    ciphertext = gateway.encrypt(request_data.value)
    return RelayerEncryptResponse(handle_hex=to_hex(ciphertext.handle), proof_hex=to_hex(ciphertext.proof))

@router.post("/public-decrypt", response_model=RelayerPublicDecryptResponse,
             summary="Publicly decrypt handles and return a decryption claim")
async def api_relayer_public_decrypt(request_data: RelayerPublicDecryptRequest,
                                     gateway: SoftwareSimulatedFHE = Depends(get_simulated_gateway)):
    try:
        handles = [from_hex(h) for h in request_data.handles_hex]
        result = gateway.public_decrypt(handles)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Public decryption input error: {e}")
    except FHEError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Public decryption refused: {e}")
    return RelayerPublicDecryptResponse(
        clear_values={to_hex(h): v for h, v in result.clear_values.items()},
        clear_values_hex=to_hex(result.abi_encoded),
        proof_hex=to_hex(result.proof),
    )
