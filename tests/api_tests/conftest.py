# tests/api_tests/conftest.py
import pytest
from fastapi.testclient import TestClient
from typing import Generator

from api_server.core.security import API_KEY
from api_server.main import create_app
from fhe_gateway.collaborator import SoftwareSimulatedFHE
from ledger_core.ledger import ConferenceLedger
from ledger_core.record_store import InMemoryRecordStore

START = 1_700_000_000
END = START + 3600
CREATOR = "0x5a0b54d5dc17e0aadc383d2db43b0a0d3e029c4c"

class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)

@pytest.fixture
def ledger(clock: FakeClock) -> ConferenceLedger:
    return ConferenceLedger(store=InMemoryRecordStore(), fhe=SoftwareSimulatedFHE(), clock=clock)

@pytest.fixture
def api_client(ledger: ConferenceLedger) -> Generator[TestClient, None, None]:
    """
    Provides an authenticated client for an app serving the `ledger` fixture.
    Entering the client runs the app's lifespan.
    """
    headers = {
        "X-API-Key": API_KEY,
        "X-Caller-Address": CREATOR,
        "accept": "application/json",
    }
    with TestClient(create_app(ledger=ledger), base_url="http://testserver/api/v1", headers=headers) as client:
        yield client

@pytest.fixture
def encrypted_key(api_client: TestClient) -> dict:
    """Encrypts a stream key through the simulated relayer."""
    response = api_client.post("/relayer/encrypt", json={"value": 31337})
    assert response.status_code == 200, response.text
    return response.json()

@pytest.fixture
def payload_factory(encrypted_key: dict):
    """Returns a builder for create-conference payloads around `encrypted_key`."""
    def build(conference_id: str = "conference-1", **overrides) -> dict:
        payload = {
            "conference_id": conference_id,
            "encrypted_value_hex": encrypted_key["handle_hex"],
            "proof_hex": encrypted_key["proof_hex"],
            "start_time": START,
            "end_time": END,
            "name": "Quarterly Board Sync",
            "participant_limit": 8,
        }
        payload.update(overrides)
        return payload
    return build
