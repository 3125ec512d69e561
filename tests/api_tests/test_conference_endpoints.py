# tests/api_tests/test_conference_endpoints.py
from fastapi.testclient import TestClient

# Fixtures (api_client, clock, ledger, encrypted_key, payload_factory) come from conftest.py

OTHER_CALLER = "0x0000000000000000000000000000000000000001"

def decryption_claim(api_client: TestClient, conference_id: str) -> dict:
    """Fetches the handle and publicly decrypts it through the relayer, as a client would."""
    handle_response = api_client.get(f"/encrypted-values/{conference_id}")
    assert handle_response.status_code == 200, handle_response.text
    handle_hex = handle_response.json()["encrypted_value_hex"]

    decrypt_response = api_client.post("/relayer/public-decrypt", json={"handles_hex": [handle_hex]})
    assert decrypt_response.status_code == 200, decrypt_response.text
    body = decrypt_response.json()
    return {"clear_values_hex": body["clear_values_hex"], "proof_hex": body["proof_hex"]}


class TestConferenceEndpoints:

    def test_create_and_get(self, api_client: TestClient, payload_factory, encrypted_key):
        response = api_client.post("/conferences", json=payload_factory())
        assert response.status_code == 201, response.text
        created = response.json()
        assert created["is_active"] is True
        assert created["is_decrypted"] is False
        assert created["decrypted_value"] == 0
        assert created["encrypted_value_hex"] == encrypted_key["handle_hex"]

        fetched = api_client.get("/conferences/conference-1").json()
        assert fetched == created
        assert fetched["creator"] == "0x5a0b54d5dc17e0aadc383d2db43b0a0d3e029c4c"
        assert fetched["participant_limit"] == 8

    def test_create_duplicate_is_conflict(self, api_client: TestClient, payload_factory):
        assert api_client.post("/conferences", json=payload_factory(name="first")).status_code == 201
        response = api_client.post("/conferences", json=payload_factory(name="second"))
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]
        assert api_client.get("/conferences/conference-1").json()["name"] == "first"

    def test_create_inverted_window(self, api_client: TestClient, payload_factory):
        response = api_client.post("/conferences", json=payload_factory(start_time=100, end_time=50))
        assert response.status_code == 400
        assert api_client.get("/conferences/conference-1").status_code == 404

    def test_create_with_forged_proof(self, api_client: TestClient, payload_factory):
        response = api_client.post("/conferences", json=payload_factory(proof_hex="0x" + "00" * 32))
        assert response.status_code == 422
        assert api_client.get("/conferences").json()["conference_ids"] == []

    def test_create_with_bad_hex(self, api_client: TestClient, payload_factory):
        response = api_client.post("/conferences", json=payload_factory(encrypted_value_hex="0xzz"))
        assert response.status_code == 400
        assert "input error" in response.json()["detail"]

    def test_create_requires_caller_header(self, api_client: TestClient, payload_factory):
        response = api_client.post("/conferences", json=payload_factory(),
                                   headers={"X-Caller-Address": ""})
        assert response.status_code == 400
        assert "X-Caller-Address" in response.json()["detail"]

    def test_get_unknown_conference(self, api_client: TestClient):
        response = api_client.get("/conferences/does-not-exist")
        assert response.status_code == 404
        assert "does not exist" in response.json()["detail"]
        assert api_client.get("/encrypted-values/does-not-exist").status_code == 404

    def test_ids_matching_other_routes_stay_reachable(self, api_client: TestClient, payload_factory, clock):
        for conference_id in ("stats", "search", "team/alpha", "team/alpha/end"):
            assert api_client.post("/conferences", json=payload_factory(conference_id)).status_code == 201

        for conference_id in ("stats", "search", "team/alpha", "team/alpha/end"):
            response = api_client.get(f"/conferences/{conference_id}")
            assert response.status_code == 200, response.text
            assert response.json()["conference_id"] == conference_id
            handle = api_client.get(f"/encrypted-values/{conference_id}").json()
            assert handle["conference_id"] == conference_id

        claim = decryption_claim(api_client, "team/alpha")
        response = api_client.post("/conferences/team/alpha/decryption", json=claim)
        assert response.status_code == 200, response.text
        assert response.json()["conference_id"] == "team/alpha"

        clock.now = payload_factory()["end_time"] + 1
        ended = api_client.post("/conferences/team/alpha/end/end")
        assert ended.status_code == 200, ended.text
        assert ended.json()["conference_id"] == "team/alpha/end"
        assert api_client.get("/conferences/team/alpha").json()["is_active"] is True
        assert api_client.get("/conference-stats").json() == {"total": 4, "active": 3, "decrypted": 1}

    def test_decryption_flow(self, api_client: TestClient, payload_factory, clock):
        api_client.post("/conferences", json=payload_factory())
        clock.now += 60
        claim = decryption_claim(api_client, "conference-1")

        response = api_client.post("/conferences/conference-1/decryption", json=claim)
        assert response.status_code == 200, response.text
        assert response.json()["is_decrypted"] is True
        assert response.json()["decrypted_value"] == 31337

        second = api_client.post("/conferences/conference-1/decryption", json=claim)
        assert second.status_code == 409
        assert "already verified" in second.json()["detail"]
        assert api_client.get("/conferences/conference-1").json()["decrypted_value"] == 31337

    def test_decryption_unknown_conference(self, api_client: TestClient):
        response = api_client.post("/conferences/missing/decryption",
                                   json={"clear_values_hex": "0x" + "00" * 32, "proof_hex": "0x00"})
        assert response.status_code == 404

    def test_decryption_after_window(self, api_client: TestClient, payload_factory, clock):
        payload = payload_factory()
        api_client.post("/conferences", json=payload)
        claim = decryption_claim(api_client, "conference-1")
        clock.now = payload["end_time"] + 1
        response = api_client.post("/conferences/conference-1/decryption", json=claim)
        assert response.status_code == 409
        assert "window is closed" in response.json()["detail"]

    def test_decryption_with_tampered_value(self, api_client: TestClient, payload_factory):
        api_client.post("/conferences", json=payload_factory())
        claim = decryption_claim(api_client, "conference-1")
        claim["clear_values_hex"] = "0x" + "00" * 31 + "01"
        response = api_client.post("/conferences/conference-1/decryption", json=claim)
        assert response.status_code == 422
        assert api_client.get("/conferences/conference-1").json()["is_decrypted"] is False

    def test_end_rules(self, api_client: TestClient, payload_factory, clock):
        payload = payload_factory()
        api_client.post("/conferences", json=payload)

        forbidden = api_client.post("/conferences/conference-1/end", headers={"X-Caller-Address": OTHER_CALLER})
        assert forbidden.status_code == 403

        early = api_client.post("/conferences/conference-1/end")
        assert early.status_code == 409
        assert "end time" in early.json()["detail"]

        clock.now = payload["end_time"] + 1
        ended = api_client.post("/conferences/conference-1/end")
        assert ended.status_code == 200
        assert ended.json()["is_active"] is False
        assert api_client.get("/conferences/conference-1").json()["is_active"] is False

        again = api_client.post("/conferences/conference-1/end")
        assert again.status_code == 409

    def test_end_matches_creator_case_insensitively(self, api_client: TestClient, payload_factory, clock):
        payload = payload_factory()
        api_client.post("/conferences", json=payload)
        clock.now = payload["end_time"] + 1
        response = api_client.post("/conferences/conference-1/end",
                                   headers={"X-Caller-Address": "0x5A0B54D5DC17E0AADC383D2DB43B0A0D3E029C4C"})
        assert response.status_code == 200

    def test_listing_stats_and_search(self, api_client: TestClient, payload_factory, clock):
        for conference_id, name in (("c-3", "Board Sync"), ("c-1", "Design Review"), ("c-2", "board retro")):
            assert api_client.post("/conferences", json=payload_factory(conference_id, name=name)).status_code == 201

        claim = decryption_claim(api_client, "c-1")
        api_client.post("/conferences/c-1/decryption", json=claim)
        clock.now = payload_factory()["end_time"] + 1
        api_client.post("/conferences/c-3/end")

        assert api_client.get("/conferences").json()["conference_ids"] == ["c-3", "c-1", "c-2"]
        assert api_client.get("/conference-stats").json() == {"total": 3, "active": 2, "decrypted": 1}

        found = api_client.get("/conference-search", params={"term": "BOARD"}).json()["conferences"]
        assert [c["conference_id"] for c in found] == ["c-3", "c-2"]

    def test_events_and_availability(self, api_client: TestClient, payload_factory):
        api_client.post("/conferences", json=payload_factory())
        events = api_client.get("/events", params={"conference_id": "conference-1"}).json()
        assert [e["kind"] for e in events] == ["ConferenceCreated"]
        assert api_client.get("/system/availability").json() == {"available": True}


class TestAuthentication:

    def test_missing_api_key(self, api_client: TestClient):
        response = api_client.get("/conferences", headers={"X-API-Key": ""})
        assert response.status_code == 401

    def test_invalid_api_key(self, api_client: TestClient):
        response = api_client.get("/conferences", headers={"X-API-Key": "this_is_the_wrong_key_for_sure"})
        assert response.status_code == 401
        assert "Invalid API Key." in response.json()["detail"]

    def test_root_is_open(self, api_client: TestClient):
        response = api_client.get("http://testserver/")
        assert response.status_code == 200


class TestRelayerEndpoints:

    def test_public_decrypt_refuses_unpublished_handle(self, api_client: TestClient, encrypted_key):
        # The handle exists but no conference has marked it publicly decryptable
        response = api_client.post("/relayer/public-decrypt", json={"handles_hex": [encrypted_key["handle_hex"]]})
        assert response.status_code == 403

    def test_encrypt_rejects_out_of_range(self, api_client: TestClient):
        response = api_client.post("/relayer/encrypt", json={"value": 2**32})
        assert response.status_code == 422

    def test_relayer_unavailable_without_simulated_gateway(self):
        from api_server.core.security import API_KEY
        from api_server.main import create_app
        from fhe_gateway.collaborator import MockFHE
        from ledger_core.ledger import ConferenceLedger
        from ledger_core.record_store import InMemoryRecordStore

        app = create_app(ledger=ConferenceLedger(store=InMemoryRecordStore(), fhe=MockFHE()))
        with TestClient(app) as client:
            response = client.post("/api/v1/relayer/encrypt", json={"value": 1},
                                   headers={"X-API-Key": API_KEY})
        assert response.status_code == 503
