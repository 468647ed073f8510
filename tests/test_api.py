"""
Tests for the HTTP surface (FastAPI TestClient)

Verifies:
- GET /api/board reconciles and returns the 30 units
- POST /api/claims maps validation errors to 422 and partial claims to 409
- The 30th claim archives the Khatam, visible through GET /api/history
- A period change seen by the oracle resets the board on the next read
- Change events reach WebSocket subscribers
"""
from core.change_notifier import notifier
from core.exceptions import StoreUnavailable
from core.metadata_store import CycleMetadataStore
from conftest import claim_directly


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json() == {"status": "healthy", "subscribers": 0}


class TestBoardEndpoint:

    def test_first_load(self, client):
        res = client.get("/api/board")

        assert res.status_code == 200
        data = res.json()
        assert data["outcome"] == "INITIALIZED"
        assert data["period"] == "Rajab"
        assert data["cycle_count"] == 0
        assert data["claimed_count"] == 0
        assert data["total_units"] == 30
        assert data["board_state"] == "IN_PROGRESS"
        assert [u["unit_index"] for u in data["units"]] == list(range(1, 31))
        assert all(u["claimed"] is False for u in data["units"])

    def test_second_load_is_noop(self, client):
        client.get("/api/board")
        assert client.get("/api/board").json()["outcome"] == "NOOP"

    def test_period_change_resets(self, client, oracle):
        client.get("/api/board")
        client.post("/api/claims", json={"indices": list(range(1, 13)), "name": "Ali"})

        oracle.period = "Sha'ban"
        data = client.get("/api/board").json()

        assert data["outcome"] == "PERIOD_RESET"
        assert data["recorded_period"] == "Sha'ban"
        assert data["cycle_count"] == 0
        assert data["claimed_count"] == 0
        assert client.get("/api/history").json()["total_entries"] == 0

    def test_store_unavailable_is_503(self, client, monkeypatch):
        def broken(session):
            raise StoreUnavailable("cycle_metadata", "connection refused")

        monkeypatch.setattr(CycleMetadataStore, "read", staticmethod(broken))

        res = client.get("/api/board")

        assert res.status_code == 503


class TestClaimEndpoint:

    def test_claim(self, client):
        client.get("/api/board")

        res = client.post("/api/claims", json={"indices": [1, 2, 3], "name": "Ali"})

        assert res.status_code == 200
        data = res.json()
        assert data["claimed"] == [1, 2, 3]
        assert data["rejected"] == []
        assert data["board"]["claimed_count"] == 3
        assert data["board"]["progress"] == 10.0
        names = {u["unit_index"]: u["claimant_name"] for u in data["board"]["units"]}
        assert names[1] == names[2] == names[3] == "Ali"
        assert names[4] is None

    def test_no_selection_is_422(self, client):
        res = client.post("/api/claims", json={"indices": [], "name": "Ali"})
        assert res.status_code == 422

    def test_no_name_is_422(self, client):
        res = client.post("/api/claims", json={"indices": [1], "name": "  "})
        assert res.status_code == 422

    def test_already_taken_is_409(self, client):
        client.get("/api/board")
        client.post("/api/claims", json={"indices": [5], "name": "Ali"})

        res = client.post("/api/claims", json={"indices": [4, 5], "name": "Omar"})

        assert res.status_code == 409
        detail = res.json()["detail"]
        assert detail["claimed"] == [4]
        assert detail["rejected"] == [5]

        board = client.get("/api/board").json()
        names = {u["unit_index"]: u["claimant_name"] for u in board["units"]}
        assert names[4] == "Omar"
        assert names[5] == "Ali"

    def test_completion_rollover(self, client, session_factory):
        client.get("/api/board")
        session = session_factory()
        claim_directly(session, range(1, 30), "Ali")
        session.close()

        res = client.post("/api/claims", json={"indices": [30], "name": "Maryam"})

        assert res.status_code == 200
        board = res.json()["board"]
        assert board["outcome"] == "ROLLED_OVER"
        assert board["archived_cycle"] == 1
        assert board["cycle_count"] == 1
        assert board["recorded_period"] == "Rajab"
        assert board["claimed_count"] == 0

        history = client.get("/api/history").json()
        assert history["total_entries"] == 30
        assert history["periods"][0]["period_name"] == "Rajab"
        assert history["periods"][0]["cycles"][0]["cycle_number"] == 1
        entries = history["periods"][0]["cycles"][0]["entries"]
        assert [e["unit_index"] for e in entries] == list(range(1, 31))
        assert entries[-1]["claimant_name"] == "Maryam"


class TestAdminReset:

    def test_reset(self, client):
        client.get("/api/board")
        client.post("/api/claims", json={"indices": [1, 2], "name": "Ali"})

        res = client.post("/api/admin/reset")

        assert res.status_code == 200
        assert res.json()["outcome"] == "ADMIN_RESET"
        assert res.json()["claimed_count"] == 0

    def test_reset_before_first_load_is_409(self, client):
        assert client.post("/api/admin/reset").status_code == 409


class TestChangeEvents:

    def test_claim_publishes_unit_event(self, client):
        received = []
        handle = notifier.subscribe(received.append)
        try:
            client.get("/api/board")
            client.post("/api/claims", json={"indices": [3, 1], "name": "Ali"})
        finally:
            notifier.unsubscribe(handle)

        unit_events = [e for e in received if e.relation == "units"]
        assert unit_events[0].indices == (1, 3)
        assert unit_events[0].reason == "claim"

    def test_websocket_receives_events(self, client):
        with client.websocket_connect("/ws/board") as ws:
            assert ws.receive_json()["type"] == "subscribed"

            client.get("/api/board")
            client.post("/api/claims", json={"indices": [7], "name": "Ali"})

            events = [ws.receive_json(), ws.receive_json()]

        assert events[0] == {
            "type": "change",
            "relation": "cycle_metadata",
            "indices": None,
            "reason": "initialized",
        }
        assert events[1]["relation"] == "units"
        assert events[1]["indices"] == [7]

    def test_websocket_ignores_client_frames(self, client):
        client.get("/api/board")

        with client.websocket_connect("/ws/board") as ws:
            assert ws.receive_json()["type"] == "subscribed"
            ws.send_bytes(b"\x00")
            ws.send_text("ping")

            client.post("/api/claims", json={"indices": [12], "name": "Ali"})

            event = ws.receive_json()

        assert event["relation"] == "units"
        assert event["indices"] == [12]
