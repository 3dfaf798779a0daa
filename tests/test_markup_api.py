"""
Test the markup and cost record HTTP API
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.pricing_intelligence.api.dependencies import (
    get_cost_record_repository,
    get_current_user_id,
    get_markup_service,
    get_websocket_user_id,
)
from app.pricing_intelligence.auth import create_access_token
from app.pricing_intelligence.logic.markup_registry import SUB_RECIPE_BLOCK_ID


@pytest.fixture
def client(markup_service, repository):
    app.dependency_overrides[get_markup_service] = lambda: markup_service
    app.dependency_overrides[get_cost_record_repository] = lambda: repository
    app.dependency_overrides[get_current_user_id] = lambda: "u1"
    app.dependency_overrides[get_websocket_user_id] = lambda: "u1"
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(client):
    """Rent 1000, PIX 2%, 10000 revenue this month and a Retail block at 20% profit"""
    rent = client.post("/api/cost-records/fixed_expenses", json={"name": "Rent", "value": 1000}).json()
    pix = client.post(
        "/api/cost-records/sales_charges", json={"name": "PIX", "value_percentual": 2}
    ).json()
    client.post("/api/markups/revenue", json={"month": date.today().isoformat(), "amount": 10000})
    block = client.post("/api/markups/blocks", json={"name": "Retail", "desired_profit": 20}).json()["block"]
    return {"rent": rent, "pix": pix, "block": block}


class TestBlocksApi:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_list_has_sub_recipe_block(self, client):
        response = client.get("/api/markups/blocks")
        assert response.status_code == 200
        blocks = response.json()["blocks"]
        assert [b["block"]["id"] for b in blocks] == [SUB_RECIPE_BLOCK_ID]

    def test_create_block_selects_active_records(self, client, seeded):
        response = client.get(f"/api/markups/blocks/{seeded['block']['id']}/selection")
        assert response.status_code == 200
        assert response.json()["states"] == {seeded["rent"]["id"]: True, seeded["pix"]["id"]: True}

    def test_calculation(self, client, seeded):
        response = client.get(f"/api/markups/blocks/{seeded['block']['id']}/calculation")
        body = response.json()
        assert body["figures"]["spend_on_revenue"] == 10.0
        assert body["figures"]["payment_fees"] == 2
        assert body["ideal_markup_display"] == "1.4706"

    def test_blank_name_is_bad_request(self, client):
        assert client.post("/api/markups/blocks", json={"name": "   "}).status_code == 400

    def test_sub_recipe_block_is_read_only(self, client):
        assert client.patch(f"/api/markups/blocks/{SUB_RECIPE_BLOCK_ID}", json={"name": "x"}).status_code == 409
        assert client.delete(f"/api/markups/blocks/{SUB_RECIPE_BLOCK_ID}").status_code == 409
        response = client.put(f"/api/markups/blocks/{SUB_RECIPE_BLOCK_ID}/selection", json={"states": {}})
        assert response.status_code == 409

    def test_unknown_block(self, client):
        assert client.get("/api/markups/blocks/missing").status_code == 404
        assert client.get("/api/markups/blocks/missing/calculation").status_code == 404

    def test_save_selection_merges(self, client, seeded):
        block_id = seeded["block"]["id"]
        response = client.put(
            f"/api/markups/blocks/{block_id}/selection",
            json={"states": {seeded["pix"]["id"]: False}},
        )
        assert response.json()["states"] == {seeded["rent"]["id"]: True, seeded["pix"]["id"]: False}

    def test_period_round_trip(self, client, seeded):
        block_id = seeded["block"]["id"]
        assert client.get(f"/api/markups/blocks/{block_id}/period").json()["months"] == 12

        response = client.put(f"/api/markups/blocks/{block_id}/period", json={"kind": "last_n_months", "months": 3})
        assert response.status_code == 200
        assert client.get(f"/api/markups/blocks/{block_id}/period").json()["months"] == 3

    def test_invalid_period_is_rejected(self, client, seeded):
        response = client.put(
            f"/api/markups/blocks/{seeded['block']['id']}/period",
            json={"kind": "custom_range", "start": "2024-05-01", "end": "2024-01-01"},
        )
        assert response.status_code == 422

    def test_delete_block(self, client, seeded):
        block_id = seeded["block"]["id"]
        assert client.delete(f"/api/markups/blocks/{block_id}").json()["success"] is True
        assert client.get(f"/api/markups/blocks/{block_id}").status_code == 404

    def test_publish(self, client, seeded, snapshots_collection):
        response = client.post("/api/markups/publish")
        assert response.status_code == 200
        assert response.json()["published"][0]["name"] == "Retail"
        assert len(snapshots_collection.docs) == 1

    def test_simulate(self, client, seeded):
        response = client.post(
            "/api/markups/simulate",
            json={"block_id": seeded["block"]["id"], "breakdown": {"ingredients": 50}},
        )
        assert response.json()["suggested_price"] == 73.53

    def test_revenue_history(self, client):
        client.post("/api/markups/revenue", json={"month": "2024-01-20", "amount": 500})
        client.post("/api/markups/revenue", json={"month": "2024-03-01", "amount": 700})
        months = [e["month"] for e in client.get("/api/markups/revenue").json()]
        assert months == ["2024-03-01", "2024-01-01"]


class TestCostRecordsApi:
    def test_crud(self, client):
        created = client.post("/api/cost-records/payroll_entries", json={"name": "Manager", "base_salary": 3000})
        assert created.status_code == 201
        record_id = created.json()["id"]

        updated = client.patch(f"/api/cost-records/payroll_entries/{record_id}", json={"base_salary": 3500})
        assert updated.json()["base_salary"] == 3500

        assert client.delete(f"/api/cost-records/payroll_entries/{record_id}").status_code == 200
        assert client.get("/api/cost-records/payroll_entries").json() == []
        inactive = client.get("/api/cost-records/payroll_entries", params={"include_inactive": True}).json()
        assert inactive[0]["active"] is False

        reactivated = client.put(f"/api/cost-records/payroll_entries/{record_id}/active", json={"active": True})
        assert reactivated.json()["active"] is True

    def test_unknown_record_set(self, client):
        assert client.get("/api/cost-records/invoices").status_code == 404

    def test_invalid_payload(self, client):
        assert client.post("/api/cost-records/fixed_expenses", json={"value": -1}).status_code == 422

    def test_unknown_record(self, client):
        assert client.get("/api/cost-records/fixed_expenses/507f1f77bcf86cd799439011").status_code == 404
        assert client.patch("/api/cost-records/fixed_expenses/not-an-id", json={"value": 1}).status_code == 404


class TestAuth:
    def test_missing_token_is_unauthorized(self, markup_service):
        app.dependency_overrides[get_markup_service] = lambda: markup_service
        try:
            response = TestClient(app).get("/api/markups/blocks")
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 401

    def test_valid_token(self, markup_service):
        app.dependency_overrides[get_markup_service] = lambda: markup_service
        token = create_access_token({"_id": "u9"})
        try:
            response = TestClient(app).get(
                "/api/markups/blocks", headers={"Authorization": f"Bearer {token}"}
            )
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 200


class TestEditorWebSocket:
    def test_toggle_and_save(self, client, seeded):
        block_id = seeded["block"]["id"]
        with client.websocket_connect(f"/api/markups/blocks/{block_id}/editor") as ws:
            opened = ws.receive_json()
            assert opened["type"] == "calculation"
            assert opened["data"]["figures"]["payment_fees"] == 2

            ws.send_json({"action": "toggle", "record_id": seeded["pix"]["id"], "included": False})
            ws.send_json({"action": "recompute"})
            recomputed = ws.receive_json()
            assert recomputed["data"]["figures"]["payment_fees"] == 0

            ws.send_json({"action": "save"})
            saved = ws.receive_json()
            assert saved == {
                "type": "saved",
                "states": {seeded["rent"]["id"]: True, seeded["pix"]["id"]: False},
            }
            ws.send_json({"action": "close"})

    def test_sub_recipe_editor_is_refused(self, client):
        with client.websocket_connect(f"/api/markups/blocks/{SUB_RECIPE_BLOCK_ID}/editor") as ws:
            message = ws.receive_json()
            assert message["type"] == "error"
