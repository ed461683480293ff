import csv
import io

import jwt
import pytest

from expenses_api.app import create_app
from expenses_core.config import Settings


def _create(client, headers, **overrides):
    payload = {"description": "Paint", "amount": 100, "date": "2025-03-05", "shop": "Hardware Co"}
    payload.update(overrides)
    response = client.post("/api/expenses", json=payload, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/api/expenses")
        assert response.status_code == 401
        body = response.get_json()
        assert body["success"] is False
        assert body["error"] == "Authentication required"
        assert body["details"] == "Authentication required"

    def test_invalid_token(self, client):
        bad = jwt.encode({"id": "x"}, "another-secret", algorithm="HS256")
        response = client.get("/api/expenses", headers={"Authorization": f"Bearer {bad}"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid or expired token"

    def test_expired_token(self, client, settings):
        expired = jwt.encode({"id": "x", "exp": 1}, settings.jwt_secret, algorithm="HS256")
        response = client.get("/api/expenses", headers={"Authorization": f"Bearer {expired}"})
        assert response.status_code == 401

    def test_cookie_token(self, client, token):
        client.set_cookie("token", token)
        assert client.get("/api/expenses").status_code == 200

    def test_unprotected_paths(self, client):
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/initial-amount").status_code == 200

    def test_secret_required_outside_dev(self, tmp_path, store):
        with pytest.raises(RuntimeError):
            create_app(Settings(env="prod", data_dir=tmp_path), store=store)

    def test_dev_without_secret_skips_checks(self, tmp_path, store):
        app = create_app(Settings(env="dev", data_dir=tmp_path), store=store)
        assert app.test_client().get("/api/expenses").status_code == 200


class TestExpensesEndpoint:
    def test_create_and_list(self, client, auth_headers):
        created = _create(client, auth_headers, subtasks=[{"title": "Brush", "amount": 5}])
        assert created["weekStart"] == "2025-03-02"
        assert created["totalAmount"] == "105.00"
        assert created["paid"] is False

        body = client.get("/api/expenses", headers=auth_headers).get_json()
        assert body["success"] is True
        assert [e["id"] for e in body["data"]] == [created["id"]]
        assert body["shops"] == ["Hardware Co"]

    def test_week_listing_has_total_and_shops(self, client, auth_headers):
        _create(client, auth_headers, date="2025-03-03", amount=10, shop="Cafe")
        _create(client, auth_headers, date="2025-03-04", amount=15)
        _create(client, auth_headers, date="2025-03-20", amount=99)

        body = client.get("/api/expenses?weekStart=2025-03-02", headers=auth_headers).get_json()

        assert [e["date"] for e in body["data"]] == ["2025-03-04", "2025-03-03"]
        assert body["weekTotal"] == "25.00"
        assert body["shops"] == ["Hardware Co", "Cafe"]

    def test_create_validation_error(self, client, auth_headers):
        response = client.post(
            "/api/expenses",
            json={"description": "x", "amount": 1, "date": "2025-03-05", "role": "manager"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation error"

    def test_non_json_body_rejected(self, client, auth_headers):
        response = client.post("/api/expenses", data="amount=1", headers=auth_headers)
        assert response.status_code == 400

    def test_mark_paid_by_week(self, client, auth_headers):
        _create(client, auth_headers, date="2025-03-03")
        _create(client, auth_headers, date="2025-03-04")

        response = client.put("/api/expenses", json={"weekStart": "2025-03-02"}, headers=auth_headers)

        assert response.get_json() == {"success": True, "modifiedCount": 2}

    def test_mark_paid_requires_criteria(self, client, auth_headers):
        response = client.put("/api/expenses", json={}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("ids", [5, {"a": 1}, "65f1c0ffee0000000000abcd"])
    def test_mark_paid_rejects_non_list_ids(self, client, auth_headers, ids):
        response = client.put("/api/expenses", json={"ids": ids}, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()["details"] == "Provide weekStart or ids array"

    def test_oversized_amount_is_a_validation_error(self, client, auth_headers):
        response = client.post(
            "/api/expenses",
            json={"description": "Big", "amount": 1e30, "date": "2025-03-05"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation error"

    def test_patch(self, client, auth_headers):
        created = _create(client, auth_headers)
        response = client.patch(
            "/api/expenses",
            json={"id": created["id"], "updates": {"description": "Primer", "paid": True}},
            headers=auth_headers,
        )
        data = response.get_json()["data"]
        assert data["description"] == "Primer"
        assert data["isPaid"] is True

    def test_patch_requires_updates(self, client, auth_headers):
        response = client.patch("/api/expenses", json={"id": "x"}, headers=auth_headers)
        assert response.status_code == 400

    def test_patch_unknown_expense(self, client, auth_headers):
        response = client.patch(
            "/api/expenses",
            json={"id": "65f1c0ffee0000000000abcd", "updates": {"shop": "x"}},
            headers=auth_headers,
        )
        assert response.status_code == 404

    def test_delete_by_body_and_query(self, client, auth_headers):
        first = _create(client, auth_headers)
        second = _create(client, auth_headers)

        by_body = client.delete("/api/expenses", json={"id": first["id"]}, headers=auth_headers)
        by_query = client.delete(f"/api/expenses?id={second['id']}", headers=auth_headers)

        assert by_body.get_json()["data"]["id"] == first["id"]
        assert by_query.status_code == 200
        assert client.get("/api/expenses", headers=auth_headers).get_json()["data"] == []

    def test_delete_errors(self, client, auth_headers):
        assert client.delete("/api/expenses", headers=auth_headers).status_code == 400
        assert client.delete("/api/expenses?id=bad", headers=auth_headers).status_code == 400
        missing = client.delete("/api/expenses?id=65f1c0ffee0000000000abcd", headers=auth_headers)
        assert missing.status_code == 404


class TestSubExpenseEndpoints:
    def test_lifecycle(self, client, auth_headers):
        created = _create(client, auth_headers)
        base = f"/api/expenses/{created['id']}/subtasks"

        added = client.post(base, json={"title": "Brush", "amount": 5}, headers=auth_headers)
        assert added.status_code == 201
        sub_id = added.get_json()["data"]["subtasks"][0]["id"]

        toggled = client.patch(f"{base}/{sub_id}", json={"done": True}, headers=auth_headers).get_json()["data"]
        assert toggled["paid"] is True

        removed = client.delete(f"{base}/{sub_id}", headers=auth_headers).get_json()["data"]
        assert removed["subtasks"] == []

    def test_set_paid_status(self, client, auth_headers):
        created = _create(client, auth_headers, subtasks=[{"title": "a"}])
        url = f"/api/expenses/{created['id']}/paid"

        data = client.put(url, json={"paid": True}, headers=auth_headers).get_json()["data"]
        assert data["subtasks"][0]["done"] is True

        assert client.put(url, json={"paid": "yes"}, headers=auth_headers).status_code == 400


class TestDerivedViews:
    def test_filtered_view_paginates(self, client, auth_headers):
        for day in range(1, 8):
            _create(client, auth_headers, date=f"2025-03-0{day}", role="founder" if day % 2 else "other")

        body = client.get("/api/expenses/view?role=founder&visible=2", headers=auth_headers).get_json()["data"]

        assert body["total"] == 4
        assert body["visible"] == 2
        assert body["hasMore"] is True
        assert [e["date"] for e in body["items"]] == ["2025-03-01", "2025-03-03"]

    def test_view_rejects_bad_window(self, client, auth_headers):
        assert client.get("/api/expenses/view?visible=lots", headers=auth_headers).status_code == 400

    def test_export(self, client, auth_headers):
        _create(client, auth_headers, description="Paint, primer")

        response = client.get("/api/expenses/export?status=unpaid", headers=auth_headers)

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "expenses_report_" in response.headers["Content-Disposition"]
        rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
        assert rows[1][2] == "Paint, primer"
        assert rows[-1][2] == "GRAND TOTAL"

    def test_export_empty_selection(self, client, auth_headers):
        assert client.get("/api/expenses/export", headers=auth_headers).status_code == 400

    def test_wallet_stats(self, client, auth_headers):
        client.post("/api/initial-amount", json={"amount": 1000, "date": "2025-03-01"})
        created = _create(client, auth_headers, date="2025-03-05", amount=300)
        client.put(f"/api/expenses/{created['id']}/paid", json={"paid": True}, headers=auth_headers)
        _create(client, auth_headers, date="2025-03-06", amount=50)

        data = client.get("/api/wallet?periodStart=2025-03-01", headers=auth_headers).get_json()["data"]

        assert data == {
            "initialAmount": "1000.00",
            "periodStart": "2025-03-01",
            "spent": "300.00",
            "pending": "50.00",
            "remaining": "700.00",
        }

    def test_employee_history(self, client, auth_headers):
        created = _create(client, auth_headers, employeeId="emp-1", employeeName="Asha", amount=20)
        client.put(f"/api/expenses/{created['id']}/paid", json={"paid": True}, headers=auth_headers)

        data = client.get("/api/employees/emp-1/history", headers=auth_headers).get_json()["data"]

        assert data["total"] == "20.00"
        assert [e["id"] for e in data["items"]] == [created["id"]]


class TestInitialAmountEndpoint:
    def test_history_newest_first(self, client):
        client.post("/api/initial-amount", json={"amount": 1000, "date": "2025-03-01"})
        response = client.post("/api/initial-amount", json={"amount": 2000, "date": "2025-03-02"})
        assert response.status_code == 201

        data = client.get("/api/initial-amount").get_json()["data"]
        assert [entry["amount"] for entry in data] == ["2000.00", "1000.00"]

    def test_invalid_amount(self, client):
        response = client.post("/api/initial-amount", json={"amount": -3, "date": "2025-03-01"})
        assert response.status_code == 400
        assert response.get_json()["details"] == "Invalid amount provided."

    def test_invalid_date(self, client):
        response = client.post("/api/initial-amount", json={"amount": 10, "date": "not-a-date"})
        assert response.status_code == 400
        assert client.get("/api/initial-amount").get_json()["data"] == []
