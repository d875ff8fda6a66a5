from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from medicine_corner.api.deps import get_db
from medicine_corner.main import app
from medicine_corner.utils.jwt import create_access_token


def _auth(**kw):
    kw.setdefault("user_id", 1)
    token = create_access_token("pharmacist@example.com", **kw)
    return {"Authorization": f"Bearer {token}"}


ADMIN = _auth(is_admin=True)


@pytest.fixture()
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _setup(client):
    med = client.post("/api/medicine-corner/medicines", json={"name": "Napa 500mg"}, headers=ADMIN)
    ven = client.post("/api/medicine-vendors", json={"name": "Acme", "credit_limit": "10000"}, headers=ADMIN)
    assert med.status_code == 201 and ven.status_code == 201
    return med.json()["data"]["id"], ven.json()["data"]["id"]


def _purchase(client, medicine_id, vendor_id, quantity, total, paid="0"):
    return client.post("/api/medicine-corner/stocks", headers=ADMIN, json={
        "vendor_id": vendor_id,
        "medicine_id": medicine_id,
        "quantity": quantity,
        "total_price": total,
        "sale_price": "15",
        "paid_amount": paid,
    })


def test_requires_token(client):
    r = client.get("/api/medicine-corner/medicines")
    assert r.status_code == 401
    assert r.json() == {"ok": False, "error": {"msg": "Not authenticated", "code": None, "details": None}}


def test_requires_permission(client):
    viewer = _auth(user_id=2, permissions=["medicine_corner.view"])
    assert client.get("/api/medicine-corner/medicines", headers=viewer).status_code == 200

    r = client.post("/api/medicine-corner/medicines", json={"name": "X"}, headers=viewer)
    assert r.status_code == 403
    assert r.json()["ok"] is False


def test_purchase_flow(client):
    med_id, ven_id = _setup(client)

    r = _purchase(client, med_id, ven_id, 100, "1000")
    assert r.status_code == 201
    r = _purchase(client, med_id, ven_id, 50, "600", paid="600")
    body = r.json()
    assert body["ok"] is True
    assert Decimal(str(body["data"]["average_buy_price"])) == Decimal("10.666667")
    assert body["data"]["total_stock"] == 150
    assert Decimal(str(body["data"]["vendor_balance"])) == Decimal("1000")
    assert body["data"]["stock"]["payment_status"] == "paid"

    r = client.get(f"/api/medicine-vendors/{ven_id}", headers=ADMIN)
    assert Decimal(str(r.json()["data"]["credit_utilization"])) == Decimal("10")

    r = client.get(f"/api/medicine-vendors/{ven_id}/pending-transactions", headers=ADMIN)
    assert r.json()["meta"]["count"] == 1


def test_vendor_payment_and_errors(client):
    med_id, ven_id = _setup(client)
    _purchase(client, med_id, ven_id, 12, "1200")
    _purchase(client, med_id, ven_id, 15, "1500")

    r = client.post("/api/medicine-vendors/payments", headers=ADMIN,
                    json={"vendor_id": ven_id, "amount": "3000"})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "exceeds_balance"
    assert err["details"] == {"field": "amount", "value": "3000.00", "limit": "2700.00"}

    r = client.post("/api/medicine-vendors/payments", headers=ADMIN,
                    json={"vendor_id": ven_id, "amount": "2000"})
    assert r.status_code == 201
    data = r.json()["data"]
    assert Decimal(str(data["vendor_balance"])) == Decimal("700")
    assert len(data["allocations"]) == 2

    r = client.get("/api/medicine-vendors/dues/summary", headers=ADMIN)
    assert Decimal(str(r.json()["data"]["total_dues"])) == Decimal("700")


def test_opening_balance_and_adjustment_are_payable(client):
    r = client.post("/api/medicine-vendors", headers=ADMIN,
                    json={"name": "Old Supplier", "opening_balance": "5000"})
    assert r.status_code == 201
    ven_id = r.json()["data"]["id"]

    r = client.post(f"/api/medicine-vendors/{ven_id}/adjust-balance", headers=ADMIN,
                    json={"adjustment_type": "increase", "amount": "1000", "reason": "late invoice"})
    assert r.status_code == 200

    r = client.get(f"/api/medicine-vendors/{ven_id}/pending-transactions", headers=ADMIN)
    assert [t["type"] for t in r.json()["data"]] == ["opening", "adjustment"]

    r = client.post("/api/medicine-vendors/payments", headers=ADMIN,
                    json={"vendor_id": ven_id, "amount": "6000"})
    assert r.status_code == 201
    assert Decimal(str(r.json()["data"]["vendor_balance"])) == Decimal("0")


def test_sale_flow(client):
    med_id, ven_id = _setup(client)
    stock_id = _purchase(client, med_id, ven_id, 10, "100").json()["data"]["stock"]["id"]

    r = client.post("/api/medicine-corner/sales", headers=ADMIN, json={
        "items": [{"stock_id": stock_id, "quantity": 2, "unit_price": "500"}],
        "discount": "100",
        "tax": "50",
        "paid_amount": "500",
    })
    assert r.status_code == 201
    sale = r.json()["data"]
    assert Decimal(str(sale["total_amount"])) == Decimal("950")
    assert Decimal(str(sale["due_amount"])) == Decimal("450")
    assert sale["payment_status"] == "partial"

    r = client.post(f"/api/medicine-corner/sales/{sale['id']}/payment", headers=ADMIN,
                    json={"paid_amount": "950"})
    assert r.json()["data"]["payment_status"] == "paid"

    r = client.post("/api/medicine-corner/sales", headers=ADMIN, json={
        "items": [{"stock_id": stock_id, "quantity": 9, "unit_price": "10"}],
    })
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "insufficient_stock"

    r = client.delete(f"/api/medicine-corner/sales/{sale['id']}", headers=ADMIN)
    assert r.json()["data"]["deleted"] is True
    r = client.get(f"/api/medicine-corner/stocks/{stock_id}", headers=ADMIN)
    assert r.json()["data"]["available_quantity"] == 10
    assert [t["type"] for t in r.json()["data"]["transactions"]] == ["purchase", "sale", "return"]


def test_not_found_and_validation(client):
    r = client.get("/api/medicine-corner/sales/999", headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "sale_not_found"

    r = client.post("/api/medicine-corner/stocks", headers=ADMIN, json={"vendor_id": 1})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "request_validation"


def test_alerts_and_dashboard(client):
    med_id, ven_id = _setup(client)
    _purchase(client, med_id, ven_id, 5, "50")

    r = client.get("/api/medicine-corner/alerts", headers=ADMIN)
    assert r.json()["meta"]["low_stock"] == 1

    r = client.get("/api/medicine-corner/dashboard", headers=ADMIN)
    assert Decimal(str(r.json()["data"]["total_stock_value"])) == Decimal("50")

    r = client.get("/api/medicine-corner/reports/buy-sale-stock", headers=ADMIN)
    assert r.json()["data"]["rows"][0]["buy_qty"] == 5


def test_medicine_account_routes(client):
    r = client.post("/api/medicine-account/fund-in", headers=ADMIN,
                    json={"amount": "1000", "purpose": "float"})
    assert r.status_code == 201
    assert r.json()["data"]["type"] == "fund_in"

    r = client.post("/api/medicine-account/expenses", headers=ADMIN,
                    json={"amount": "5000", "category": "rent"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "insufficient_balance"

    r = client.post("/api/medicine-account/expenses", headers=ADMIN,
                    json={"amount": "300", "category": "rent"})
    assert r.status_code == 201

    r = client.get("/api/medicine-account/balance-sheet", headers=ADMIN)
    assert Decimal(str(r.json()["data"]["balance"])) == Decimal("700")

    r = client.get("/api/medicine-account/transactions?type=expense", headers=ADMIN)
    assert r.json()["meta"]["total"] == 1

    r = client.get("/api/medicine-account/monthly-report?month=13", headers=ADMIN)
    assert r.status_code == 422
