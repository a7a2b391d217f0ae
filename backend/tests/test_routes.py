"""
HTTP API tests.

Verifies each failure kind keeps its own status code and that the
happy paths return the expected shapes.
"""

import pytest


@pytest.fixture
def stocked(db_session, radiator, warehouses, customer, staff_user, seed_stock):
    seed_stock(radiator.id, "WH1", 5)
    return radiator, warehouses[0], customer, staff_user


def _sale_payload(radiator, warehouse, customer, user, quantity=2, **extra):
    payload = {
        "customer_id": customer.id,
        "processed_by_user_id": user.id,
        "items": [{
            "radiator_id": radiator.id,
            "warehouse_id": warehouse.id,
            "quantity": quantity,
            "unit_price_cents": 10000,
        }],
    }
    payload.update(extra)
    return payload


# =============================================================================
# SALES
# =============================================================================


class TestSalesApi:

    def test_create_sale(self, client, stocked):
        radiator, wh1, customer, user = stocked
        resp = client.post("/api/sales", json=_sale_payload(radiator, wh1, customer, user, payment_method="EFTPOS"))

        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["status"] == "COMPLETED"
        assert sale["total_amount_cents"] == 23000
        assert sale["payment_method"] == "EFTPOS"
        assert sale["customer"]["last_name"] == "Smith"
        assert sale["items"][0]["warehouse"]["code"] == "WH1"

        stock = client.get(f"/api/radiators/{radiator.id}/stock").json["stock"]
        assert stock == {"WH1": 3, "WH2": 0}

    def test_insufficient_stock_is_409(self, client, stocked):
        radiator, wh1, customer, user = stocked
        resp = client.post("/api/sales", json=_sale_payload(radiator, wh1, customer, user, quantity=9))

        assert resp.status_code == 409
        assert resp.json["code"] == "insufficient_stock"
        assert resp.json["details"]["on_hand"] == 5

    def test_invalid_customer_is_400(self, client, stocked):
        radiator, wh1, customer, user = stocked
        payload = _sale_payload(radiator, wh1, customer, user)
        payload["customer_id"] = 123456

        resp = client.post("/api/sales", json=payload)
        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_customer"

    @pytest.mark.parametrize("mutate", [
        lambda p: p.pop("items"),
        lambda p: p.update(items=[]),
        lambda p: p["items"][0].update(quantity=1.5),
        lambda p: p.update(unexpected="x"),
        lambda p: p.update(notes="n" * 501),
    ])
    def test_bad_payloads_are_400(self, client, stocked, mutate):
        radiator, wh1, customer, user = stocked
        payload = _sale_payload(radiator, wh1, customer, user)
        mutate(payload)

        resp = client.post("/api/sales", json=payload)
        assert resp.status_code == 400
        assert resp.json["code"] == "validation_error"

    def test_unknown_sale_is_404(self, client, db_session):
        resp = client.get("/api/sales/4040")
        assert resp.status_code == 404
        assert resp.json["code"] == "not_found"

    def test_cancel_then_refund_conflicts(self, client, stocked):
        radiator, wh1, customer, user = stocked
        sale_id = client.post("/api/sales", json=_sale_payload(radiator, wh1, customer, user)).json["sale"]["id"]

        resp = client.post(f"/api/sales/{sale_id}/cancel")
        assert resp.status_code == 200

        resp = client.post(f"/api/sales/{sale_id}/refund")
        assert resp.status_code == 409
        assert resp.json["code"] == "invalid_state_transition"

    def test_refund_restores_stock(self, client, stocked):
        radiator, wh1, customer, user = stocked
        sale_id = client.post("/api/sales", json=_sale_payload(radiator, wh1, customer, user)).json["sale"]["id"]

        resp = client.post(f"/api/sales/{sale_id}/refund")
        assert resp.status_code == 200
        assert resp.json["sale"]["status"] == "REFUNDED"
        assert client.get(f"/api/radiators/{radiator.id}/stock").json["stock"]["WH1"] == 5

    def test_list_by_date_and_receipt(self, client, stocked):
        radiator, wh1, customer, user = stocked
        sale_id = client.post("/api/sales", json=_sale_payload(radiator, wh1, customer, user)).json["sale"]["id"]

        items = client.get("/api/sales").json["items"]
        assert [i["id"] for i in items] == [sale_id]
        assert items[0]["customer_name"] == "Aroha Smith"

        resp = client.get("/api/sales/by-date?from_date=2000-01-01&to_date=2999-01-01")
        assert resp.status_code == 200
        assert len(resp.json["items"]) == 1

        resp = client.get("/api/sales/by-date?from_date=2000-01-01")
        assert resp.status_code == 400

        today = client.get(f"/api/sales/{sale_id}").json["sale"]["sale_date"][:10]
        resp = client.get(f"/api/sales/by-date?from_date={today}&to_date={today}")
        assert [i["id"] for i in resp.json["items"]] == [sale_id]

        receipt = client.get(f"/api/sales/{sale_id}/receipt").json
        assert receipt["company_name"]
        assert receipt["sale"]["id"] == sale_id


# =============================================================================
# STOCK
# =============================================================================


class TestStockApi:

    def test_update_stock(self, client, db_session, radiator, warehouses):
        resp = client.post(f"/api/radiators/{radiator.id}/stock", json={"warehouse_code": "WH2", "quantity": 7})

        assert resp.status_code == 200
        assert resp.json["quantity"] == 7
        assert resp.json["history"]["change_type"] == "MANUAL"

    def test_update_stock_rejects_negative(self, client, db_session, radiator, warehouses):
        resp = client.post(f"/api/radiators/{radiator.id}/stock", json={"warehouse_code": "WH2", "quantity": -1})
        assert resp.status_code == 400

    def test_unknown_radiator_is_404(self, client, db_session, warehouses):
        assert client.get("/api/radiators/999/stock").status_code == 404

    def test_adjust_and_history(self, client, stocked):
        radiator, _, _, _ = stocked
        resp = client.post("/api/stock/adjust", json={
            "radiator_id": radiator.id, "warehouse_code": "WH1", "quantity_delta": -2, "note": "damaged",
        })
        assert resp.status_code == 201

        history = client.get(f"/api/radiators/{radiator.id}/stock/history").json["items"]
        assert history[0]["note"] == "damaged"
        assert history[0]["change_type"] == "ADJUSTMENT"

    def test_reports(self, client, stocked):
        assert client.get("/api/stock/summary").json["total_stock_items"] == 5
        assert client.get("/api/stock/low?threshold=5").json["items"][0]["current_stock"] == 5
        assert client.get("/api/stock/out-of-stock").json["items"][0]["warehouse_code"] == "WH2"
        assert client.get("/api/stock/reconcile").json["consistent"] is True

    def test_bulk_reports_non_object_rows(self, client, db_session, radiator, warehouses):
        resp = client.post("/api/stock/bulk", json={"updates": [
            1,
            {"radiator_id": radiator.id, "warehouse_code": "WH1", "quantity": "6"},
        ]})

        assert resp.status_code == 200
        assert resp.json["success_count"] == 1
        assert resp.json["error_count"] == 1
        assert resp.json["errors"][0]["code"] == "validation_error"
        assert client.get(f"/api/radiators/{radiator.id}/stock").json["stock"]["WH1"] == 6

    def test_warehouse_stock(self, client, stocked):
        resp = client.get("/api/warehouses/WH1/stock")

        assert resp.status_code == 200
        assert resp.json["warehouse_name"] == "Auckland"
        assert resp.json["items"][0]["status"] == "LOW"
        assert client.get("/api/warehouses/WH2/stock?threshold=0").json["out_of_stock_items"] == 1
        assert client.get("/api/warehouses/ZZZ/stock").status_code == 404

    def test_radiators_with_stock(self, client, stocked, second_radiator):
        items = client.get("/api/radiators?search=corolla").json["items"]
        assert [i["code"] for i in items] == ["R1"]
        assert items[0]["stock"] == {"WH1": 5, "WH2": 0}

        low = client.get("/api/radiators?low_stock_only=true&warehouse_code=WH1").json["items"]
        assert [i["code"] for i in low] == ["R1"]

        assert client.get("/api/radiators?warehouse_code=ZZZ").status_code == 404


def test_health(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"
    assert resp.json["checks"]["ledger"]["status"] == "healthy"
