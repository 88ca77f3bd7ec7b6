"""End-to-end tests through the HTTP API: batch, matching, review, tax, risk and recommendations."""

import uuid

import pytest


@pytest.fixture
async def catalog(add_tariff):
    await add_tariff("6403990000", "Footwear", duty=12)
    await add_tariff("6403910000", "Footwear covering the ankle", duty=5)
    await add_tariff("6403991000", "Footwear with wooden soles", duty=8)
    await add_tariff("9403600000", "Desk", duty=0)


async def _create_batch(client):
    response = await client.post("/api/v1/batches", json={
        "name": "api",
        "items": [
            {"product_name": "shoe", "customer_hs_code": "6403990000", "origin_country": "CN",
             "total_value": 10000},
            {"product_name": "desk", "origin_country": "CN", "quantity": 5, "unit_price": 100},
        ],
    })
    assert response.status_code == 201
    return response.json()


class TestBatchFlow:
    @pytest.mark.asyncio
    async def test_match_review_and_tax(self, client, catalog):
        batch = await _create_batch(client)
        assert [i["match_status"] for i in batch["items"]] == ["pending", "pending"]
        batch_id = batch["id"]
        desk_id = batch["items"][1]["id"]

        run = await client.post(f"/api/v1/matching/batches/{batch_id}/run")
        assert run.status_code == 200
        assert run.json()["auto_approved"] == 1
        assert run.json()["review"] == 1

        queue = (await client.get(f"/api/v1/matching/batches/{batch_id}/review-queue")).json()
        assert queue["total"] == 1
        assert queue["items"][0]["id"] == desk_id

        reviewed = await client.post(f"/api/v1/reviews/items/{desk_id}", json={"action": "approve"})
        assert reviewed.status_code == 200
        assert reviewed.json()["match_status"] == "approved"

        tax = await client.post(f"/api/v1/tax/batches/{batch_id}/compute")
        assert tax.status_code == 200
        # shoe 1200 duty + 2128 VAT; desk 0 duty + 95 VAT
        assert tax.json()["total_tax"] == 3423.0
        assert tax.json()["item_count"] == 2

        details = (await client.get(f"/api/v1/tax/batches/{batch_id}")).json()
        assert [g["hs_code"] for g in details["by_hs_code"]] == ["6403990000", "9403600000"]

        summary = await client.put(
            f"/api/v1/tax/batches/{batch_id}/clearance-type", json={"clearance_type": "deferred"}
        )
        assert summary.json()["deferred_vat"] == 2223.0
        assert summary.json()["payable_total"] == 1200.0

        audit = (await client.get(f"/api/v1/batches/{batch_id}/audit")).json()
        assert audit["total"] == 2
        assert audit["by_event_type"] == {"CARGO_ITEM_REVIEWED": 1, "BATCH_TAX_COMPUTED": 1}

        item_audit = (await client.get(f"/api/v1/batches/items/{desk_id}/audit")).json()
        assert [e["event_type"] for e in item_audit] == ["CARGO_ITEM_REVIEWED"]
        assert item_audit[0]["batch_id"] == batch_id

    @pytest.mark.asyncio
    async def test_item_tax_override(self, client, catalog):
        batch = await _create_batch(client)
        await client.post(f"/api/v1/matching/batches/{batch['id']}/run")
        await client.post(f"/api/v1/tax/batches/{batch['id']}/compute")

        shoe_id = batch["items"][0]["id"]
        response = await client.put(f"/api/v1/tax/items/{shoe_id}", json={"hs_code": "6403910000"})
        assert response.status_code == 200
        assert response.json()["duty"] == 500.0
        assert response.json()["rates_refreshed"] is True

    @pytest.mark.asyncio
    async def test_item_origin_update(self, client, add_tariff, catalog):
        await add_tariff("6403990000", "Footwear", origin_code="VN", duty=0)
        batch = await _create_batch(client)
        await client.post(f"/api/v1/matching/batches/{batch['id']}/run")
        await client.post(f"/api/v1/tax/batches/{batch['id']}/compute")

        shoe_id = batch["items"][0]["id"]
        response = await client.put(f"/api/v1/tax/items/{shoe_id}/origin", json={"origin_country": "VN"})
        assert response.status_code == 200
        data = response.json()
        assert data["rates_refreshed"] is True
        assert data["duty_rate"] == 0.0
        assert data["total_tax"] == 1900.0

        details = (await client.get(f"/api/v1/tax/batches/{batch['id']}")).json()
        assert details["total_tax"] == 1900.0

    @pytest.mark.asyncio
    async def test_stats(self, client, catalog):
        batch = await _create_batch(client)
        await client.post(f"/api/v1/matching/batches/{batch['id']}/run")

        stats = (await client.get(f"/api/v1/matching/batches/{batch['id']}/stats")).json()
        assert stats["total"] == 2
        assert stats["matched"] == 1

        review = (await client.get("/api/v1/reviews/stats", params={"batch_id": batch["id"]})).json()
        assert review["auto_approved"] == 1
        assert review["review"] == 1


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_unknown_batch_is_404(self, client):
        response = await client.get(f"/api/v1/batches/{uuid.uuid4()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_code_is_400(self, client):
        response = await client.post("/api/v1/batches", json={
            "items": [{"product_name": "shoe", "customer_hs_code": "no digits"}],
        })
        assert response.status_code == 400
        assert "customer_hs_code" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_empty_batch_is_422(self, client):
        response = await client.post("/api/v1/batches", json={"items": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_negative_value_is_400(self, client):
        response = await client.post("/api/v1/tax/compute", json={
            "customs_value": -1, "duty_rate": 12, "vat_rate": 19,
        })
        assert response.status_code == 400
        assert "customs_value" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_review_unknown_item_is_404(self, client):
        response = await client.post(f"/api/v1/reviews/items/{uuid.uuid4()}", json={"action": "approve"})
        assert response.status_code == 404


    @pytest.mark.asyncio
    async def test_blank_preview_name_is_422(self, client):
        response = await client.post("/api/v1/matching/preview", json={"product_name": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_blank_origin_is_400(self, client, catalog):
        batch = await _create_batch(client)
        response = await client.put(
            f"/api/v1/tax/items/{batch['items'][0]['id']}/origin", json={"origin_country": "  "}
        )
        assert response.status_code == 400


class TestStatelessEndpoints:
    @pytest.mark.asyncio
    async def test_compute(self, client):
        response = await client.post("/api/v1/tax/compute", json={
            "customs_value": 10000, "duty_rate": 10, "vat_rate": 19, "anti_dumping_rate": 20,
        })
        assert response.status_code == 200
        assert response.json()["total_tax"] == 5470.0

    @pytest.mark.asyncio
    async def test_customs_value(self, client):
        response = await client.post("/api/v1/tax/customs-value", json={
            "incoterm": "fob", "invoice_value": 10000, "international_freight": 500,
        })
        assert response.status_code == 200
        assert response.json()["customs_value"] == 10530.0
        assert response.json()["incoterm"] == "FOB"

    @pytest.mark.asyncio
    async def test_preview(self, client, catalog):
        response = await client.post("/api/v1/matching/preview", json={
            "product_name": "shoe", "customer_hs_code": "64039900",
        })
        data = response.json()
        assert data["hs_code"] == "6403990000"
        assert data["source"] == "exact"
        assert data["status"] == "auto_approved"
        assert data["rates"]["duty_rate"] == 12.0


class TestRiskAndRecommendations:
    @pytest.mark.asyncio
    async def test_declaration_record_and_check(self, client):
        created = await client.post("/api/v1/risk/declarations", json={
            "hs_code": "6403990000", "declared_unit_price": 100, "origin_country": "CN",
        })
        assert created.status_code == 201
        record_id = created.json()["id"]

        resolved = await client.post(
            f"/api/v1/risk/declarations/{record_id}/resolve", json={"result": "passed"}
        )
        assert resolved.status_code == 200
        again = await client.post(
            f"/api/v1/risk/declarations/{record_id}/resolve", json={"result": "rejected"}
        )
        assert again.status_code == 400

        check = await client.post("/api/v1/risk/declarations/check", json={
            "hs_code": "6403990000", "unit_price": 80, "origin_country": "CN",
        })
        assert check.json()["risk_level"] == "high"

    @pytest.mark.asyncio
    async def test_inspection_stats_without_history(self, client):
        response = await client.get("/api/v1/risk/inspections/stats", params={"hs_code": "6403990000"})
        assert response.status_code == 200
        assert response.json()["risk_level"] == "unknown"

    @pytest.mark.asyncio
    async def test_alternatives(self, client, catalog):
        response = await client.get(
            "/api/v1/recommendations/alternatives", params={"hs_code": "6403990000", "origin": "CN"}
        )
        data = response.json()
        assert data["found"] is True
        assert [a["hs_code"] for a in data["alternatives"]] == ["6403991000"]

        risk = await client.get("/api/v1/recommendations/tax-risk", params={"hs_code": "6403990000"})
        assert risk.json()["risk_level"] == "low"


    @pytest.mark.asyncio
    async def test_batch_declarations_resolved_together(self, client, catalog):
        batch = await _create_batch(client)
        for price in (90, 95):
            await client.post("/api/v1/risk/declarations", json={
                "hs_code": "6403990000", "declared_unit_price": price, "batch_id": batch["id"],
            })

        response = await client.post(
            f"/api/v1/risk/batches/{batch['id']}/declarations/resolve", json={"result": "passed"}
        )
        assert response.status_code == 200
        assert response.json()["updated"] == 2

        missing = await client.post(
            f"/api/v1/risk/batches/{uuid.uuid4()}/declarations/resolve", json={"result": "passed"}
        )
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_anti_dumping_and_batch_tax_risk(self, client, add_tariff, catalog):
        await add_tariff("7318150000", "Screws and bolts", duty=10, ad=20)
        watchlist = (await client.get("/api/v1/recommendations/anti-dumping", params={"origin": "CN"})).json()
        assert [(w["hs_code"], w["risk_level"]) for w in watchlist] == [("7318150000", "high")]

        batch = await _create_batch(client)
        await client.post(f"/api/v1/matching/batches/{batch['id']}/run")
        response = await client.post(f"/api/v1/recommendations/batches/{batch['id']}/tax-risk")
        assert response.status_code == 200
        data = response.json()
        assert data["total_items"] == 2
        assert data["risk_level"] == "low"
        assert data["risk_score"] == 10


class TestTranslations:
    @pytest.mark.asyncio
    async def test_refresh_and_fill_english_name(self, client, db_session, catalog):
        from app.models.translation import ProductNameTranslation

        db_session.add(ProductNameTranslation(id=uuid.uuid4(), name="Schuh", name_en="shoe"))
        await db_session.flush()
        refreshed = await client.post("/api/v1/matching/translations/refresh")
        assert refreshed.json() == {"entries": 1}

        response = await client.post("/api/v1/batches", json={
            "items": [{"product_name": "Schuh", "customer_hs_code": "6403990000"}],
        })
        batch = response.json()
        await client.post(f"/api/v1/matching/batches/{batch['id']}/run")

        detail = (await client.get(f"/api/v1/batches/{batch['id']}")).json()
        assert detail["items"][0]["product_name_en"] == "shoe"
