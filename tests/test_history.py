"""Delivery history (completed issuances)."""
import pytest


@pytest.fixture
def complete(auth_client, make_issuance):
    async def _complete(material_id, school_id, quantity, delivered_at, remarks=None):
        issuance = await make_issuance(material_id, school_id, quantity)
        response = await auth_client.post(f"/issuances/{issuance['id']}/complete", json={
            "delivered_at": delivered_at,
            "remarks": remarks,
        })
        assert response.status_code == 200, response.text
        return response.json()["data"]
    return _complete


@pytest.fixture
async def deliveries(make_material, make_school, complete):
    math = await make_material(title="Mathematics Textbook Grade 4", quantity=100)
    english = await make_material(title="English Activity Sheets Grade 5", quantity=100)
    compostela = await make_school(schoolname="Compostela Central ES", municipality="Compostela")
    monkayo = await make_school(schoolname="Monkayo NHS", municipality="Monkayo", schooltype="SECONDARY",
                                congressional_district=2)

    records = [
        await complete(math["id"], compostela["id"], 10, "2024-01-10T08:00:00"),
        await complete(english["id"], compostela["id"], 20, "2024-02-15T23:30:00", remarks="rush delivery"),
        await complete(math["id"], monkayo["id"], 30, "2024-03-01T09:00:00"),
    ]
    return {
        "math": math,
        "english": english,
        "compostela": compostela,
        "monkayo": monkayo,
        "records": records,
    }


async def test_history_is_newest_first(auth_client, deliveries):
    response = await auth_client.get("/history")

    assert response.status_code == 200
    quantities = [r["quantity"] for r in response.json()["data"]]
    assert quantities == [30, 20, 10]


async def test_history_filters(auth_client, deliveries):
    by_school = (await auth_client.get("/history", params={"school_id": deliveries["compostela"]["id"]})).json()
    by_material = (await auth_client.get("/history", params={"material_id": deliveries["math"]["id"]})).json()

    assert [r["quantity"] for r in by_school["data"]] == [20, 10]
    assert [r["quantity"] for r in by_material["data"]] == [30, 10]


async def test_history_date_range_includes_whole_end_day(auth_client, deliveries):
    response = await auth_client.get("/history", params={"start_date": "2024-02-01", "end_date": "2024-02-15"})

    assert [r["quantity"] for r in response.json()["data"]] == [20]


async def test_history_rejects_inverted_date_range(auth_client):
    response = await auth_client.get("/history", params={"start_date": "2024-03-01", "end_date": "2024-02-01"})
    assert response.status_code == 400


async def test_history_search(auth_client, deliveries):
    by_title = (await auth_client.get("/history", params={"search": "english"})).json()
    by_school = (await auth_client.get("/history", params={"search": "monkayo"})).json()
    by_remarks = (await auth_client.get("/history", params={"search": "RUSH"})).json()

    assert [r["quantity"] for r in by_title["data"]] == [20]
    assert [r["quantity"] for r in by_school["data"]] == [30]
    assert [r["quantity"] for r in by_remarks["data"]] == [20]


async def test_get_history_record(auth_client, deliveries):
    record = deliveries["records"][0]

    response = await auth_client.get(f"/history/{record['id']}")
    data = response.json()["data"]
    assert data["material"]["title"] == "Mathematics Textbook Grade 4"
    assert data["school"]["municipality"] == "Compostela"
    assert data["delivered_at"].startswith("2024-01-10T08:00:00")


async def test_get_missing_history_record(auth_client):
    response = await auth_client.get("/history/missing")
    assert response.status_code == 404
    assert response.json()["message"] == "Completed issuance not found"


async def test_delete_history_record_leaves_stock(auth_client, deliveries, material_quantity):
    record = deliveries["records"][1]

    response = await auth_client.delete(f"/history/{record['id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "Completed issuance deleted successfully"
    assert await material_quantity(deliveries["english"]["id"]) == 80

    remaining = (await auth_client.get("/history")).json()
    assert remaining["pagination"]["total"] == 2
