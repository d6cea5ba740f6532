"""School directory."""


async def test_create_school_assigns_sequential_codes(make_school):
    first = await make_school(schoolname="Compostela Central ES", municipality="Compostela")
    second = await make_school(schoolname="Monkayo NHS", municipality="Monkayo", schooltype="SECONDARY",
                               congressional_district=2)

    assert first["school_id"] == "SCH-000001"
    assert second["school_id"] == "SCH-000002"
    assert first["issuance_count"] == 0


async def test_school_code_follows_highest_existing_code(auth_client, make_school):
    first = await make_school(schoolname="School A")
    await make_school(schoolname="School B")
    await auth_client.delete(f"/schools/{first['id']}")

    third = await make_school(schoolname="School C")
    assert third["school_id"] == "SCH-000003"


async def test_duplicate_school_is_case_insensitive(auth_client, make_school):
    await make_school(schoolname="Nabunturan Integrated School", municipality="Nabunturan")

    response = await auth_client.post("/schools", json={
        "schoolname": "NABUNTURAN integrated school",
        "schooltype": "INTEGRATED",
        "municipality": "nabunturan",
        "congressional_district": 1,
    })
    assert response.status_code == 400
    assert response.json()["message"] == "A school with this name already exists in this municipality"


async def test_same_name_in_other_municipality_is_allowed(make_school):
    await make_school(schoolname="Central Elementary School", municipality="Compostela")
    await make_school(schoolname="Central Elementary School", municipality="Monkayo")


async def test_invalid_district_is_rejected(auth_client):
    response = await auth_client.post("/schools", json={
        "schoolname": "Somewhere ES",
        "schooltype": "ELEMENTARY",
        "municipality": "Maco",
        "congressional_district": 3,
    })
    assert response.status_code == 400


async def test_list_schools_filters(auth_client, make_school):
    await make_school(schoolname="Compostela Central ES", municipality="Compostela")
    await make_school(schoolname="Monkayo NHS", municipality="Monkayo", schooltype="SECONDARY",
                      congressional_district=2)

    by_type = (await auth_client.get("/schools", params={"type": "SECONDARY"})).json()
    assert [s["schoolname"] for s in by_type["data"]] == ["Monkayo NHS"]

    by_municipality = (await auth_client.get("/schools", params={"municipality": "compo"})).json()
    assert [s["schoolname"] for s in by_municipality["data"]] == ["Compostela Central ES"]

    by_district = (await auth_client.get("/schools", params={"congressional_district": 2})).json()
    assert by_district["pagination"]["total"] == 1

    everything = (await auth_client.get("/schools")).json()
    assert [s["schoolname"] for s in everything["data"]] == ["Compostela Central ES", "Monkayo NHS"]


async def test_list_municipalities(auth_client, make_school):
    await make_school(schoolname="A", municipality="Monkayo")
    await make_school(schoolname="B", municipality="Compostela")
    await make_school(schoolname="C", municipality="Monkayo")

    response = await auth_client.get("/schools/municipalities")
    assert response.json()["data"] == ["Compostela", "Monkayo"]


async def test_get_school_with_issuances(auth_client, make_school, make_material, make_issuance):
    school = await make_school()
    material = await make_material(quantity=20)
    await make_issuance(material["id"], school["id"], 4)

    response = await auth_client.get(f"/schools/{school['id']}")
    detail = response.json()["data"]
    assert detail["issuance_count"] == 1
    assert detail["recent_issuances"][0]["material_title"] == material["title"]
    assert detail["recent_issuances"][0]["issued_by"] == "admin"

    listed = (await auth_client.get("/schools")).json()["data"]
    assert listed[0]["issuance_count"] == 1


async def test_update_school(auth_client, make_school):
    school = await make_school()

    response = await auth_client.put(f"/schools/{school['id']}", json={"zone": "Rural", "congressional_district": 2})
    assert response.status_code == 200
    assert response.json()["data"]["zone"] == "Rural"
    assert response.json()["data"]["congressional_district"] == 2
    assert response.json()["data"]["school_id"] == school["school_id"]


async def test_update_school_into_duplicate_is_conflict(auth_client, make_school):
    await make_school(schoolname="Monkayo NHS", municipality="Monkayo")
    other = await make_school(schoolname="Monkayo ES", municipality="Monkayo")

    response = await auth_client.put(f"/schools/{other['id']}", json={"schoolname": "monkayo nhs"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "CONFLICT"


async def test_delete_school_with_issuances_is_blocked(auth_client, make_school, make_material, make_issuance):
    school = await make_school()
    material = await make_material(quantity=10)
    await make_issuance(material["id"], school["id"], 2)

    response = await auth_client.delete(f"/schools/{school['id']}")
    assert response.status_code == 400
    assert "1 existing issuance(s)" in response.json()["message"]
    assert (await auth_client.get(f"/schools/{school['id']}")).status_code == 200


async def test_delete_school(auth_client, make_school):
    school = await make_school()

    assert (await auth_client.delete(f"/schools/{school['id']}")).status_code == 200
    missing = await auth_client.get(f"/schools/{school['id']}")
    assert missing.status_code == 404
    assert missing.json()["message"] == "School not found"
