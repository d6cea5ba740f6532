"""Subjects and materials."""


async def test_create_and_list_subjects(auth_client, make_subject):
    await make_subject(name="Mathematics", education_stage="JUNIOR_HIGH")
    await make_subject(name="English", education_stage="ELEMENTARY")

    response = await auth_client.get("/subjects")
    assert response.status_code == 200
    subjects = response.json()["data"]
    assert [(s["name"], s["education_stage"]) for s in subjects] == [
        ("English", "ELEMENTARY"),
        ("Mathematics", "JUNIOR_HIGH"),
    ]
    assert all(s["material_count"] == 0 for s in subjects)


async def test_duplicate_subject_in_same_stage_is_conflict(auth_client, make_subject):
    await make_subject(name="Science", education_stage="ELEMENTARY")

    response = await auth_client.post("/subjects", json={"name": "Science", "education_stage": "ELEMENTARY"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "CONFLICT"


async def test_same_subject_name_allowed_in_other_stage(auth_client, make_subject):
    await make_subject(name="Science", education_stage="ELEMENTARY")
    await make_subject(name="Science", education_stage="SENIOR_HIGH")


async def test_material_count_on_subject(auth_client, make_subject, make_material):
    subject = await make_subject(name="Filipino")
    await make_material(title="Filipino 1", subject_id=subject["id"])
    await make_material(title="Filipino 2", subject_id=subject["id"])

    subjects = (await auth_client.get("/subjects")).json()["data"]
    assert subjects[0]["material_count"] == 2


async def test_create_material(auth_client, make_subject):
    subject = await make_subject(name="English", education_stage="ELEMENTARY")

    response = await auth_client.post("/materials", json={
        "title": "English Learner's Material Grade 3",
        "grade_level": 3,
        "quantity": 500,
        "subject_id": subject["id"],
    })
    assert response.status_code == 201
    material = response.json()["data"]
    assert material["grade_level"] == 3
    assert material["quantity"] == 500
    assert material["education_stage"] == "ELEMENTARY"
    assert material["subject"]["name"] == "English"


async def test_material_quantity_defaults_to_zero(auth_client, make_subject):
    subject = await make_subject()
    response = await auth_client.post("/materials", json={
        "title": "Activity Sheets", "grade_level": 1, "subject_id": subject["id"],
    })
    assert response.json()["data"]["quantity"] == 0


async def test_material_validation(auth_client, make_subject):
    subject = await make_subject()

    bad_grade = await auth_client.post("/materials", json={
        "title": "Book", "grade_level": 13, "subject_id": subject["id"],
    })
    negative = await auth_client.post("/materials", json={
        "title": "Book", "grade_level": 2, "quantity": -1, "subject_id": subject["id"],
    })
    missing_title = await auth_client.post("/materials", json={
        "grade_level": 2, "subject_id": subject["id"],
    })
    assert bad_grade.status_code == 400
    assert negative.status_code == 400
    assert missing_title.status_code == 400


async def test_material_with_unknown_subject(auth_client):
    response = await auth_client.post("/materials", json={
        "title": "Book", "grade_level": 2, "subject_id": "missing",
    })
    assert response.status_code == 404
    assert response.json()["message"] == "Subject not found"


async def test_list_materials_filters_and_pagination(auth_client, make_subject, make_material):
    elementary = await make_subject(name="Math", education_stage="ELEMENTARY")
    junior = await make_subject(name="Math", education_stage="JUNIOR_HIGH")
    await make_material(title="Math Grade 4", grade_level=4, subject_id=elementary["id"])
    await make_material(title="Math Grade 5", grade_level=5, subject_id=elementary["id"])
    await make_material(title="Math Grade 8", grade_level=8, subject_id=junior["id"])

    by_stage = (await auth_client.get("/materials", params={"education_stage": "JUNIOR_HIGH"})).json()
    assert [m["title"] for m in by_stage["data"]] == ["Math Grade 8"]

    by_grade = (await auth_client.get("/materials", params={"grade_level": 5})).json()
    assert [m["title"] for m in by_grade["data"]] == ["Math Grade 5"]

    by_search = (await auth_client.get("/materials", params={"search": "grade 4"})).json()
    assert [m["title"] for m in by_search["data"]] == ["Math Grade 4"]

    paged = (await auth_client.get("/materials", params={"page": 2, "limit": 2})).json()
    assert len(paged["data"]) == 1
    assert paged["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}


async def test_get_material_includes_recent_issuances(auth_client, make_material, make_school, make_issuance):
    material = await make_material(quantity=50)
    school = await make_school()
    await make_issuance(material["id"], school["id"], 5)

    response = await auth_client.get(f"/materials/{material['id']}")
    assert response.status_code == 200
    detail = response.json()["data"]
    assert len(detail["recent_issuances"]) == 1
    assert detail["recent_issuances"][0]["school_name"] == school["schoolname"]
    assert detail["recent_issuances"][0]["status"] == "PENDING"


async def test_get_missing_material(auth_client):
    response = await auth_client.get("/materials/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Material not found", "error_code": "NOT_FOUND"}


async def test_changing_subject_changes_education_stage(auth_client, make_subject, make_material):
    elementary = await make_subject(name="Science", education_stage="ELEMENTARY")
    senior = await make_subject(name="Earth Science", education_stage="SENIOR_HIGH")
    material = await make_material(subject_id=elementary["id"])
    assert material["education_stage"] == "ELEMENTARY"

    response = await auth_client.put(f"/materials/{material['id']}", json={"subject_id": senior["id"]})
    assert response.status_code == 200
    assert response.json()["data"]["education_stage"] == "SENIOR_HIGH"

    fetched = (await auth_client.get(f"/materials/{material['id']}")).json()["data"]
    assert fetched["education_stage"] == "SENIOR_HIGH"
    assert fetched["subject"]["name"] == "Earth Science"


async def test_update_material_restock(auth_client, make_material):
    material = await make_material(quantity=10)

    response = await auth_client.put(f"/materials/{material['id']}", json={"quantity": 60, "grade_level": 7})
    assert response.status_code == 200
    assert response.json()["data"]["quantity"] == 60
    assert response.json()["data"]["grade_level"] == 7


async def test_update_material_without_data(auth_client, make_material):
    material = await make_material()
    response = await auth_client.put(f"/materials/{material['id']}", json={})
    assert response.status_code == 400


async def test_delete_material(auth_client, make_material):
    material = await make_material()

    response = await auth_client.delete(f"/materials/{material['id']}")
    assert response.status_code == 200
    assert (await auth_client.get(f"/materials/{material['id']}")).status_code == 404


async def test_delete_material_with_issuances_is_blocked(auth_client, make_material, make_school, make_issuance):
    material = await make_material(quantity=10)
    school = await make_school()
    await make_issuance(material["id"], school["id"], 1)

    response = await auth_client.delete(f"/materials/{material['id']}")
    assert response.status_code == 400
    assert response.json()["error_code"] == "CONFLICT"
