from bson import ObjectId

from conftest import biodata_payload


def create(client, **overrides):
    res = client.post("/biodata", json=biodata_payload(**overrides))
    assert res.status_code == 200
    return res.json()


def test_sequential_biodata_ids(login, db):
    client = login("owner@example.com")
    ids = [create(client, name=f"Profile {i}")["biodataId"] for i in range(5)]
    assert ids == [1, 2, 3, 4, 5]
    stored = db["biodatas"].find_one({"biodataId": 3})
    assert stored["name"] == "Profile 2"
    assert stored["contactEmail"] == "owner@example.com"
    assert stored["biodataStatus"] == "Normal"


def test_biodata_id_survives_deletions(login, db):
    client = login("owner@example.com")
    create(client)
    create(client)
    db["biodatas"].delete_one({"biodataId": 1})
    assert create(client)["biodataId"] == 3


def test_pagination(login, client):
    owner = login("owner@example.com")
    for i in range(10):
        create(owner, name=f"Profile {i + 1}")
    res = client.get("/biodatas", params={"page": 2, "limit": 4})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 10
    assert [b["biodataId"] for b in body["biodatas"]] == [5, 6, 7, 8]


def test_pagination_defaults_and_validation(login, client):
    owner = login("owner@example.com")
    for _ in range(6):
        create(owner)
    assert len(client.get("/biodatas").json()["biodatas"]) == 4
    assert client.get("/biodatas", params={"page": 0}).status_code == 422
    assert client.get("/biodatas", params={"limit": -1}).status_code == 422
    assert client.get("/biodatas", params={"page": "two"}).status_code == 422


def test_list_filters(login, client):
    owner = login("owner@example.com")
    create(owner, biodataType="Male", age=25)
    create(owner, biodataType="Female", age=24, permanentDivision="Sylhet")
    create(owner, biodataType="Female", age=31)
    body = client.get("/biodatas", params={"biodataType": "Female", "maxAge": 30}).json()
    assert body["total"] == 1
    assert body["biodatas"][0]["permanentDivision"] == "Sylhet"


def test_get_by_internal_id(login, client, db):
    owner = login("owner@example.com")
    inserted = create(owner)["insertedId"]
    res = client.get(f"/biodata/{inserted}")
    assert res.status_code == 200
    assert res.json()["_id"] == inserted
    assert client.get(f"/biodata/{ObjectId()}").status_code == 404
    assert client.get("/biodata/not-an-id").status_code == 400


def test_view_biodata_by_owner(login, db):
    owner = login("owner@example.com")
    create(owner)
    create(owner, name="Second")
    res = owner.get("/viewBiodata/owner@example.com")
    assert res.status_code == 200
    assert len(res.json()) == 2


def test_view_biodata_of_other_owner_forbidden(login):
    client = login("someone@example.com")
    assert client.get("/viewBiodata/owner@example.com").status_code == 403


def test_similar_biodatas_limited_to_three(login, client):
    owner = login("owner@example.com")
    for _ in range(4):
        create(owner, biodataType="Female")
    create(owner, biodataType="Male")
    res = client.get("/similarBiodatas", params={"biodataType": "Female"})
    assert len(res.json()) == 3
    assert all(b["biodataType"] == "Female" for b in res.json())


def test_checkout_by_sequential_id(login):
    client = login("owner@example.com")
    create(client, name="First")
    create(client, name="Second")
    res = client.get("/checkout/2")
    assert res.status_code == 200
    assert res.json()["name"] == "Second"
    assert client.get("/checkout/99").status_code == 404


def test_owner_requests_premium(login, db):
    owner = login("owner@example.com")
    inserted = create(owner)["insertedId"]
    res = owner.patch(f"/biodata/{inserted}", json={"biodataStatus": "Requested"})
    assert res.status_code == 200
    assert db["biodatas"].find_one({"_id": ObjectId(inserted)})["biodataStatus"] == "Requested"


def test_owner_cannot_make_self_premium(login, db):
    owner = login("owner@example.com")
    inserted = create(owner)["insertedId"]
    res = owner.patch(f"/biodata/{inserted}", json={"biodataStatus": "Premium"})
    assert res.status_code == 400
    assert db["biodatas"].find_one({"_id": ObjectId(inserted)})["biodataStatus"] == "Normal"


def test_stranger_cannot_request_premium(login, db):
    inserted = create(login("owner@example.com"))["insertedId"]
    stranger = login("stranger@example.com")
    res = stranger.patch(f"/biodata/{inserted}", json={"biodataStatus": "Requested"})
    assert res.status_code == 403


def test_status_value_is_validated(admin, db):
    inserted = str(db["biodatas"].insert_one({"biodataId": 1, "biodataStatus": "Normal"}).inserted_id)
    res = admin.patch(f"/biodata/{inserted}", json={"biodataStatus": "Gold"})
    assert res.status_code == 422


def test_premium_request_and_member_lists(admin, client, db):
    db["biodatas"].insert_many([
        {"biodataId": 1, "biodataStatus": "Requested"},
        {"biodataId": 2, "biodataStatus": "Premium"},
        {"biodataId": 3, "biodataStatus": "Normal"},
    ])
    assert [b["biodataId"] for b in admin.get("/allPremiumReq").json()] == [1]
    assert [b["biodataId"] for b in admin.get("/allPremiumMember").json()] == [2]


def test_make_premium_is_unconditional(admin, db):
    normal = str(db["biodatas"].insert_one({"biodataId": 1, "biodataStatus": "Normal"}).inserted_id)
    requested = str(db["biodatas"].insert_one({"biodataId": 2, "biodataStatus": "Requested"}).inserted_id)
    for biodata_id in (normal, requested):
        assert admin.patch(f"/makePremium/{biodata_id}").status_code == 200
    assert db["biodatas"].count_documents({"biodataStatus": "Premium"}) == 2


def test_make_premium_requires_admin(login, db):
    inserted = str(db["biodatas"].insert_one({"biodataId": 1, "biodataStatus": "Requested"}).inserted_id)
    client = login("owner@example.com")
    assert client.patch(f"/makePremium/{inserted}").status_code == 403
    assert db["biodatas"].find_one({"biodataId": 1})["biodataStatus"] == "Requested"
