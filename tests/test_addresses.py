from conftest import make_user
from security import create_access_token


def address_body(**overrides):
    body = {
        "name": "Home",
        "fullName": "Asha Rao",
        "phoneNumber": "9876543210",
        "addressLine1": "12 Park Street",
        "landmark": "Near the temple",
        "pincode": "560001",
        "latitude": 12.97,
        "longitude": 77.59,
    }
    body.update(overrides)
    return body


def add(client, headers, **overrides):
    res = client.post("/api/addresses", json=address_body(**overrides), headers=headers)
    assert res.status_code == 201
    return res.json()["data"]


def defaults(client, headers):
    return [a["id"] for a in client.get("/api/addresses", headers=headers).json()["data"] if a["isDefault"]]


def test_first_address_becomes_default(client, user_headers):
    home = add(client, user_headers)
    assert home["isDefault"] is True
    assert home["location"] == {"type": "Point", "coordinates": [77.59, 12.97]}

    office = add(client, user_headers, name="Office")
    assert office["isDefault"] is False
    assert defaults(client, user_headers) == [home["id"]]


def test_new_default_clears_previous(client, user_headers):
    add(client, user_headers)
    office = add(client, user_headers, name="Office", isDefault=True)
    assert defaults(client, user_headers) == [office["id"]]

    listed = client.get("/api/addresses", headers=user_headers).json()
    assert listed["count"] == 2
    assert listed["data"][0]["id"] == office["id"]


def test_set_default(client, user_headers):
    home = add(client, user_headers)
    office = add(client, user_headers, name="Office")
    res = client.patch(f"/api/addresses/{office['id']}/default", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["data"]["isDefault"] is True
    assert defaults(client, user_headers) == [office["id"]]
    assert client.get(f"/api/addresses/{home['id']}", headers=user_headers).json()["data"]["isDefault"] is False


def test_deleting_default_promotes_another(client, user_headers):
    home = add(client, user_headers)
    office = add(client, user_headers, name="Office")
    assert client.delete(f"/api/addresses/{home['id']}", headers=user_headers).status_code == 200
    assert defaults(client, user_headers) == [office["id"]]

    assert client.delete(f"/api/addresses/{office['id']}", headers=user_headers).status_code == 200
    assert client.get("/api/addresses", headers=user_headers).json()["data"] == []


def test_invalid_pincode(client, user_headers):
    res = client.post("/api/addresses", json=address_body(pincode="5600"), headers=user_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid pincode format"


def test_update_address(client, user_headers):
    home = add(client, user_headers)
    res = client.put(
        f"/api/addresses/{home['id']}",
        json={"landmark": "Opposite the park", "latitude": 13.0, "longitude": 77.5},
        headers=user_headers,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["landmark"] == "Opposite the park"
    assert data["location"]["coordinates"] == [77.5, 13.0]
    assert data["name"] == "Home"

    assert client.put(f"/api/addresses/{home['id']}", json={}, headers=user_headers).status_code == 400
    res = client.put(f"/api/addresses/{home['id']}", json={"pincode": "abc123"}, headers=user_headers)
    assert res.status_code == 400


def test_addresses_are_private(client, mongo, user_headers):
    home = add(client, user_headers)
    other = make_user(mongo, "9111111111")
    other_headers = {"Authorization": f"Bearer {create_access_token(str(other['_id']))}"}

    assert client.get(f"/api/addresses/{home['id']}", headers=other_headers).status_code == 404
    assert client.put(f"/api/addresses/{home['id']}", json={"name": "Mine"}, headers=other_headers).status_code == 404
    assert client.patch(f"/api/addresses/{home['id']}/default", headers=other_headers).status_code == 404
    assert client.delete(f"/api/addresses/{home['id']}", headers=other_headers).status_code == 404
    assert client.get("/api/addresses", headers=other_headers).json()["data"] == []

    # the other user's first address is their own default and leaves ours alone
    add(client, other_headers)
    assert defaults(client, user_headers) == [home["id"]]


def test_addresses_require_login(client):
    assert client.get("/api/addresses").status_code == 401
