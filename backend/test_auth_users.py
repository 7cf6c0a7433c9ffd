"""Registration, login, roles, account status and the address book."""
from conftest import auth_headers

AUTH = "/api/v1/auth"
USERS = "/api/v1/users"


def _register(client, **overrides):
    body = {"name": "Nimal Perera", "email": "Nimal@QuickMed.lk", "password": "secret123"}
    body.update(overrides)
    return client.post(f"{AUTH}/register", json=body)


def test_register_returns_token_and_user(client):
    resp = _register(client)

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["user"]["email"] == "nimal@quickmed.lk"
    assert data["user"]["role"] == "user"
    assert "hashedPassword" not in data["user"]

    me = client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["name"] == "Nimal Perera"


def test_register_rules(client):
    assert _register(client, password="123").status_code == 400
    assert _register(client, email="not-an-email").status_code == 400
    assert _register(client, role="admin").status_code == 400
    assert _register(client, role="doctor").status_code == 400
    assert _register(client, role="pharmacy").status_code == 400

    resp = _register(client, role="doctor", doctorId="SLMC-1234")
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["doctorId"] == "SLMC-1234"

    assert _register(client, email="nimal@quickmed.lk").status_code == 409


def test_login(client, make_user):
    user = make_user("user", password="pa55word")

    resp = client.post(f"{AUTH}/login", json={"email": user.email, "password": "pa55word"})
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["id"] == user.id

    wrong = client.post(f"{AUTH}/login", json={"email": user.email, "password": "nope!!"})
    unknown = client.post(f"{AUTH}/login", json={"email": "ghost@quickmed.lk", "password": "pa55word"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_blocked_user_is_locked_out(client, make_user):
    user = make_user("user", status="blocked")
    resp = client.post(f"{AUTH}/login", json={"email": user.email, "password": "secret123"})
    assert resp.status_code == 403
    assert client.get(f"{AUTH}/me", headers=auth_headers(user)).status_code == 403


def test_bad_token_is_401(client):
    assert client.get(f"{AUTH}/me").status_code == 401
    resp = client.get(f"{AUTH}/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401
    assert resp.json()["status"] == "fail"


def test_admin_manages_users(client, admin, admin_headers, customer, customer_headers):
    assert client.get(USERS, headers=customer_headers).status_code == 403

    resp = client.get(USERS, params={"role": "user"}, headers=admin_headers)
    assert [u["id"] for u in resp.json()["data"]] == [customer.id]

    resp = client.patch(f"{USERS}/{customer.id}/role", json={"role": "pharmacy"}, headers=admin_headers)
    assert resp.json()["data"]["role"] == "pharmacy"
    resp = client.patch(f"{USERS}/{customer.id}/status", json={"status": "blocked"}, headers=admin_headers)
    assert resp.json()["data"]["status"] == "blocked"

    assert client.patch(f"{USERS}/{admin.id}/role", json={"role": "user"}, headers=admin_headers).status_code == 400
    assert client.patch(f"{USERS}/{admin.id}/status", json={"status": "blocked"}, headers=admin_headers).status_code == 400
    assert client.delete(f"{USERS}/{admin.id}", headers=admin_headers).status_code == 400

    assert client.delete(f"{USERS}/{customer.id}", headers=admin_headers).status_code == 200
    assert client.get(f"{USERS}/{customer.id}", headers=admin_headers).status_code == 404


def test_profile_update_changes_password(client, customer, customer_headers):
    resp = client.patch("/api/v1/profile", json={"name": "Kamala", "password": "newpass1"}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Kamala"

    login = client.post(f"{AUTH}/login", json={"email": customer.email, "password": "newpass1"})
    assert login.status_code == 200


def test_address_book_keeps_one_default(client, customer_headers):
    url = f"{USERS}/me/addresses"
    home = client.post(url, json={"label": "Home", "address": "1 Temple Rd"}, headers=customer_headers)
    assert home.status_code == 201
    assert home.json()["data"][0]["isDefault"] is True

    resp = client.post(url, json={"label": "Work", "address": "9 Union Pl", "isDefault": True}, headers=customer_headers)
    rows = {a["label"]: a for a in resp.json()["data"]}
    assert rows["Work"]["isDefault"] is True
    assert rows["Home"]["isDefault"] is False

    resp = client.delete(f"{url}/{rows['Work']['id']}", headers=customer_headers)
    remaining = resp.json()["data"]
    assert [a["label"] for a in remaining] == ["Home"]
    assert remaining[0]["isDefault"] is True


def test_addresses_are_per_user(client, customer_headers, make_user):
    url = f"{USERS}/me/addresses"
    created = client.post(url, json={"label": "Home", "address": "1 Temple Rd"}, headers=customer_headers)
    address_id = created.json()["data"][0]["id"]

    other = auth_headers(make_user("user"))
    assert client.get(url, headers=other).json()["results"] == 0
    assert client.delete(f"{url}/{address_id}", headers=other).status_code == 404
