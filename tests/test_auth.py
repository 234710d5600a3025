def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_login_and_me(client, seed):
    token = login(client, "guru1@pelangi.sch.id")
    r = client.get("/auth/me", headers=auth_header(token))
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["email"] == "guru1@pelangi.sch.id"
    assert body["data"]["role"] == "GURU"


def test_login_wrong_password(client, seed):
    r = client.post("/auth/login", json={"email": "guru1@pelangi.sch.id", "password": "salah"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid email or password"}


def test_me_requires_token(client, seed):
    assert client.get("/auth/me").status_code == 401
    r = client.get("/auth/me", headers=auth_header("not-a-token"))
    assert r.status_code == 401


def test_my_permissions(client, seed):
    token = login(client, "guru1@pelangi.sch.id")
    r = client.get("/auth/me/permissions", headers=auth_header(token))
    assert r.status_code == 200
    perms = r.json()["data"]
    assert perms["can_create_assignments"] is True
    assert perms["can_view_all_subjects"] is False
    assert perms["allowed_classes"] == [seed["class_7a"]]


def test_my_accessible_content(client, seed):
    token = login(client, "guru2@pelangi.sch.id")
    r = client.get("/auth/me/accessible-content", headers=auth_header(token))
    assert r.status_code == 200
    assert r.json()["data"] == []


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
