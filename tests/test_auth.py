def test_login_and_me(client, admin_user):
    r = client.post("/api/auth/login", json={"email": "admin@koperasi.co.id", "password": "secret123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]

    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "admin"


def test_login_with_wrong_password(client, admin_user):
    r = client.post("/api/auth/login", json={"email": "admin@koperasi.co.id", "password": "wrong"})
    assert r.status_code == 401


def test_invalid_token_is_rejected(client):
    r = client.get("/api/admin/members", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["services"]["scheduler"]["running"] is False
