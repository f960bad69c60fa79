from dreamlog.core import clock
from dreamlog.core.clock import DAY_MS


def _shift_clock(monkeypatch, real_now, offset_ms):
    monkeypatch.setattr(clock, "now_ms", lambda: real_now() + offset_ms)


def test_register_login_me(client):
    response = client.post("/register", json={"email": "a@x.com", "password": "p"})
    assert response.status_code == 201
    assert response.json() == {"success": True}

    response = client.post("/login", json={"email": "a@x.com", "password": "p"})
    assert response.status_code == 200
    token = response.json()["token"]

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "a@x.com"
    assert body["trialDaysLeft"] == 14
    assert body["trialEndsAt"] == body["created"] + 14 * DAY_MS
    assert "passwordHash" not in body


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert isinstance(response.json()["ts"], int)


def test_register_duplicate_is_conflict(client):
    client.post("/register", json={"email": "a@x.com", "password": "p"})
    response = client.post("/register", json={"email": "a@x.com", "password": "q"})

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_register_requires_both_fields(client):
    response = client.post("/register", json={"email": "a@x.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    response = client.post("/register", json={"email": "", "password": "p"})
    assert response.status_code == 400


def test_register_rejects_malformed_json(client):
    response = client.post("/register", content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_login_errors(client):
    client.post("/register", json={"email": "a@x.com", "password": "p"})

    response = client.post("/login", json={"email": "nobody@x.com", "password": "p"})
    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "message": "User not found"}

    response = client.post("/login", json={"email": "a@x.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized", "message": "Invalid password"}

    response = client.post("/login", json={"password": "p"})
    assert response.status_code == 400


def test_me_requires_valid_token(client):
    assert client.get("/me").status_code == 401

    response = client.get("/me", headers={"Authorization": "Bearer not.a.token"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


def test_login_after_trial_is_refused(client, monkeypatch):
    real_now = clock.now_ms
    _shift_clock(monkeypatch, real_now, -15 * DAY_MS)
    client.post("/register", json={"email": "old@x.com", "password": "p"})
    monkeypatch.setattr(clock, "now_ms", real_now)

    response = client.post("/login", json={"email": "old@x.com", "password": "p"})

    assert response.status_code == 403
    assert response.json() == {"error": "trial_expired", "message": "Trial expired"}


def test_trial_expiry_gates_dreams_but_not_me(client, monkeypatch):
    real_now = clock.now_ms
    _shift_clock(monkeypatch, real_now, -13 * DAY_MS)
    client.post("/register", json={"email": "late@x.com", "password": "p"})
    monkeypatch.setattr(clock, "now_ms", real_now)

    token = client.post("/login", json={"email": "late@x.com", "password": "p"}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/dreams", headers=headers).status_code == 200

    _shift_clock(monkeypatch, real_now, 2 * DAY_MS)

    response = client.get("/dreams", headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "trial_expired"

    response = client.get("/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["trialDaysLeft"] == 0
