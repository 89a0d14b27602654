from lookup_api import crud


def _signup(client, email="jane@example.com", password="secret1", full_name="Jane Doe"):
    return client.post("/api/signup", json={"full_name": full_name, "email": email, "password": password})


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["timestamp"]


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "running" in r.json()["message"]


def test_signup_verify_signin_flow(client, db_session, mailer, mirror):
    r = _signup(client)
    assert r.status_code == 201
    body = r.json()
    assert body["emailSent"] is True
    user_id = body["userId"]

    # unverified accounts are refused
    r = client.post("/api/signin", json={"email": "jane@example.com", "password": "secret1"})
    assert r.status_code == 403

    assert len(mailer.outbox) == 1
    assert mailer.outbox[0]["to"] == "jane@example.com"
    account = crud.get_account(db_session, user_id)
    token = account.verification_token
    assert token and token in mailer.outbox[0]["html"]

    r = client.post("/api/verify-email", json={"email": "jane@example.com", "token": token})
    assert r.status_code == 200
    assert r.json()["user"]["is_verified"] is True

    r = client.post("/api/signin", json={"email": "jane@example.com", "password": "secret1"})
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "jane@example.com"
    assert user["full_name"] == "Jane Doe"
    assert "password" not in user

    # mirror saw the account, session flag included, but never the hash
    record = mirror.records[user_id]
    assert record["session_active"] is True
    assert "password" not in record
    assert "verification_token" not in record


def test_signup_survives_refused_recipient(client, db_session, refusing_mailer, mirror):
    r = _signup(client)
    assert r.status_code == 201
    body = r.json()
    assert body["emailSent"] is False
    account = crud.get_account(db_session, body["userId"])
    assert account.verification_token
    assert body["userId"] in mirror.records


def test_verification_link_is_single_use(client, db_session):
    user_id = _signup(client).json()["userId"]
    token = crud.get_account(db_session, user_id).verification_token
    assert client.post("/api/verify-email", json={"email": "jane@example.com", "token": token}).status_code == 200
    r = client.post("/api/verify-email", json={"email": "jane@example.com", "token": token})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid or expired verification link"


def test_signup_validation(client):
    assert _signup(client, full_name="").status_code == 400
    r = _signup(client, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid email format"
    r = _signup(client, password="12345")
    assert r.status_code == 400
    assert "at least 6" in r.json()["message"]
    r = client.post("/api/signup", json={"email": "x@example.com"})
    assert r.status_code == 400
    assert r.json()["message"] == "All fields are required"


def test_signup_duplicate_email(client):
    assert _signup(client).status_code == 201
    r = _signup(client, full_name="Someone Else")
    assert r.status_code == 400
    assert r.json()["message"] == "Email already registered"


def test_signup_succeeds_when_email_fails(client, mailer, db_session):
    mailer.fail = True
    r = _signup(client)
    assert r.status_code == 201
    assert r.json()["emailSent"] is False
    assert crud.get_account_by_email(db_session, "jane@example.com") is not None


def test_signup_succeeds_when_mirror_fails(client, mirror):
    mirror.fail = True
    r = _signup(client)
    assert r.status_code == 201
    assert mirror.records == {}


def test_unverified_refused_regardless_of_password(client):
    _signup(client)
    for password in ("secret1", "totally-wrong"):
        r = client.post("/api/signin", json={"email": "jane@example.com", "password": password})
        assert r.status_code == 403


def test_signin_unknown_and_wrong_password_look_alike(client, make_account):
    make_account(email="known@example.com", password="secret1")
    r1 = client.post("/api/signin", json={"email": "nobody@example.com", "password": "secret1"})
    r2 = client.post("/api/signin", json={"email": "known@example.com", "password": "nope-nope"})
    assert r1.status_code == r2.status_code == 401
    assert r1.json() == r2.json() == {"message": "Invalid email or password"}


def test_signin_requires_both_fields(client):
    r = client.post("/api/signin", json={"email": "jane@example.com"})
    assert r.status_code == 400


def test_malformed_body_is_400(client):
    r = client.post("/api/orders/create", json={"user_id": "abc", "company_cin": "C1", "company_name": "Acme"})
    assert r.status_code == 400
    assert "message" in r.json()
