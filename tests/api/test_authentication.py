"""Bearer-token authentication against the live middleware stack."""
import pytest

BRANCHES_URL = "/api/v1/branches/"


@pytest.mark.django_db
class TestBearerToken:
    def test_missing_token(self, api_client):
        resp = api_client.get(BRANCHES_URL)
        assert resp.status_code == 401
        assert resp.json() == {"status": "error", "message": "Authentication required"}

    def test_valid_admin_token(self, api_client, make_token, branch):
        token = make_token({"sub": "admin-7", "roles": [{"name": "admin"}]})
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        resp = api_client.get(BRANCHES_URL)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        assert body["data"]["branches"][0]["code"] == "JKT-HQ"

    def test_plain_string_roles(self, api_client, make_token, db):
        token = make_token({"sub": "admin-8", "roles": ["admin"]})
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        assert api_client.get(BRANCHES_URL).status_code == 200

    def test_token_permissions_are_honoured(self, api_client, make_token, db):
        token = make_token({
            "sub": "reader-9",
            "permissions": [{"resource": "branch", "action": "read"}],
        })
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        assert api_client.get(BRANCHES_URL).status_code == 200
        assert api_client.get("/api/v1/divisions/").status_code == 403

    def test_bad_signature(self, api_client, make_token, db):
        token = make_token({"sub": "u1", "roles": ["admin"]}, secret="not-the-secret")
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        resp = api_client.get(BRANCHES_URL)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_expired_token(self, api_client, make_token, db):
        token = make_token({"sub": "u1", "roles": ["admin"]}, expires_in=-60)
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        resp = api_client.get(BRANCHES_URL)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Token expired"

    def test_garbage_token(self, api_client, db):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")
        resp = api_client.get(BRANCHES_URL)
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_token_without_subject(self, api_client, make_token, db):
        token = make_token({"roles": ["admin"]})
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        assert api_client.get(BRANCHES_URL).status_code == 401


class TestClaimsUser:
    def test_claims(self, make_user):
        user = make_user("u1", roles=["dispatcher", "admin"], permissions=[("branch", "read")])
        assert user.id == "u1"
        assert user.email == "u1@example.com"
        assert user.roles == ["dispatcher", "admin"]
        assert user.permissions == [{"resource": "branch", "action": "read"}]
        assert user.is_admin
        assert user.is_authenticated

    def test_not_admin(self, make_user):
        assert not make_user("u2", roles=["dispatcher"]).is_admin
