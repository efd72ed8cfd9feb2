# Overview: Pytest coverage for the override and audit HTTP endpoints.

"""
HTTP tests for /api/override and /api/audit.

Verifies:
- Terminal endpoints require the override key (401)
- Invalid bodies answer 400 with every failing field
- Approve takes company and approver from the session
- A companyId that disagrees with the session is refused (403)
- Verify failures answer 400 {"ok": false, "message": reason}
"""

import pytest

from conftest import key_headers
from poscloud.models import OverrideRequest


def _create_request(client, company_id, **extra):
    body = {"companyId": company_id, "actionCode": "VOID_SALE", "requestedById": 7}
    body.update(extra)
    return client.post("/api/override/request", json=body, headers=key_headers())


class TestOverrideKeyGuard:
    def test_missing_key(self, client, company_a):
        resp = client.post("/api/override/request", json={
            "companyId": company_a.id, "actionCode": "VOID_SALE", "requestedById": 7,
        })
        assert resp.status_code == 401
        assert resp.json == {"message": "API key required"}

    def test_wrong_key(self, client, company_a):
        resp = client.post(
            "/api/override/verify",
            json={"companyId": company_a.id, "token": "ABCD2345", "actionCode": "VOID_SALE", "usedById": 7},
            headers=key_headers("nope"),
        )
        assert resp.status_code == 401

    def test_cloud_key_header_accepted(self, client, company_a):
        resp = client.post(
            "/api/override/request",
            json={"companyId": company_a.id, "actionCode": "VOID_SALE", "requestedById": 7},
            headers={"X-Cloud-Key": "test-override-key"},
        )
        assert resp.status_code == 200

    def test_public_cloud_bypass(self, app, client, company_a):
        app.config["ALLOW_PUBLIC_CLOUD"] = True
        try:
            resp = client.post("/api/override/request", json={
                "companyId": company_a.id, "actionCode": "VOID_SALE", "requestedById": 7,
            })
        finally:
            app.config["ALLOW_PUBLIC_CLOUD"] = False
        assert resp.status_code == 200


class TestRequestEndpoint:
    def test_created(self, client, company_a):
        resp = _create_request(client, company_a.id, resourceType="Sale", resourceId="42")

        assert resp.status_code == 200
        assert resp.json["status"] == "PENDING"
        assert isinstance(resp.json["requestId"], int)

    def test_validation_issues(self, client, company_a):
        resp = client.post(
            "/api/override/request",
            json={"companyId": "x", "actionCode": "V"},
            headers=key_headers(),
        )

        assert resp.status_code == 400
        assert resp.json["message"] == "Validation error"
        paths = {issue["path"][0] for issue in resp.json["issues"]}
        assert paths == {"companyId", "actionCode", "requestedById"}

    def test_unknown_company(self, client, db_session):
        resp = _create_request(client, 99999)
        assert resp.status_code == 404


class TestApproveEndpoint:
    def test_requires_session(self, client, company_a):
        resp = client.post("/api/override/approve", json={"requestId": 1})
        assert resp.status_code == 401

    def test_cashier_cannot_approve(self, client, company_a, cashier_a_headers):
        request_id = _create_request(client, company_a.id).json["requestId"]

        resp = client.post("/api/override/approve", json={"requestId": request_id}, headers=cashier_a_headers)

        assert resp.status_code == 403
        assert resp.json["error"] == "Permission denied"

    def test_approve_uses_session_identity(self, client, db_session, company_a, owner_a, owner_a_headers):
        request_id = _create_request(client, company_a.id).json["requestId"]

        resp = client.post(
            "/api/override/approve",
            json={"requestId": request_id, "expiresInSeconds": 120, "approvedById": 999},
            headers=owner_a_headers,
        )

        assert resp.status_code == 200
        assert set(resp.json) == {"requestId", "token", "expiresAt", "tokenId"}
        assert resp.json["expiresAt"].endswith("Z")
        assert db_session.get(OverrideRequest, request_id).approved_by_id == owner_a.id

    def test_company_mismatch(self, client, company_a, company_b, owner_a_headers):
        request_id = _create_request(client, company_a.id).json["requestId"]

        resp = client.post(
            "/api/override/approve",
            json={"requestId": request_id, "companyId": company_b.id},
            headers=owner_a_headers,
        )

        assert resp.status_code == 403

    def test_other_tenant_request_not_approvable(self, client, company_a, owner_b_headers):
        request_id = _create_request(client, company_a.id).json["requestId"]

        resp = client.post("/api/override/approve", json={"requestId": request_id}, headers=owner_b_headers)

        assert resp.status_code == 400
        assert resp.json["message"] == "could not approve request"

    def test_ttl_out_of_range(self, client, company_a, owner_a_headers):
        request_id = _create_request(client, company_a.id).json["requestId"]

        resp = client.post(
            "/api/override/approve",
            json={"requestId": request_id, "expiresInSeconds": 5},
            headers=owner_a_headers,
        )

        assert resp.status_code == 400
        assert resp.json["issues"][0]["path"] == ["expiresInSeconds"]


class TestVerifyEndpoint:
    @pytest.fixture
    def token(self, client, company_a, owner_a_headers):
        request_id = _create_request(client, company_a.id, resourceType="Sale", resourceId="42").json["requestId"]
        resp = client.post("/api/override/approve", json={"requestId": request_id}, headers=owner_a_headers)
        return resp.json["token"]

    def _verify(self, client, company_id, token, **extra):
        body = {"companyId": company_id, "token": token, "actionCode": "VOID_SALE", "usedById": 7}
        body.update(extra)
        return client.post("/api/override/verify", json=body, headers=key_headers())

    def test_ok_then_used(self, client, company_a, token):
        first = self._verify(client, company_a.id, token, resourceType="Sale", resourceId="42")
        assert first.status_code == 200
        assert first.json["ok"] is True

        second = self._verify(client, company_a.id, token)
        assert second.status_code == 400
        assert second.json == {"ok": False, "message": "token already used"}

    def test_resource_mismatch(self, client, company_a, token):
        resp = self._verify(client, company_a.id, token, resourceType="Sale", resourceId="43")
        assert resp.status_code == 400
        assert resp.json == {"ok": False, "message": "resource mismatch"}

    def test_invalid_token(self, client, company_a, token):
        resp = self._verify(client, company_a.id, "WRONG-TOKEN")
        assert resp.json == {"ok": False, "message": "invalid token"}

    def test_cross_tenant(self, client, company_b, token):
        resp = self._verify(client, company_b.id, token)
        assert resp.status_code == 400
        assert resp.json["message"] == "invalid token"

    def test_validation(self, client, company_a):
        resp = client.post("/api/override/verify", json={"companyId": company_a.id}, headers=key_headers())
        assert resp.status_code == 400
        assert resp.json["message"] == "Validation error"


class TestReadEndpoints:
    def test_audit_requires_session(self, client, company_a):
        assert client.get("/api/audit").status_code == 401

    def test_audit_lists_own_company(self, client, company_a, company_b, owner_a_headers):
        _create_request(client, company_a.id)
        _create_request(client, company_b.id)

        resp = client.get("/api/audit", headers=owner_a_headers)

        assert resp.status_code == 200
        assert len(resp.json) == 1
        assert resp.json[0]["companyId"] == company_a.id
        assert resp.json[0]["result"] == "requested"

    def test_audit_company_mismatch(self, client, company_a, company_b, owner_a_headers):
        resp = client.get(f"/api/audit?companyId={company_b.id}", headers=owner_a_headers)
        assert resp.status_code == 403

    def test_audit_limit(self, client, company_a, owner_a_headers):
        for _ in range(3):
            _create_request(client, company_a.id)

        resp = client.get(f"/api/audit?companyId={company_a.id}&limit=2", headers=owner_a_headers)

        assert resp.status_code == 200
        assert len(resp.json) == 2

    def test_audit_bad_limit(self, client, company_a, owner_a_headers):
        resp = client.get("/api/audit?limit=0", headers=owner_a_headers)
        assert resp.status_code == 400

    def test_override_audit_alias(self, client, company_a, owner_a_headers):
        _create_request(client, company_a.id)
        resp = client.get("/api/override/audit", headers=owner_a_headers)
        assert resp.status_code == 200
        assert len(resp.json) == 1

    def test_requests_listing(self, client, company_a, owner_a_headers):
        _create_request(client, company_a.id)

        resp = client.get("/api/override/requests?status=PENDING", headers=owner_a_headers)

        assert resp.status_code == 200
        assert resp.json[0]["status"] == "PENDING"
        assert "tokenHash" not in resp.json[0]

    def test_requests_bad_status(self, client, company_a, owner_a_headers):
        resp = client.get("/api/override/requests?status=DONE", headers=owner_a_headers)
        assert resp.status_code == 400
