# Overview: Pytest coverage for company resolution and tenant purge.

import pytest

from poscloud.models import AuditLog, OverrideRequest, OverrideToken, VirtualTokenSecret
from poscloud.services import company_service, override_service, virtual_token_service


class TestResolveCompany:
    def test_by_cloud_id(self, db_session, company_a):
        assert company_service.resolve_company_id(cloud_id="FP-A") == company_a.id

    def test_cloud_id_wins_over_rnc(self, db_session, company_a, company_b):
        assert company_service.resolve_company_id(rnc=company_b.rnc, cloud_id="FP-A") == company_a.id

    def test_by_exact_rnc(self, db_session, company_a):
        assert company_service.resolve_company_id(rnc="131123456") == company_a.id

    def test_by_formatted_rnc(self, db_session, company_a):
        assert company_service.resolve_company_id(rnc="1-31-12345-6") == company_a.id

    def test_unknown_cloud_id_falls_back_to_rnc(self, db_session, company_a):
        assert company_service.resolve_company_id(rnc="131 123 456", cloud_id="FP-ZZZ") == company_a.id

    def test_no_match(self, db_session, company_a):
        assert company_service.resolve_company_id(rnc="000") is None
        assert company_service.resolve_company_id() is None


class TestCreateCompany:
    def test_create(self, db_session):
        company = company_service.create_company("  Super Uno ", rnc="401-00000-1")
        assert company.name == "Super Uno"
        assert company.is_active is True

    def test_duplicate_rnc_in_other_format(self, db_session, company_a):
        with pytest.raises(ValueError):
            company_service.create_company("Copy", rnc="1-31-12345-6")

    def test_name_required(self, db_session):
        with pytest.raises(ValueError):
            company_service.create_company("   ")


class TestPurge:
    def test_purge_removes_only_one_tenant(self, db_session, company_a, company_b, owner_a, owner_b):
        for company, owner in ((company_a, owner_a), (company_b, owner_b)):
            request_id = override_service.create_override_request(company.id, "VOID_SALE", 7)["requestId"]
            override_service.approve_override(company.id, request_id, owner.id)
            virtual_token_service.provision_virtual_token(company.id, owner.id, "CAJA-1")

        deleted = company_service.purge_company_override_data(company_a.id)

        assert deleted == {
            "overrideTokens": 1,
            "overrideRequests": 1,
            "virtualTokenSecrets": 1,
            "auditLogs": 3,
        }
        assert db_session.query(OverrideToken).filter_by(company_id=company_a.id).count() == 0
        assert db_session.query(OverrideRequest).filter_by(company_id=company_b.id).count() == 1
        assert db_session.query(VirtualTokenSecret).filter_by(company_id=company_b.id).count() == 1

        remaining = db_session.query(AuditLog).filter_by(company_id=company_a.id).all()
        assert len(remaining) == 1
        assert remaining[0].action_code == "DANGER_PURGE"
        assert remaining[0].result == "SUCCESS"
        assert remaining[0].meta["deleted"] == deleted
        assert db_session.query(AuditLog).filter_by(company_id=company_b.id).count() == 3

    def test_unknown_company(self, db_session):
        with pytest.raises(ValueError):
            company_service.purge_company_override_data(99999)
