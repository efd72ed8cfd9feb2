# Overview: Pytest coverage for operator CLI commands.

from poscloud.models import Company


class TestCompanyCommands:
    def test_create_and_resolve(self, app, db_session):
        runner = app.test_cli_runner()

        created = runner.invoke(args=["companies", "create", "--name", "Colmado Central", "--rnc", "131123456"])
        assert "PASS Created company" in created.output

        company = db_session.query(Company).filter_by(rnc="131123456").one()
        resolved = runner.invoke(args=["companies", "resolve", "--rnc", "1-31-12345-6"])
        assert f"PASS Company ID: {company.id}" in resolved.output

    def test_purge_requires_confirmation(self, app, company_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["companies", "purge-overrides", "--company-id", str(company_a.id)])
        assert "Confirmation required" in result.output

    def test_requests_bad_status(self, app, company_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["overrides", "requests", "--company-id", str(company_a.id), "--status", "DONE"])
        assert result.output.startswith("FAIL")
