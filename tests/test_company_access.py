"""
Tests for the company module access ledger.

These tests verify:
- Granting is idempotent and validates company and module
- Revoking disables the grant and removes the company's employee permissions
- A failed revoke leaves both the grant and the permissions untouched
- Module lookups prefer an ID match over a slug match
"""

import pytest
from sqlalchemy.exc import OperationalError

from app.features.modules import ledger, registry
from app.features.modules.exceptions import (
    CascadeTransactionFailed,
    CompanyNotFound,
    ModuleNotFound,
)
from app.features.modules.models import CompanyModuleAccess


class TestGrantModuleToCompany:
    """Test suite for granting modules to companies."""

    async def test_grant_creates_enabled_access(self, db, factory, access_enabled):
        company = await factory.company()
        module = await factory.module("ai-agent")

        access = await ledger.grant_module_to_company(db, company.id, "ai-agent")

        assert access.is_enabled is True
        assert access.module.slug == "ai-agent"
        assert await access_enabled(company.id, module.id) is True

    async def test_grant_twice_is_noop(self, db, factory, audit_actions):
        company = await factory.company()
        module = await factory.module("clients")

        first = await ledger.grant_module_to_company(db, company.id, module.id)
        second = await ledger.grant_module_to_company(db, company.id, "clients")

        assert first.id == second.id
        assert second.is_enabled is True
        assert len(await ledger.list_company_modules(db, company.id)) == 1
        assert await audit_actions("company_module_access") == ["grant"]

    async def test_grant_reenables_disabled_access(self, db, factory, access_enabled):
        company = await factory.company()
        module = await factory.module("tasks")
        existing = await factory.access(company, module, is_enabled=False)

        access = await ledger.grant_module_to_company(db, company.id, "tasks")

        assert access.id == existing.id
        assert await access_enabled(company.id, module.id) is True

    async def test_grant_unknown_company(self, db, factory):
        await factory.module("tasks")

        with pytest.raises(CompanyNotFound):
            await ledger.grant_module_to_company(db, "01HZZZZZZZZZZZZZZZZZZZZZZZ", "tasks")

    async def test_grant_unknown_module(self, db, factory):
        company = await factory.company()

        with pytest.raises(ModuleNotFound):
            await ledger.grant_module_to_company(db, company.id, "does-not-exist")

    async def test_grant_inactive_module_rejected(self, db, factory, access_enabled):
        company = await factory.company()
        module = await factory.module("offers", is_active=False)

        with pytest.raises(ModuleNotFound) as exc_info:
            await ledger.grant_module_to_company(db, company.id, "offers")

        assert exc_info.value.details["inactive"] is True
        assert await access_enabled(company.id, module.id) is None


class TestRevokeModuleFromCompany:
    """Test suite for revoking modules and the permission cascade."""

    async def test_revoke_removes_permissions_of_current_employees(
        self, db, factory, count_permissions, access_enabled
    ):
        acme = await factory.company("Acme")
        globex = await factory.company("Globex")
        ai_agent = await factory.module("ai-agent")
        clients = await factory.module("clients")
        for company in (acme, globex):
            await factory.access(company, ai_agent)
            await factory.access(company, clients)

        alice = await factory.employee("alice", acme)
        bob = await factory.employee("bob", acme)
        carol = await factory.employee("carol", globex)
        for employee in (alice, bob, carol):
            await factory.permission(employee, ai_agent)
        await factory.permission(alice, clients)

        access = await ledger.revoke_module_from_company(db, acme.id, "ai-agent")

        assert access.is_enabled is False
        assert await access_enabled(acme.id, ai_agent.id) is False
        assert await count_permissions(alice.id, ai_agent.id) == 0
        assert await count_permissions(bob.id, ai_agent.id) == 0
        # Other companies and other modules are untouched
        assert await count_permissions(carol.id, ai_agent.id) == 1
        assert await count_permissions(alice.id, clients.id) == 1
        assert await access_enabled(globex.id, ai_agent.id) is True

    async def test_revoke_follows_current_company(self, db, factory, count_permissions):
        acme = await factory.company("Acme")
        globex = await factory.company("Globex")
        zus = await factory.module("zus")
        await factory.access(acme, zus)
        await factory.access(globex, zus)
        dave = await factory.employee("dave", acme)
        await factory.permission(dave, zus)
        await factory.move(dave.id, globex.id)

        await ledger.revoke_module_from_company(db, acme.id, "zus")

        # dave now works for globex, whose grant is still enabled
        assert await count_permissions(dave.id, zus.id) == 1

    async def test_revoke_missing_grant_records_disabled_access(self, db, factory, access_enabled):
        company = await factory.company()
        module = await factory.module("settlements")

        access = await ledger.revoke_module_from_company(db, company.id, "settlements")

        assert access.is_enabled is False
        assert await access_enabled(company.id, module.id) is False

    async def test_revoke_is_idempotent(self, db, factory, access_enabled, audit_actions):
        company = await factory.company()
        module = await factory.module("email-client")
        await factory.access(company, module)

        first = await ledger.revoke_module_from_company(db, company.id, module.id)
        second = await ledger.revoke_module_from_company(db, company.id, module.id)

        assert first.id == second.id
        assert await access_enabled(company.id, module.id) is False
        assert await audit_actions("company_module_access") == ["revoke", "revoke"]

    async def test_revoke_racing_a_concurrent_grant(
        self, db, factory, session_factory, monkeypatch, count_permissions, access_enabled
    ):
        company = await factory.company()
        module = await factory.module("time-tracking")
        employee = await factory.employee("gwen", company)
        await factory.permission(employee, module)
        company_id, module_id, employee_id = company.id, module.id, employee.id

        real_get_company_access = ledger.get_company_access
        raced = []

        async def get_access_then_concurrent_grant(db, company_id, module_id):
            found = await real_get_company_access(db, company_id, module_id)
            if not raced:
                raced.append(True)
                async with session_factory() as other:
                    other.add(CompanyModuleAccess(company_id=company_id, module_id=module_id, is_enabled=True))
                    await other.commit()
            return found

        monkeypatch.setattr(ledger, "get_company_access", get_access_then_concurrent_grant)

        access = await ledger.revoke_module_from_company(db, company_id, "time-tracking")

        assert access.is_enabled is False
        assert await access_enabled(company_id, module_id) is False
        assert await count_permissions(employee_id, module_id) == 0
        assert len(await ledger.list_company_modules(db, company_id)) == 1

    async def test_revoke_accepts_inactive_module(self, db, factory, access_enabled):
        company = await factory.company()
        module = await factory.module("offers", is_active=False)
        await factory.access(company, module)

        await ledger.revoke_module_from_company(db, company.id, "offers")

        assert await access_enabled(company.id, module.id) is False

    async def test_regrant_does_not_restore_permissions(self, db, factory, count_permissions):
        company = await factory.company()
        module = await factory.module("ai-agent")
        await factory.access(company, module)
        employee = await factory.employee("erin", company)
        await factory.permission(employee, module)

        await ledger.revoke_module_from_company(db, company.id, "ai-agent")
        await ledger.grant_module_to_company(db, company.id, "ai-agent")

        assert await count_permissions(employee.id, module.id) == 0

    async def test_failed_cascade_rolls_back_everything(
        self, db, factory, monkeypatch, count_permissions, access_enabled
    ):
        company = await factory.company()
        module = await factory.module("ai-agent")
        await factory.access(company, module)
        employee = await factory.employee("frank", company)
        await factory.permission(employee, module)
        company_id, module_id, employee_id = company.id, module.id, employee.id

        async def failing_cascade(db, company_id, module_id):
            raise OperationalError("DELETE FROM user_module_permissions", {}, Exception("database is locked"))

        monkeypatch.setattr(ledger, "_cascade_revoke", failing_cascade)

        with pytest.raises(CascadeTransactionFailed) as exc_info:
            await ledger.revoke_module_from_company(db, company_id, "ai-agent")

        assert exc_info.value.details["company_id"] == company_id
        assert exc_info.value.details["module_id"] == module_id
        assert await access_enabled(company_id, module_id) is True
        assert await count_permissions(employee_id, module_id) == 1

    async def test_revoke_unknown_company(self, db, factory):
        await factory.module("tasks")

        with pytest.raises(CompanyNotFound):
            await ledger.revoke_module_from_company(db, "01HZZZZZZZZZZZZZZZZZZZZZZZ", "tasks")


class TestListCompanyModules:
    """Test suite for listing a company's module access."""

    async def test_lists_enabled_and_disabled(self, db, factory):
        company = await factory.company()
        tasks = await factory.module("tasks")
        zus = await factory.module("zus")
        await factory.access(company, tasks, is_enabled=True)
        await factory.access(company, zus, is_enabled=False)

        records = await ledger.list_company_modules(db, company.id)

        assert {(r.module.slug, r.is_enabled) for r in records} == {("tasks", True), ("zus", False)}

    async def test_unknown_company(self, db):
        with pytest.raises(CompanyNotFound):
            await ledger.list_company_modules(db, "01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestResolveModule:
    """Test suite for looking up modules by ID or slug."""

    async def test_id_match_wins_over_slug_match(self, db, factory):
        tasks = await factory.module("tasks")
        # A slug that happens to equal another module's ID
        shadow = await factory.module(tasks.id)

        found = await registry.resolve_module(db, tasks.id)

        assert found.id == tasks.id
        assert found.id != shadow.id

    async def test_slug_lookup_still_works(self, db, factory):
        tasks = await factory.module("tasks")

        found = await registry.resolve_module(db, "tasks")

        assert found.id == tasks.id
