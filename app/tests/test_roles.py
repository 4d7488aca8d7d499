"""
Tests for role grants and the genesis administrator.
"""
import pytest

from app.core.errors import InvalidInput, NotAuthorized
from app.db.models import Role
from app.services.registry import MedicineRegistry
from app.tests.conftest import ADMIN, ACME, NULL_ADDRESS, REFEREE, STRANGER, ledger_state


class TestGenesis:

    def test_initializing_caller_is_admin(self, registry: MedicineRegistry):
        assert registry.is_admin(ADMIN)
        assert registry.roles_of(ADMIN) == {Role.ADMINISTRATOR}

    def test_admin_address_is_case_insensitive(self, registry: MedicineRegistry):
        assert registry.is_admin(ADMIN.upper().replace("0X", "0x"))

    def test_bootstrap_never_replaces_existing_admin(self, registry: MedicineRegistry):
        assert registry.roles.bootstrap(STRANGER) is False
        assert registry.is_admin(ADMIN)
        assert not registry.is_admin(STRANGER)

    def test_reopening_ledger_keeps_state(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        first = MedicineRegistry.open(url, admin_address=ADMIN, preflight=False)
        first.grant_referee(ADMIN, REFEREE)
        first.close()

        second = MedicineRegistry.open(url, admin_address=STRANGER, preflight=False)
        try:
            assert second.is_admin(ADMIN)
            assert not second.is_admin(STRANGER)
            assert second.has_role(Role.REFEREE, REFEREE)
        finally:
            second.close()

    def test_null_genesis_admin_rejected(self, registry: MedicineRegistry):
        with pytest.raises(InvalidInput):
            registry.roles.bootstrap(NULL_ADDRESS)


class TestGrant:

    def test_admin_grants_referee(self, registry: MedicineRegistry):
        registry.grant_referee(ADMIN, REFEREE)

        assert registry.has_role(Role.REFEREE, REFEREE)
        assert not registry.has_role(Role.MANUFACTURER, REFEREE)

    def test_admin_grants_manufacturer(self, registry: MedicineRegistry):
        registry.grant_manufacturer(ADMIN, ACME)

        assert registry.has_role(Role.MANUFACTURER, ACME)
        assert registry.name_of(ACME) == ""

    def test_grant_is_idempotent(self, registry: MedicineRegistry):
        registry.grant_referee(ADMIN, REFEREE)
        before = ledger_state(registry)

        registry.grant_referee(ADMIN, REFEREE)

        assert ledger_state(registry) == before

    def test_non_admin_cannot_grant(self, registry: MedicineRegistry):
        registry.grant_referee(ADMIN, REFEREE)
        before = ledger_state(registry)

        with pytest.raises(NotAuthorized):
            registry.grant_referee(REFEREE, STRANGER)
        with pytest.raises(NotAuthorized):
            registry.grant_manufacturer(STRANGER, STRANGER)

        assert ledger_state(registry) == before

    @pytest.mark.parametrize("address", ["", "   ", NULL_ADDRESS, "0x0"])
    def test_null_address_rejected(self, registry: MedicineRegistry, address):
        with pytest.raises(InvalidInput):
            registry.grant_referee(ADMIN, address)

    def test_administrator_role_cannot_be_granted(self, registry: MedicineRegistry):
        with pytest.raises(InvalidInput):
            registry.roles.grant(ADMIN, Role.ADMINISTRATOR, STRANGER)
        assert not registry.is_admin(STRANGER)

    def test_grant_visible_immediately(self, registry: MedicineRegistry, acme):
        registry.create_batch(ACME, ACME, [1])
        with pytest.raises(NotAuthorized):
            registry.set_status(STRANGER, 1, "disabled")

        registry.grant_referee(ADMIN, STRANGER)
        registry.set_status(STRANGER, 1, "disabled")

        assert registry.is_invalid(ACME, 1)
