"""
Shared fixtures: a fresh ledger per test on a temporary SQLite file.
"""
import pytest

from app.db import models
from app.services.registry import MedicineRegistry

ADMIN = "0xad00000000000000000000000000000000000001"
ACME = "0xac00000000000000000000000000000000000002"
ACME_PLANT_2 = "0xac00000000000000000000000000000000000003"
GLOBEX = "0x9100000000000000000000000000000000000004"
REFEREE = "0x4e00000000000000000000000000000000000005"
STRANGER = "0x5700000000000000000000000000000000000006"
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"


@pytest.fixture
def registry(tmp_path):
    reg = MedicineRegistry.open(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        admin_address=ADMIN,
        preflight=False,
    )
    try:
        yield reg
    finally:
        reg.close()


@pytest.fixture
def acme(registry: MedicineRegistry):
    """ACME bound to the name 'Acme' (and therefore a manufacturer)."""
    registry.bind_name(ADMIN, ACME, "Acme")
    return ACME


@pytest.fixture
def referee(registry: MedicineRegistry):
    registry.grant_referee(ADMIN, REFEREE)
    return REFEREE


def ledger_state(registry: MedicineRegistry) -> dict:
    """Every row of every ledger table, for before/after comparisons."""
    tables = [
        models.RoleGrant, models.PharmaAddress, models.AddressName, models.Batch,
        models.BatchMedicine, models.MedicineBatchByAddress, models.MedicineBatchByName,
        models.AuditRecordRow,
    ]
    state = {}
    with registry.store.snapshot() as db:
        for model in tables:
            columns = [c.name for c in model.__table__.columns]
            rows = db.query(model).all()
            state[model.__tablename__] = sorted(
                (tuple(str(getattr(row, c)) for c in columns) for row in rows)
            )
    return state
