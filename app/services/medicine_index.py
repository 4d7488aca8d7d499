"""
Medicine index: resolves (manufacturer, medicine id) to the producing batch,
keyed both by manufacturer address and by manufacturer name.

Both keyspaces are written only by the batch registry, in the same
transaction, so they always agree for an unchanged name binding.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.security import normalize_address
from app.db.models import (
    Batch, BatchStatus, MedicineBatchByAddress, MedicineBatchByName, MAX_LEDGER_ID
)
from app.db.session import LedgerStore

# Batch ids start at 1, so 0 is a safe "unknown medicine" sentinel
UNKNOWN_BATCH = 0


def is_storable_id(value) -> bool:
    """Positive integer that fits the ledger's id columns."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 < value <= MAX_LEDGER_ID
    )


class MedicineIndex:

    def __init__(self, store: LedgerStore):
        self.store = store

    def record(self, db: Session, address: str, name: str, medicine_id: int, batch_id: int):
        """Point both keyspaces at ``batch_id``. Latest batch wins."""
        db.merge(MedicineBatchByAddress(
            address=normalize_address(address), medicine_id=medicine_id, batch_id=batch_id
        ))
        db.merge(MedicineBatchByName(name=name, medicine_id=medicine_id, batch_id=batch_id))
        # merge only sees flushed rows; a repeated id in the same batch must update, not insert
        db.flush()

    def batch_id_for(self, address: str, medicine_id: int, db: Optional[Session] = None) -> int:
        key = (normalize_address(address), medicine_id)
        return self._lookup(MedicineBatchByAddress, key, db)

    def batch_id_for_name(self, name: str, medicine_id: int, db: Optional[Session] = None) -> int:
        return self._lookup(MedicineBatchByName, (name, medicine_id), db)

    def is_invalid(self, address: str, medicine_id: int) -> bool:
        """True if the medicine is unknown or its batch is disabled."""
        with self.store.snapshot() as db:
            return self._invalid(db, self.batch_id_for(address, medicine_id, db))

    def is_invalid_by_name(self, name: str, medicine_id: int) -> bool:
        with self.store.snapshot() as db:
            return self._invalid(db, self.batch_id_for_name(name, medicine_id, db))

    def _lookup(self, model, key, db: Optional[Session]) -> int:
        if not is_storable_id(key[1]):
            return UNKNOWN_BATCH
        if db is None:
            with self.store.snapshot() as snap:
                return self._lookup(model, key, snap)
        entry = db.get(model, key)
        return entry.batch_id if entry else UNKNOWN_BATCH

    @staticmethod
    def _invalid(db: Session, batch_id: int) -> bool:
        if batch_id == UNKNOWN_BATCH:
            return True
        batch = db.get(Batch, batch_id)
        return batch is None or batch.status == BatchStatus.DISABLED
