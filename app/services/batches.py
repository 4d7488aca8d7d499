"""
Batch registry: batch records, their lifecycle, and the per-manufacturer
and per-batch lists.

Batch status state machine (all transitions referee-triggered, no terminal state):

    enabled <-> disabled <-> in_revision <-> enabled
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import BatchNotFound, InvalidMedicineId, NameNotSet
from app.core.logging import get_logger
from app.core.security import normalize_address
from app.db.models import AuditKind, Batch, BatchMedicine, BatchStatus, Role
from app.db.session import LedgerStore
from app.services.audit_log import AuditLog
from app.services.directory import PharmaDirectory
from app.services.medicine_index import MedicineIndex, is_storable_id
from app.services.roles import Authorizer

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchInfo:
    id: int
    manufacturer: str
    status: BatchStatus
    created_at: datetime


def _validate_medicine_ids(medicine_ids: Iterable[int]) -> List[int]:
    ids = list(medicine_ids)
    for medicine_id in ids:
        if not is_storable_id(medicine_id):
            raise InvalidMedicineId(f"Invalid medicine id: {medicine_id!r}")
    return ids


class BatchRegistry:
    """Owns batch records and keeps the medicine index in lockstep."""

    def __init__(
        self,
        store: LedgerStore,
        authorizer: Authorizer,
        directory: PharmaDirectory,
        index: MedicineIndex,
        audit: AuditLog,
    ):
        self.store = store
        self.authorizer = authorizer
        self.directory = directory
        self.index = index
        self.audit = audit

    def create_batch(self, caller: str, manufacturer: str, medicine_ids: Iterable[int]) -> int:
        """
        Register a new batch for ``manufacturer`` containing ``medicine_ids``.

        The caller must be the manufacturer itself or the administrator, and
        the manufacturer must hold the manufacturer role and a bound name.
        Creation is all-or-nothing: a single bad id rejects the whole call.

        Returns:
            The newly allocated batch id.
        """
        manufacturer = normalize_address(manufacturer)

        with self.store.transaction() as db:
            self.authorizer.require_any(db, caller, identity=manufacturer, roles=(Role.ADMINISTRATOR,))
            self.authorizer.require(db, Role.MANUFACTURER, manufacturer)

            name = self.directory.name_in(db, manufacturer)
            if not name:
                raise NameNotSet(f"No name bound to {manufacturer}")

            ids = _validate_medicine_ids(medicine_ids)

            batch_id = self._next_batch_id(db)
            now = datetime.now(timezone.utc)
            db.add(Batch(id=batch_id, manufacturer=manufacturer, status=BatchStatus.ENABLED, created_at=now))
            db.flush()

            for position, medicine_id in enumerate(ids):
                db.add(BatchMedicine(batch_id=batch_id, position=position, medicine_id=medicine_id))
                self.index.record(db, manufacturer, name, medicine_id, batch_id)
                self.audit.record(
                    db,
                    AuditKind.MEDICINE_IN_BATCH,
                    {"medicineId": medicine_id, "batchId": batch_id, "manufacturer": manufacturer},
                    now,
                )

            self.audit.record(
                db,
                AuditKind.BATCH_CREATED,
                {
                    "batchId": batch_id,
                    "manufacturer": manufacturer,
                    "name": name,
                    "timestamp": now.isoformat(),
                },
                now,
            )

        logger.info(f"Batch {batch_id} created by {manufacturer} with {len(ids)} medicines")
        return batch_id

    def set_status(self, caller: str, batch_id: int, new_status: BatchStatus):
        """Overwrite a batch's status. Referee only; any transition is allowed."""
        new_status = BatchStatus(new_status)
        with self.store.transaction() as db:
            self.authorizer.require(db, Role.REFEREE, caller)
            self._apply_status(db, batch_id, new_status)

    def set_status_by_name(self, caller: str, pharma_name: str, medicine_id: int) -> int:
        """
        Disable the batch that produced ``medicine_id`` under ``pharma_name``.

        Returns:
            The id of the disabled batch.
        """
        with self.store.transaction() as db:
            self.authorizer.require(db, Role.REFEREE, caller)
            batch_id = self.index.batch_id_for_name(pharma_name, medicine_id, db)
            if not batch_id:
                raise BatchNotFound(f"No batch for medicine {medicine_id} of '{pharma_name}'")

            self.audit.record(
                db,
                AuditKind.MEDICINE_REVOKED,
                {"medicineId": medicine_id, "pharmaName": pharma_name, "batchId": batch_id},
                datetime.now(timezone.utc),
            )
            self._apply_status(db, batch_id, BatchStatus.DISABLED)
        return batch_id

    # ---- queries ----

    def get_batch(self, batch_id: int) -> BatchInfo:
        with self.store.snapshot() as db:
            batch = self._find(db, batch_id)
            return BatchInfo(
                id=batch.id,
                manufacturer=batch.manufacturer,
                status=BatchStatus(batch.status),
                created_at=batch.created_at,
            )

    def batches_of(self, address: str) -> List[int]:
        with self.store.snapshot() as db:
            rows = db.query(Batch.id).filter(
                Batch.manufacturer == normalize_address(address)
            ).order_by(Batch.id).all()
            return [r[0] for r in rows]

    def medicines_of(self, batch_id: int) -> List[int]:
        if not is_storable_id(batch_id):
            return []
        with self.store.snapshot() as db:
            rows = db.query(BatchMedicine.medicine_id).filter(
                BatchMedicine.batch_id == batch_id
            ).order_by(BatchMedicine.position).all()
            return [r[0] for r in rows]

    # ---- internals ----

    @staticmethod
    def _next_batch_id(db: Session) -> int:
        # Batches are never deleted, so max + 1 under the write lock never reuses an id
        return (db.query(func.max(Batch.id)).scalar() or 0) + 1

    @staticmethod
    def _find(db: Session, batch_id: int) -> Batch:
        batch = db.get(Batch, batch_id) if is_storable_id(batch_id) else None
        if batch is None:
            raise BatchNotFound(f"Batch {batch_id} does not exist")
        return batch

    def _apply_status(self, db: Session, batch_id: int, new_status: BatchStatus):
        batch = self._find(db, batch_id)

        previous = batch.status
        batch.status = new_status
        self.audit.record(
            db,
            AuditKind.STATUS_UPDATED,
            {"batchId": batch_id, "status": new_status.value},
            datetime.now(timezone.utc),
        )
        logger.info(f"Batch {batch_id} status {BatchStatus(previous).value} -> {new_status.value}")
