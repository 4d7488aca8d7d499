"""
Append-only audit trail of registry state transitions.

Records are written inside the caller's ledger transaction, so they commit
or vanish together with the change they describe. Subscribers are notified
only after commit, in append order.
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.logging import get_logger, audit_logger
from app.db.models import AuditKind, AuditRecordRow
from app.db.session import LedgerStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    seq: int
    kind: AuditKind
    fields: Dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_row(cls, row: AuditRecordRow) -> "AuditRecord":
        timestamp = row.timestamp
        if timestamp.tzinfo is None:
            # SQLite drops the offset; everything is stored in UTC
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(seq=row.seq, kind=AuditKind(row.kind), fields=dict(row.fields), timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "kind": self.kind.value,
            "fields": self.fields,
            "timestamp": self.timestamp.isoformat(),
        }


Subscriber = Callable[[AuditRecord], None]


class AuditLog:
    """Append-only sequence with poll and subscribe access."""

    def __init__(self, store: LedgerStore):
        self.store = store
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def record(self, db: Session, kind: AuditKind, fields: Dict[str, Any], timestamp: datetime) -> AuditRecord:
        """Append a record inside the open transaction ``db``."""
        pending = db.info.setdefault("audit_pending", [])
        if pending:
            seq = pending[-1].seq + 1
        else:
            seq = (db.query(func.max(AuditRecordRow.seq)).scalar() or 0) + 1

        row = AuditRecordRow(seq=seq, kind=kind.value, fields=fields, timestamp=timestamp)
        db.add(row)

        entry = AuditRecord(seq=seq, kind=kind, fields=dict(fields), timestamp=timestamp)
        if not pending:
            self.store.after_commit(db, lambda: self._publish(db.info.pop("audit_pending", [])))
        pending.append(entry)
        return entry

    def poll(self, after: int = 0, limit: int = 100, kind: Optional[AuditKind] = None) -> List[AuditRecord]:
        """Committed records with ``seq > after``, oldest first."""
        with self.store.snapshot() as db:
            query = db.query(AuditRecordRow).filter(AuditRecordRow.seq > after)
            if kind is not None:
                query = query.filter(AuditRecordRow.kind == kind.value)
            rows = query.order_by(AuditRecordRow.seq).limit(limit).all()
            return [AuditRecord.from_row(row) for row in rows]

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback for every future committed record. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, records: List[AuditRecord]):
        with self._lock:
            subscribers = list(self._subscribers)

        for entry in records:
            audit_logger.log(entry.kind.value, entry.seq, entry.fields)
            for callback in subscribers:
                try:
                    callback(entry)
                except Exception:
                    logger.exception(f"Audit subscriber failed on record {entry.seq}")
