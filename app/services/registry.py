"""
MedicineRegistry facade: wires the registry components around one ledger store.
"""
from typing import Iterable, List, Optional, Set

from app.core.config import settings
from app.core.logging import get_logger
from app.db.models import AuditKind, BatchStatus, Role
from app.db.session import LedgerStore
from app.services.audit_log import AuditLog, AuditRecord
from app.services.batches import BatchInfo, BatchRegistry
from app.services.directory import PharmaDirectory
from app.services.medicine_index import MedicineIndex
from app.services.roles import RoleManager

logger = get_logger(__name__)


class MedicineRegistry:
    """Single entry point for every registry mutation and query."""

    def __init__(self, store: LedgerStore):
        self.store = store
        self.audit = AuditLog(store)
        self.roles = RoleManager(store, self.audit)
        self.directory = PharmaDirectory(store, self.roles.authorizer, self.audit)
        self.index = MedicineIndex(store)
        self.batches = BatchRegistry(store, self.roles.authorizer, self.directory, self.index, self.audit)

    @classmethod
    def open(
        cls,
        database_url: Optional[str] = None,
        admin_address: Optional[str] = None,
        preflight: bool = True,
    ) -> "MedicineRegistry":
        """Open (creating if needed) the ledger and install the genesis administrator."""
        store = LedgerStore(database_url)
        store.init_db(preflight=preflight)
        registry = cls(store)

        admin_address = admin_address or settings.ADMIN_ADDRESS
        if admin_address:
            registry.roles.bootstrap(admin_address)
        else:
            logger.warning("ADMIN_ADDRESS not set. Skipping genesis administrator bootstrap.")
        return registry

    def close(self):
        self.store.dispose()

    # ============= MUTATIONS =============

    def bind_name(self, caller: str, address: str, name: str):
        self.directory.bind_name(caller, address, name)

    def grant_manufacturer(self, caller: str, address: str):
        self.roles.grant(caller, Role.MANUFACTURER, address)

    def grant_referee(self, caller: str, address: str):
        self.roles.grant(caller, Role.REFEREE, address)

    def create_batch(self, caller: str, manufacturer: str, medicine_ids: Iterable[int]) -> int:
        return self.batches.create_batch(caller, manufacturer, medicine_ids)

    def set_status(self, caller: str, batch_id: int, new_status: BatchStatus):
        self.batches.set_status(caller, batch_id, new_status)

    def set_status_by_name(self, caller: str, pharma_name: str, medicine_id: int) -> int:
        return self.batches.set_status_by_name(caller, pharma_name, medicine_id)

    # ============= QUERIES =============

    def has_role(self, role: Role, principal: str) -> bool:
        return self.roles.has_role(role, principal)

    def is_admin(self, principal: str) -> bool:
        return self.roles.is_admin(principal)

    def roles_of(self, principal: str) -> Set[Role]:
        return self.roles.roles_of(principal)

    def name_of(self, address: str) -> str:
        return self.directory.name_of(address)

    def addresses_of(self, name: str) -> List[str]:
        return self.directory.addresses_of(name)

    def is_invalid(self, address: str, medicine_id: int) -> bool:
        return self.index.is_invalid(address, medicine_id)

    def is_invalid_by_name(self, name: str, medicine_id: int) -> bool:
        return self.index.is_invalid_by_name(name, medicine_id)

    def get_batch(self, batch_id: int) -> BatchInfo:
        return self.batches.get_batch(batch_id)

    def batches_of(self, address: str) -> List[int]:
        return self.batches.batches_of(address)

    def medicines_of(self, batch_id: int) -> List[int]:
        return self.batches.medicines_of(batch_id)

    def audit_events(self, after: int = 0, limit: int = 100, kind: Optional[AuditKind] = None) -> List[AuditRecord]:
        return self.audit.poll(after=after, limit=limit, kind=kind)
