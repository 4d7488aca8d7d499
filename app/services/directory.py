"""
Pharma directory: manufacturer display names and their identity addresses.
"""
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from app.core.errors import InvalidInput
from app.core.logging import get_logger
from app.core.security import is_null_address, normalize_address
from app.db.models import AddressName, AuditKind, PharmaAddress, Role
from app.db.session import LedgerStore
from app.services.audit_log import AuditLog
from app.services.roles import Authorizer

logger = get_logger(__name__)


class PharmaDirectory:
    """Maps each name to many addresses and each address to one name."""

    def __init__(self, store: LedgerStore, authorizer: Authorizer, audit: AuditLog):
        self.store = store
        self.authorizer = authorizer
        self.audit = audit

    def bind_name(self, caller: str, address: str, name: str):
        """
        Bind ``address`` to ``name`` and make it a manufacturer.

        An address already bound to another name is moved: it leaves the old
        name's address list, so every address appears under exactly one name.
        """
        with self.store.transaction() as db:
            self.authorizer.require(db, Role.ADMINISTRATOR, caller)
            if is_null_address(address):
                raise InvalidInput("Cannot bind the null address")
            if name is None or not name.strip():
                raise InvalidInput("Name must not be empty")

            address = normalize_address(address)
            now = datetime.now(timezone.utc)

            binding = db.get(AddressName, address)
            if binding is None:
                db.add(AddressName(address=address, name=name, bound_at=now))
            else:
                if binding.name != name:
                    logger.info(f"Rebinding {address} from '{binding.name}' to '{name}'")
                    db.query(PharmaAddress).filter(
                        PharmaAddress.name == binding.name,
                        PharmaAddress.address == address,
                    ).delete(synchronize_session=False)
                binding.name = name
                binding.bound_at = now

            listed = db.query(PharmaAddress.id).filter(
                PharmaAddress.name == name,
                PharmaAddress.address == address,
            ).first()
            if listed is None:
                db.add(PharmaAddress(name=name, address=address))

            self.authorizer.grant(db, Role.MANUFACTURER, address)
            self.audit.record(db, AuditKind.NAME_BOUND, {"address": address, "name": name}, now)

    def name_of(self, address: str) -> str:
        with self.store.snapshot() as db:
            return self.name_in(db, address)

    def name_in(self, db: Session, address: str) -> str:
        binding = db.get(AddressName, normalize_address(address))
        return binding.name if binding else ""

    def addresses_of(self, name: str) -> List[str]:
        with self.store.snapshot() as db:
            rows = db.query(PharmaAddress.address).filter(
                PharmaAddress.name == name
            ).order_by(PharmaAddress.id).all()
            return [r[0] for r in rows]
