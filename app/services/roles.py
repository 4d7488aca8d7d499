"""
Role memberships and the authorization capability handed to mutating operations.
"""
from datetime import datetime, timezone
from typing import Optional, Set

from sqlalchemy.orm import Session

from app.core.errors import InvalidInput, NotAuthorized
from app.core.logging import get_logger
from app.core.security import is_null_address, normalize_address
from app.db.models import AuditKind, Role, RoleGrant
from app.db.session import LedgerStore
from app.services.audit_log import AuditLog

logger = get_logger(__name__)

# Roles an administrator may hand out; the administrator itself is fixed at genesis.
GRANTABLE_ROLES = frozenset({Role.MANUFACTURER, Role.REFEREE})


class RoleManager:
    """Holds role memberships and answers authorization queries."""

    def __init__(self, store: LedgerStore, audit: AuditLog):
        self.store = store
        self.audit = audit
        self.authorizer = Authorizer(self)

    # ---- queries ----

    def has_role(self, role: Role, principal: str, db: Optional[Session] = None) -> bool:
        if db is not None:
            return self._has_role(db, role, principal)
        with self.store.snapshot() as snap:
            return self._has_role(snap, role, principal)

    def is_admin(self, principal: str, db: Optional[Session] = None) -> bool:
        return self.has_role(Role.ADMINISTRATOR, principal, db)

    def roles_of(self, principal: str) -> Set[Role]:
        with self.store.snapshot() as db:
            rows = db.query(RoleGrant.role).filter(
                RoleGrant.address == normalize_address(principal)
            ).all()
            return {Role(r[0]) for r in rows}

    # ---- mutations ----

    def grant(self, caller: str, role: Role, principal: str):
        """Grant ``role`` to ``principal``. Administrator only."""
        with self.store.transaction() as db:
            self.grant_in(db, caller, role, principal)

    def grant_in(self, db: Session, caller: str, role: Role, principal: str):
        """Grant inside an already open transaction."""
        self.authorizer.require(db, Role.ADMINISTRATOR, caller)
        if is_null_address(principal):
            raise InvalidInput("Cannot grant a role to the null address")
        if role not in GRANTABLE_ROLES:
            raise InvalidInput(f"Role {role.value} cannot be granted")
        self._assign(db, role, normalize_address(principal))

    def bootstrap(self, admin_address: str) -> bool:
        """
        Install the genesis administrator.

        Only acts on a ledger with no administrator; an existing ledger keeps
        whatever administrator it was created with. Returns True if granted.
        """
        if is_null_address(admin_address):
            raise InvalidInput("Genesis administrator cannot be the null address")
        admin_address = normalize_address(admin_address)

        with self.store.transaction() as db:
            existing = db.query(RoleGrant).filter(RoleGrant.role == Role.ADMINISTRATOR).first()
            if existing:
                if existing.address != admin_address:
                    logger.warning(
                        f"Administrator already set to {existing.address}; "
                        f"ignoring configured {admin_address}"
                    )
                return False
            self._assign(db, Role.ADMINISTRATOR, admin_address)

        logger.info(f"Genesis administrator installed: {admin_address}")
        return True

    # ---- internals ----

    def _has_role(self, db: Session, role: Role, principal: str) -> bool:
        return db.query(RoleGrant.id).filter(
            RoleGrant.address == normalize_address(principal),
            RoleGrant.role == role,
        ).first() is not None

    def _assign(self, db: Session, role: Role, address: str):
        if self._has_role(db, role, address):
            return
        db.add(RoleGrant(address=address, role=role))
        db.flush()
        self.audit.record(
            db,
            AuditKind.ROLE_GRANTED,
            {"role": role.value, "address": address},
            datetime.now(timezone.utc),
        )


class Authorizer:
    """Authorization capability injected into mutating operations."""

    def __init__(self, roles: RoleManager):
        self.roles = roles

    def require(self, db: Session, role: Role, principal: str):
        if not self.roles.has_role(role, principal, db):
            raise NotAuthorized(f"{role.value} role required")

    def require_any(self, db: Session, principal: str, *, roles=(), identity: Optional[str] = None):
        """Pass if principal equals ``identity`` or holds any of ``roles``."""
        if identity is not None and normalize_address(principal) == normalize_address(identity):
            return
        if any(self.roles.has_role(role, principal, db) for role in roles):
            return
        raise NotAuthorized("Caller is neither the owner nor an authorized role")

    def grant(self, db: Session, role: Role, principal: str):
        """Side-effect grant performed by another authorized operation."""
        self.roles._assign(db, role, normalize_address(principal))
