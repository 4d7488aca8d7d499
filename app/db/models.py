"""
SQLAlchemy ORM models for the medicine registry ledger.
Rows are only ever inserted (batch status and address bindings excepted);
nothing is deleted except a stale address on rebind.
"""
from sqlalchemy import (
    BigInteger, Column, Integer, String, DateTime, ForeignKey, Enum, JSON,
    UniqueConstraint, Index
)
from sqlalchemy.sql import func
import enum

from app.db.session import Base


# ============= ENUMS =============

class Role(str, enum.Enum):
    ADMINISTRATOR = "administrator"
    MANUFACTURER = "manufacturer"
    REFEREE = "referee"


class BatchStatus(str, enum.Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    IN_REVISION = "in_revision"


class AuditKind(str, enum.Enum):
    BATCH_CREATED = "batch_created"
    MEDICINE_IN_BATCH = "medicine_in_batch"
    STATUS_UPDATED = "status_updated"
    MEDICINE_REVOKED = "medicine_revoked"
    NAME_BOUND = "name_bound"
    ROLE_GRANTED = "role_granted"


# Using values_callable to ensure we store enum values (lowercase) not names (UPPERCASE)
def enum_values(enum_cls):
    return [e.value for e in enum_cls]

RoleType = Enum(
    Role,
    name='role',
    values_callable=enum_values,
)
BatchStatusType = Enum(
    BatchStatus,
    name='batchstatus',
    values_callable=enum_values,
)

ADDRESS_LENGTH = 128
NAME_LENGTH = 255

# Largest value a BIGINT column holds; medicine and batch ids above it are never stored
MAX_LEDGER_ID = 2**63 - 1


# ============= ROLES =============

class RoleGrant(Base):
    """A role held by a principal address."""
    __tablename__ = "role_grants"

    id = Column(Integer, primary_key=True)
    address = Column(String(ADDRESS_LENGTH), nullable=False, index=True)
    role = Column(RoleType, nullable=False)
    granted_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('address', 'role', name='uq_role_grant'),
    )


# ============= PHARMA DIRECTORY =============

class PharmaAddress(Base):
    """One address in a manufacturer name's ordered address list."""
    __tablename__ = "pharma_addresses"

    id = Column(Integer, primary_key=True)
    name = Column(String(NAME_LENGTH), nullable=False, index=True)
    address = Column(String(ADDRESS_LENGTH), nullable=False)

    __table_args__ = (
        UniqueConstraint('name', 'address', name='uq_pharma_address'),
    )


class AddressName(Base):
    """Reverse binding: each address maps to exactly one name."""
    __tablename__ = "address_names"

    address = Column(String(ADDRESS_LENGTH), primary_key=True)
    name = Column(String(NAME_LENGTH), nullable=False)
    bound_at = Column(DateTime(timezone=True), nullable=False)


# ============= BATCHES =============

class Batch(Base):
    """Manufacturing batch. Ids are assigned sequentially from 1."""
    __tablename__ = "batches"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    manufacturer = Column(String(ADDRESS_LENGTH), nullable=False, index=True)
    status = Column(BatchStatusType, nullable=False, default=BatchStatus.ENABLED)
    created_at = Column(DateTime(timezone=True), nullable=False)


class BatchMedicine(Base):
    """Medicine ids of a batch, in submission order."""
    __tablename__ = "batch_medicines"

    id = Column(Integer, primary_key=True)
    batch_id = Column(BigInteger, ForeignKey("batches.id"), nullable=False)
    position = Column(Integer, nullable=False)
    medicine_id = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint('batch_id', 'position', name='uq_batch_medicine_position'),
    )


class MedicineBatchByAddress(Base):
    """(manufacturer address, medicine id) -> batch id."""
    __tablename__ = "medicine_batches_by_address"

    address = Column(String(ADDRESS_LENGTH), primary_key=True)
    medicine_id = Column(BigInteger, primary_key=True)
    batch_id = Column(BigInteger, ForeignKey("batches.id"), nullable=False)


class MedicineBatchByName(Base):
    """(manufacturer name, medicine id) -> batch id."""
    __tablename__ = "medicine_batches_by_name"

    name = Column(String(NAME_LENGTH), primary_key=True)
    medicine_id = Column(BigInteger, primary_key=True)
    batch_id = Column(BigInteger, ForeignKey("batches.id"), nullable=False)


# ============= AUDIT LOG =============

class AuditRecordRow(Base):
    """Append-only audit trail. The primary key is the append sequence."""
    __tablename__ = "audit_records"

    seq = Column(Integer, primary_key=True, autoincrement=False)
    kind = Column(String(50), nullable=False)
    fields = Column(JSON, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_audit_records_kind_seq', 'kind', 'seq'),
    )
