"""
Batch lifecycle and medicine verification API routes.
"""
from typing import List
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.core.rbac import get_registry, require_referee
from app.core.security import get_caller_address
from app.db.models import BatchStatus
from app.services.registry import MedicineRegistry

router = APIRouter(prefix="/api", tags=["Batches"])


# ============= SCHEMAS =============

class BatchCreate(BaseModel):
    manufacturer: str
    medicine_ids: List[int]


class BatchRef(BaseModel):
    batch_id: int


class BatchResponse(BaseModel):
    id: int
    manufacturer: str
    status: BatchStatus
    created_at: datetime
    medicine_ids: List[int]


class StatusUpdate(BaseModel):
    status: BatchStatus


class RevokeRequest(BaseModel):
    pharma_name: str
    medicine_id: int


class ManufacturerBatches(BaseModel):
    address: str
    batch_ids: List[int]


class ValidityResponse(BaseModel):
    medicine_id: int
    batch_id: int
    is_invalid: bool


# ============= ROUTES =============

@router.post("/batches", response_model=BatchRef, status_code=status.HTTP_201_CREATED)
async def create_batch(
    payload: BatchCreate,
    caller: str = Depends(get_caller_address),
    registry: MedicineRegistry = Depends(get_registry),
):
    """Register a batch. Callable by the manufacturer itself or the administrator."""
    batch_id = registry.create_batch(caller, payload.manufacturer, payload.medicine_ids)
    return BatchRef(batch_id=batch_id)


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: int, registry: MedicineRegistry = Depends(get_registry)):
    batch = registry.get_batch(batch_id)
    return BatchResponse(
        id=batch.id,
        manufacturer=batch.manufacturer,
        status=batch.status,
        created_at=batch.created_at,
        medicine_ids=registry.medicines_of(batch_id),
    )


@router.put("/batches/{batch_id}/status", status_code=status.HTTP_204_NO_CONTENT)
async def set_batch_status(
    batch_id: int,
    payload: StatusUpdate,
    caller: str = Depends(require_referee),
    registry: MedicineRegistry = Depends(get_registry),
):
    """Move a batch to any status (referee only)."""
    registry.set_status(caller, batch_id, payload.status)


@router.post("/batches/revoke", response_model=BatchRef)
async def revoke_medicine_batch(
    payload: RevokeRequest,
    caller: str = Depends(require_referee),
    registry: MedicineRegistry = Depends(get_registry),
):
    """Disable the batch a medicine belongs to, resolved through the manufacturer name."""
    batch_id = registry.set_status_by_name(caller, payload.pharma_name, payload.medicine_id)
    return BatchRef(batch_id=batch_id)


@router.get("/manufacturers/{address}/batches", response_model=ManufacturerBatches)
async def list_manufacturer_batches(address: str, registry: MedicineRegistry = Depends(get_registry)):
    return ManufacturerBatches(address=address, batch_ids=registry.batches_of(address))


@router.get("/medicines/{address}/{medicine_id}/validity", response_model=ValidityResponse)
async def check_medicine(address: str, medicine_id: int, registry: MedicineRegistry = Depends(get_registry)):
    return ValidityResponse(
        medicine_id=medicine_id,
        batch_id=registry.index.batch_id_for(address, medicine_id),
        is_invalid=registry.is_invalid(address, medicine_id),
    )


@router.get("/medicines/by-name/{name}/{medicine_id}/validity", response_model=ValidityResponse)
async def check_medicine_by_name(name: str, medicine_id: int, registry: MedicineRegistry = Depends(get_registry)):
    return ValidityResponse(
        medicine_id=medicine_id,
        batch_id=registry.index.batch_id_for_name(name, medicine_id),
        is_invalid=registry.is_invalid_by_name(name, medicine_id),
    )
