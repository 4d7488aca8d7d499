"""
Pharma directory and role API routes.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.core.rbac import get_registry, require_admin
from app.services.registry import MedicineRegistry

router = APIRouter(prefix="/api", tags=["Pharmas"])


# ============= SCHEMAS =============

class BindNameRequest(BaseModel):
    address: str
    name: str


class GrantRequest(BaseModel):
    address: str


class NameResponse(BaseModel):
    address: str
    name: str


class AddressesResponse(BaseModel):
    name: str
    addresses: List[str]


class RolesResponse(BaseModel):
    address: str
    roles: List[str]


# ============= ROUTES =============

@router.post("/pharmas/bind", status_code=status.HTTP_204_NO_CONTENT)
async def bind_name(
    payload: BindNameRequest,
    caller: str = Depends(require_admin),
    registry: MedicineRegistry = Depends(get_registry),
):
    """Bind an address to a manufacturer name (admin only). Grants the manufacturer role."""
    registry.bind_name(caller, payload.address, payload.name)


@router.get("/pharmas/{address}/name", response_model=NameResponse)
async def get_name(address: str, registry: MedicineRegistry = Depends(get_registry)):
    return NameResponse(address=address, name=registry.name_of(address))


@router.get("/pharmas/by-name/{name}/addresses", response_model=AddressesResponse)
async def get_addresses(name: str, registry: MedicineRegistry = Depends(get_registry)):
    return AddressesResponse(name=name, addresses=registry.addresses_of(name))


@router.post("/roles/manufacturers", status_code=status.HTTP_204_NO_CONTENT)
async def grant_manufacturer(
    payload: GrantRequest,
    caller: str = Depends(require_admin),
    registry: MedicineRegistry = Depends(get_registry),
):
    registry.grant_manufacturer(caller, payload.address)


@router.post("/roles/referees", status_code=status.HTTP_204_NO_CONTENT)
async def grant_referee(
    payload: GrantRequest,
    caller: str = Depends(require_admin),
    registry: MedicineRegistry = Depends(get_registry),
):
    registry.grant_referee(caller, payload.address)


@router.get("/roles/{address}", response_model=RolesResponse)
async def get_roles(address: str, registry: MedicineRegistry = Depends(get_registry)):
    roles = sorted(role.value for role in registry.roles_of(address))
    return RolesResponse(address=address, roles=roles)
