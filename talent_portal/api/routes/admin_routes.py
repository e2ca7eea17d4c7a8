"""
Admin Routes - tenants, staff users and the DNI blacklist

POST /admin/holdings, GET /admin/holdings, GET /admin/holdings/{id}
POST /admin/marcas, GET /admin/marcas?holdingId=
POST /admin/tiendas, GET /admin/tiendas?marcaId=
POST /admin/users, GET /admin/users?holdingId=, DELETE /admin/users/{id}
GET /admin/blacklist, POST /admin/blacklist, DELETE /admin/blacklist/{dni}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from talent_portal.core.auth import hash_password, require_admin
from talent_portal.core.exceptions import NotFoundException, ForbiddenException
from talent_portal.core.rate_limit import rate_limited
from talent_portal.services.mongo_service import (
    HoldingService,
    MarcaService,
    TiendaService,
    UserService,
    BlacklistService,
)
from talent_portal.schemas.schemas import (
    HoldingCreate, MarcaCreate, TiendaCreate, UserCreate, BlacklistAdd, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(rate_limited("admin"))]
)


# ============================================================
# HOLDINGS / MARCAS / TIENDAS
# ============================================================

@router.post("/holdings", status_code=201)
async def create_holding(holding: HoldingCreate, user: dict = Depends(require_admin)):
    holding_id = HoldingService().create(holding.model_dump(exclude_none=True))
    logger.info(f"Holding {holding_id} created by {user['email']}")
    return {"success": True, "id": holding_id}


@router.get("/holdings")
async def list_holdings(user: dict = Depends(require_admin)):
    return {"holdings": HoldingService().find(sort=[("nombre", 1)])}


@router.get("/holdings/{holding_id}")
async def get_holding(holding_id: str, user: dict = Depends(require_admin)):
    holding = HoldingService().find_by_id_or_slug(holding_id)
    if not holding:
        raise NotFoundException("Holding not found")
    return holding


@router.post("/marcas", status_code=201)
async def create_marca(marca: MarcaCreate, user: dict = Depends(require_admin)):
    HoldingService().get(marca.holdingId)
    marca_id = MarcaService().create(marca.model_dump(exclude_none=True))
    logger.info(f"Marca {marca_id} created in holding {marca.holdingId}")
    return {"success": True, "id": marca_id}


@router.get("/marcas")
async def list_marcas(holdingId: str = Query(...), user: dict = Depends(require_admin)):
    return {"marcas": MarcaService().list_by_holding(holdingId)}


@router.post("/tiendas", status_code=201)
async def create_tienda(tienda: TiendaCreate, user: dict = Depends(require_admin)):
    marca = MarcaService().get(tienda.marcaId)
    data = tienda.model_dump(exclude_none=True)
    data["holdingId"] = marca.get("holdingId")
    tienda_id = TiendaService().create(data)
    logger.info(f"Tienda {tienda_id} created in marca {tienda.marcaId}")
    return {"success": True, "id": tienda_id}


@router.get("/tiendas")
async def list_tiendas(marcaId: str = Query(...), user: dict = Depends(require_admin)):
    return {"tiendas": TiendaService().list_by_marca(marcaId)}


# ============================================================
# STAFF USERS
# ============================================================

def _check_user_scope(actor: dict, role: str, holding_id: Optional[str]) -> None:
    """Only a super_admin may touch super_admins or users outside its own holding."""
    if actor["role"] == "super_admin":
        return
    if role == "super_admin":
        raise ForbiddenException("Only a super_admin can manage super_admin users")
    if holding_id != actor.get("holdingId"):
        raise ForbiddenException("User belongs to another holding")


@router.post("/users", status_code=201)
async def create_user(new_user: UserCreate, user: dict = Depends(require_admin)):
    """
    Create a staff user.

    Assignments by role:
    - supervisor: assignedStores [{tiendaId, tiendaNombre, marcaId}]
    - jefe_marca: assignedMarca {marcaId, marcaNombre}
    - store_manager: assignedStore {tiendaId, tiendaNombre, marcaId}
    """
    fields = new_user.model_dump(exclude={"email", "password", "role"}, exclude_none=True)
    fields["holdingId"] = fields.get("holdingId") or user.get("holdingId")
    fields["displayName"] = fields.get("displayName") or new_user.email.split("@")[0]
    _check_user_scope(user, new_user.role.value, fields["holdingId"])

    user_id = UserService().create(
        new_user.email,
        hash_password(new_user.password),
        new_user.role.value,
        createdBy=user["user_id"],
        **fields
    )
    logger.info(f"User {user_id} ({new_user.role.value}) created by {user['email']}")
    return {"success": True, "id": user_id}


@router.get("/users")
async def list_users(holdingId: Optional[str] = Query(None), user: dict = Depends(require_admin)):
    # Holding admins only see their own holding
    holding_id = holdingId if user["role"] == "super_admin" else user.get("holdingId")
    return {"users": UserService().list_by_holding(holding_id)}


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: str, user: dict = Depends(require_admin)):
    users = UserService()
    target = users.get(user_id)
    _check_user_scope(user, target.get("role"), target.get("holdingId"))
    users.delete(user_id)
    logger.info(f"User {user_id} deleted by {user['email']}")
    return MessageResponse(message="User deleted")


# ============================================================
# BLACKLIST
# ============================================================

@router.get("/blacklist")
async def list_blacklist(user: dict = Depends(require_admin)):
    return {"entries": BlacklistService().list_entries()}


@router.post("/blacklist", status_code=201, response_model=MessageResponse)
async def add_to_blacklist(entry: BlacklistAdd, user: dict = Depends(require_admin)):
    BlacklistService().add(entry.dni, entry.nombre, entry.motivo, user["user_id"],
                           entry.holdingId or user.get("holdingId"))
    logger.info(f"DNI {entry.dni} blacklisted by {user['email']}")
    return MessageResponse(message="Added to blacklist")


@router.delete("/blacklist/{dni}", response_model=MessageResponse)
async def remove_from_blacklist(dni: str, user: dict = Depends(require_admin)):
    if not BlacklistService().remove(dni):
        raise NotFoundException("DNI not in blacklist")
    logger.info(f"DNI {dni} removed from blacklist by {user['email']}")
    return MessageResponse(message="Removed from blacklist")
