"""
Issuance workflow: PENDING issuances reserve stock, completion records delivery.

Every stock change runs in the same transaction as the issuance row it
belongs to. Decrements are a single conditional UPDATE, so two requests
racing for the last units of a material cannot both succeed.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, update

from shared.config import settings
from shared.db import get_db, utcnow, as_naive_utc
from shared.auth import get_current_user
from shared.exceptions import (
    NotFoundError,
    ValidationError,
    InsufficientStockError,
    AlreadyCompletedError,
)
from shared.logging_config import get_logger
from shared.responses import success_response, build_pagination
from services.catalog.models.materials import Material
from services.directory.models.schools import School
from services.identity.models.users import User
from services.issuance.models.issuances import Issuance, CompletedIssuance, IssuanceStatus
from services.issuance.schemas.issuances import (
    IssuanceCreate,
    IssuanceUpdate,
    IssuanceComplete,
    IssuanceOut,
)
from services.issuance.schemas.history import CompletedIssuanceOut

router = APIRouter(prefix="/issuances", tags=["Issuances"])
logger = get_logger(__name__)


async def reserve_stock(db: AsyncSession, material_id: str, quantity: int) -> None:
    """Take `quantity` units off the material, failing if fewer are on hand."""
    result = await db.execute(
        update(Material)
        .where(Material.id == material_id, Material.quantity >= quantity)
        .values(quantity=Material.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        available = (await db.execute(
            select(Material.quantity).where(Material.id == material_id)
        )).scalar_one_or_none()
        if available is None:
            raise NotFoundError("Material not found")
        raise InsufficientStockError(
            f"Insufficient stock. Available: {available}, Requested: {quantity}",
            details={"available": available, "requested": quantity}
        )


async def return_stock(db: AsyncSession, material_id: str, quantity: int) -> None:
    await db.execute(
        update(Material)
        .where(Material.id == material_id)
        .values(quantity=Material.quantity + quantity)
        .execution_options(synchronize_session=False)
    )


async def get_issuance_or_404(db: AsyncSession, issuance_id: str, for_update: bool = False) -> Issuance:
    query = (
        select(Issuance)
        .where(Issuance.id == issuance_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        # Serialises update/delete/complete on one issuance (ignored by SQLite)
        query = query.with_for_update(of=Issuance)
    result = await db.execute(query)
    issuance = result.scalars().first()
    if not issuance:
        raise NotFoundError("Issuance not found")
    return issuance


# --- LIST ISSUANCES ---
@router.get("")
async def list_issuances(
    status_filter: Optional[str] = Query(None, alias="status", description="pending or completed"),
    school_id: Optional[str] = Query(None),
    material_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    conditions = []
    if school_id:
        conditions.append(Issuance.school_id == school_id)
    if material_id:
        conditions.append(Issuance.material_id == material_id)
    if status_filter:
        normalized = status_filter.upper()
        if normalized == IssuanceStatus.PENDING.value:
            conditions.append(~Issuance.completed_issuance.has())
        elif normalized == IssuanceStatus.COMPLETED.value:
            conditions.append(Issuance.completed_issuance.has())
        else:
            raise ValidationError("Status must be either 'pending' or 'completed'")

    total = (await db.execute(
        select(func.count()).select_from(Issuance).where(*conditions)
    )).scalar_one()
    result = await db.execute(
        select(Issuance)
        .where(*conditions)
        .order_by(Issuance.issued_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    issuances = [IssuanceOut.model_validate(i) for i in result.scalars().all()]
    return success_response(issuances, pagination=build_pagination(page, limit, total))


# --- CREATE ISSUANCE (-> PENDING) ---
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_issuance(
    payload: IssuanceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    user_id = payload.user_id or current_user["user_id"]

    material = await db.get(Material, payload.material_id)
    if not material:
        raise NotFoundError("Material not found")
    if not await db.get(School, payload.school_id):
        raise NotFoundError("School not found")
    if not await db.get(User, user_id):
        raise NotFoundError("User not found")

    await reserve_stock(db, payload.material_id, payload.quantity)
    issuance = Issuance(
        material_id=payload.material_id,
        school_id=payload.school_id,
        user_id=user_id,
        quantity=payload.quantity,
        remarks=payload.remarks,
        issued_at=utcnow()
    )
    db.add(issuance)
    await db.commit()

    issuance = await get_issuance_or_404(db, issuance.id)
    logger.info(
        f"Issuance {issuance.id} created: {payload.quantity} x material {payload.material_id} "
        f"to school {payload.school_id}"
    )
    return success_response(IssuanceOut.model_validate(issuance), message="Issuance created successfully")


# --- GET ISSUANCE ---
@router.get("/{issuance_id}")
async def get_issuance(
    issuance_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    issuance = await get_issuance_or_404(db, issuance_id)
    return success_response(IssuanceOut.model_validate(issuance))


# --- UPDATE ISSUANCE (PENDING only) ---
@router.put("/{issuance_id}")
async def update_issuance(
    issuance_id: str,
    payload: IssuanceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No update data provided")

    issuance = await get_issuance_or_404(db, issuance_id, for_update=True)
    if issuance.completed_issuance is not None:
        raise AlreadyCompletedError("Cannot edit a completed issuance")

    new_quantity = update_data.get("quantity")
    if new_quantity is not None and new_quantity != issuance.quantity:
        delta = new_quantity - issuance.quantity
        if delta > 0:
            await reserve_stock(db, issuance.material_id, delta)
        else:
            await return_stock(db, issuance.material_id, -delta)
        issuance.quantity = new_quantity
        logger.info(f"Issuance {issuance_id} quantity changed by {delta}")

    if "remarks" in update_data:
        issuance.remarks = update_data["remarks"]

    await db.commit()

    issuance = await get_issuance_or_404(db, issuance_id)
    return success_response(IssuanceOut.model_validate(issuance), message="Issuance updated successfully")


# --- DELETE ISSUANCE (PENDING only, stock returned) ---
@router.delete("/{issuance_id}")
async def delete_issuance(
    issuance_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    issuance = await get_issuance_or_404(db, issuance_id, for_update=True)
    if issuance.completed_issuance is not None:
        raise AlreadyCompletedError("Cannot delete a completed issuance")

    await return_stock(db, issuance.material_id, issuance.quantity)
    await db.delete(issuance)
    await db.commit()

    logger.info(f"Issuance {issuance_id} deleted, {issuance.quantity} unit(s) returned to material {issuance.material_id}")
    return success_response(message="Issuance deleted and quantity returned to inventory")


# --- COMPLETE ISSUANCE (PENDING -> COMPLETED) ---
@router.post("/{issuance_id}/complete")
async def complete_issuance(
    issuance_id: str,
    payload: Optional[IssuanceComplete] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    if payload is None:
        # Every completion field is optional, so the body may be omitted
        payload = IssuanceComplete()

    issuance = await get_issuance_or_404(db, issuance_id, for_update=True)
    if issuance.completed_issuance is not None:
        raise AlreadyCompletedError("Issuance is already completed")

    # Stock was deducted when the issuance was created; completion only records delivery
    completed = CompletedIssuance(
        issuance_id=issuance.id,
        material_id=issuance.material_id,
        school_id=issuance.school_id,
        quantity=issuance.quantity,
        date_issued=issuance.issued_at,
        delivered_at=as_naive_utc(payload.delivered_at) if payload.delivered_at else utcnow(),
        received_by=payload.received_by,
        remarks=payload.remarks
    )
    db.add(completed)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyCompletedError("Issuance is already completed")

    result = await db.execute(
        select(CompletedIssuance)
        .where(CompletedIssuance.id == completed.id)
        .execution_options(populate_existing=True)
    )
    completed = result.scalars().first()
    logger.info(f"Issuance {issuance_id} completed (received by: {payload.received_by or 'n/a'})")
    return success_response(CompletedIssuanceOut.model_validate(completed), message="Issuance marked as completed")
