from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, or_

from shared.config import settings
from shared.db import get_db
from shared.auth import get_current_user
from shared.exceptions import NotFoundError, ValidationError
from shared.logging_config import get_logger
from shared.responses import success_response, build_pagination
from services.catalog.models.materials import Material
from services.directory.models.schools import School
from services.issuance.models.issuances import CompletedIssuance
from services.issuance.schemas.history import CompletedIssuanceOut

router = APIRouter(prefix="/history", tags=["Delivery History"])
logger = get_logger(__name__)


def filter_history(
    query,
    school_id: Optional[str] = None,
    material_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
):
    """Apply the delivery-history filters to a select() over CompletedIssuance."""
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")

    if school_id:
        query = query.where(CompletedIssuance.school_id == school_id)
    if material_id:
        query = query.where(CompletedIssuance.material_id == material_id)
    if start_date:
        query = query.where(CompletedIssuance.delivered_at >= datetime.combine(start_date, time.min))
    if end_date:
        # end_date is inclusive of the whole day
        query = query.where(
            CompletedIssuance.delivered_at < datetime.combine(end_date + timedelta(days=1), time.min)
        )
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                CompletedIssuance.material_id.in_(select(Material.id).where(Material.title.ilike(pattern))),
                CompletedIssuance.school_id.in_(select(School.id).where(School.schoolname.ilike(pattern))),
                CompletedIssuance.remarks.ilike(pattern),
            )
        )
    return query


async def _get_completed_or_404(db: AsyncSession, completed_id: str) -> CompletedIssuance:
    result = await db.execute(
        select(CompletedIssuance)
        .where(CompletedIssuance.id == completed_id)
        .execution_options(populate_existing=True)
    )
    completed = result.scalars().first()
    if not completed:
        raise NotFoundError("Completed issuance not found")
    return completed


# --- LIST DELIVERY HISTORY ---
@router.get("")
async def list_history(
    school_id: Optional[str] = Query(None),
    material_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    filters = dict(
        school_id=school_id,
        material_id=material_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    total = (await db.execute(
        filter_history(select(func.count()).select_from(CompletedIssuance), **filters)
    )).scalar_one()
    result = await db.execute(
        filter_history(select(CompletedIssuance), **filters)
        .order_by(CompletedIssuance.delivered_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    records = [CompletedIssuanceOut.model_validate(c) for c in result.scalars().all()]
    return success_response(records, pagination=build_pagination(page, limit, total))


# --- GET DELIVERY RECORD ---
@router.get("/{completed_id}")
async def get_history_record(
    completed_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    completed = await _get_completed_or_404(db, completed_id)
    return success_response(CompletedIssuanceOut.model_validate(completed))


# --- DELETE DELIVERY RECORD ---
@router.delete("/{completed_id}")
async def delete_history_record(
    completed_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    completed = await _get_completed_or_404(db, completed_id)

    # Only the delivery record goes; stock and the parent issuance are left untouched
    await db.delete(completed)
    await db.commit()

    logger.warning(
        f"Delivery record {completed_id} for issuance {completed.issuance_id} deleted by "
        f"{current_user['username']}; material stock was not restored"
    )
    return success_response(message="Completed issuance deleted successfully")
