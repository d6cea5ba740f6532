from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func

from shared.config import settings
from shared.db import get_db
from shared.auth import get_current_user
from shared.exceptions import NotFoundError, ConflictError, ValidationError
from shared.logging_config import get_logger
from shared.responses import success_response, build_pagination
from services.directory.models.schools import School, SchoolType, SCHOOL_CODE_PREFIX, format_school_code
from services.directory.schemas.schools import (
    SchoolCreate,
    SchoolUpdate,
    SchoolOut,
    SchoolDetailOut,
    SchoolIssuanceOut,
)
from services.issuance.models.issuances import Issuance

router = APIRouter(prefix="/schools", tags=["Schools"])
logger = get_logger(__name__)

RECENT_ISSUANCES_LIMIT = 20
DUPLICATE_SCHOOL_MESSAGE = "A school with this name already exists in this municipality"


def filter_schools(
    query,
    search: Optional[str] = None,
    school_type: Optional[SchoolType] = None,
    municipality: Optional[str] = None,
    congressional_district: Optional[int] = None,
):
    """Apply the school list filters to a select() over School."""
    if search:
        query = query.where(School.schoolname.ilike(f"%{search}%"))
    if school_type:
        query = query.where(School.schooltype == school_type)
    if municipality:
        query = query.where(School.municipality.ilike(f"%{municipality}%"))
    if congressional_district is not None:
        query = query.where(School.congressional_district == congressional_district)
    return query


async def _get_school_or_404(db: AsyncSession, school_id: str) -> School:
    result = await db.execute(
        select(School)
        .where(School.id == school_id)
        .execution_options(populate_existing=True)
    )
    school = result.scalars().first()
    if not school:
        raise NotFoundError("School not found")
    return school


async def _count_issuances(db: AsyncSession, school_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Issuance).where(Issuance.school_id == school_id)
    )
    return result.scalar_one()


async def _find_duplicate(db: AsyncSession, schoolname: str, municipality: str, exclude_id: str = None):
    query = select(School).where(
        func.lower(School.schoolname) == schoolname.lower(),
        func.lower(School.municipality) == municipality.lower()
    )
    if exclude_id:
        query = query.where(School.id != exclude_id)
    result = await db.execute(query)
    return result.scalars().first()


async def _next_school_code(db: AsyncSession) -> str:
    # Highest existing code + 1; the unique constraint on school_id rejects a concurrent twin
    result = await db.execute(
        select(func.max(School.school_id)).where(School.school_id.like(f"{SCHOOL_CODE_PREFIX}%"))
    )
    last_code = result.scalar_one_or_none()
    last_number = int(last_code[len(SCHOOL_CODE_PREFIX):]) if last_code else 0
    return format_school_code(last_number + 1)


def _school_out(school: School, issuance_count: int) -> SchoolOut:
    item = SchoolOut.model_validate(school)
    item.issuance_count = issuance_count
    return item


# --- LIST SCHOOLS ---
@router.get("")
async def list_schools(
    search: Optional[str] = Query(None),
    type: Optional[SchoolType] = Query(None),
    municipality: Optional[str] = Query(None),
    congressional_district: Optional[int] = Query(None, ge=1, le=2),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    issuance_counts = (
        select(Issuance.school_id, func.count(Issuance.id).label("issuance_count"))
        .group_by(Issuance.school_id)
        .subquery()
    )
    query = filter_schools(
        select(School, func.coalesce(issuance_counts.c.issuance_count, 0))
        .outerjoin(issuance_counts, issuance_counts.c.school_id == School.id),
        search, type, municipality, congressional_district
    )
    count_query = filter_schools(
        select(func.count()).select_from(School), search, type, municipality, congressional_district
    )

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(School.schoolname).offset((page - 1) * limit).limit(limit)
    )
    schools = [_school_out(school, count) for school, count in result.all()]
    return success_response(schools, pagination=build_pagination(page, limit, total))


# --- DISTINCT MUNICIPALITIES (for filter dropdowns) ---
@router.get("/municipalities")
async def list_municipalities(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    result = await db.execute(
        select(School.municipality).distinct().order_by(School.municipality)
    )
    return success_response(result.scalars().all())


# --- CREATE SCHOOL ---
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(
    payload: SchoolCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    if await _find_duplicate(db, payload.schoolname, payload.municipality):
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE)

    school = School(
        school_id=await _next_school_code(db),
        schoolname=payload.schoolname,
        schooltype=payload.schooltype,
        municipality=payload.municipality,
        congressional_district=payload.congressional_district,
        zone=payload.zone
    )
    db.add(school)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"School insert rejected by unique constraint: {payload.schoolname}")
        raise ConflictError("School could not be created because it clashes with an existing school, please retry")

    await db.refresh(school)
    logger.info(f"School created: {school.school_id} {school.schoolname}")
    return success_response(_school_out(school, 0), message="School created successfully")


# --- GET SCHOOL (with recent issuances) ---
@router.get("/{school_id}")
async def get_school(
    school_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    school = await _get_school_or_404(db, school_id)

    result = await db.execute(
        select(Issuance)
        .where(Issuance.school_id == school_id)
        .order_by(Issuance.issued_at.desc())
        .limit(RECENT_ISSUANCES_LIMIT)
    )
    detail = SchoolDetailOut.model_validate(school)
    detail.issuance_count = await _count_issuances(db, school_id)
    detail.recent_issuances = [
        SchoolIssuanceOut(
            id=issuance.id,
            material_id=issuance.material_id,
            material_title=issuance.material.title,
            quantity=issuance.quantity,
            issued_at=issuance.issued_at,
            issued_by=issuance.user.username,
            status=issuance.status,
        )
        for issuance in result.scalars().all()
    ]
    return success_response(detail)


# --- UPDATE SCHOOL ---
@router.put("/{school_id}")
async def update_school(
    school_id: str,
    payload: SchoolUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No update data provided")

    school = await _get_school_or_404(db, school_id)

    if update_data.get("schoolname") or update_data.get("municipality"):
        duplicate = await _find_duplicate(
            db,
            update_data.get("schoolname") or school.schoolname,
            update_data.get("municipality") or school.municipality,
            exclude_id=school.id
        )
        if duplicate:
            raise ConflictError(DUPLICATE_SCHOOL_MESSAGE)

    for field in ("schoolname", "schooltype", "municipality", "congressional_district"):
        if update_data.get(field) is not None:
            setattr(school, field, update_data[field])
    if "zone" in update_data:
        school.zone = update_data["zone"]

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE)

    school = await _get_school_or_404(db, school_id)
    issuance_count = await _count_issuances(db, school_id)
    logger.info(f"School updated: {school.school_id}")
    return success_response(_school_out(school, issuance_count), message="School updated successfully")


# --- DELETE SCHOOL ---
@router.delete("/{school_id}")
async def delete_school(
    school_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    school = await _get_school_or_404(db, school_id)

    issuance_count = await _count_issuances(db, school_id)
    if issuance_count > 0:
        raise ConflictError(
            f"Cannot delete school with {issuance_count} existing issuance(s). Delete the issuances first."
        )

    await db.delete(school)
    await db.commit()
    logger.info(f"School deleted: {school.school_id}")
    return success_response(message="School deleted successfully")
