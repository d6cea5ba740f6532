from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func

from shared.config import settings
from shared.db import get_db
from shared.auth import get_current_user
from shared.exceptions import NotFoundError, ConflictError, ValidationError
from shared.logging_config import get_logger
from shared.responses import success_response, build_pagination
from services.catalog.models.subjects import Subject, EducationStage
from services.catalog.models.materials import (
    Material,
    GRADE_LEVEL_MIN,
    GRADE_LEVEL_MAX,
    format_grade_level,
)
from services.catalog.schemas.materials import (
    MaterialCreate,
    MaterialUpdate,
    MaterialOut,
    MaterialDetailOut,
    MaterialIssuanceOut,
)
from services.issuance.models.issuances import Issuance, CompletedIssuance

router = APIRouter(prefix="/materials", tags=["Materials"])
logger = get_logger(__name__)

RECENT_ISSUANCES_LIMIT = 10


def filter_materials(
    query,
    search: Optional[str] = None,
    grade_level: Optional[int] = None,
    subject_id: Optional[str] = None,
    education_stage: Optional[EducationStage] = None,
):
    """Apply the material list filters to a select() over Material."""
    if search:
        query = query.where(Material.title.ilike(f"%{search}%"))
    if grade_level is not None:
        query = query.where(Material.grade_level == format_grade_level(grade_level))
    if subject_id:
        query = query.where(Material.subject_id == subject_id)
    if education_stage:
        # The stage lives on the subject, so filter through it
        query = query.where(
            Material.subject_id.in_(
                select(Subject.id).where(Subject.education_stage == education_stage)
            )
        )
    return query


async def get_material_or_404(db: AsyncSession, material_id: str) -> Material:
    result = await db.execute(
        select(Material)
        .where(Material.id == material_id)
        .execution_options(populate_existing=True)
    )
    material = result.scalars().first()
    if not material:
        raise NotFoundError("Material not found")
    return material


async def _get_subject_or_404(db: AsyncSession, subject_id: str) -> Subject:
    subject = await db.get(Subject, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    return subject


# --- LIST MATERIALS ---
@router.get("")
async def list_materials(
    search: Optional[str] = Query(None),
    grade_level: Optional[int] = Query(None, ge=GRADE_LEVEL_MIN, le=GRADE_LEVEL_MAX),
    subject_id: Optional[str] = Query(None),
    education_stage: Optional[EducationStage] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    query = filter_materials(select(Material), search, grade_level, subject_id, education_stage)
    count_query = filter_materials(
        select(func.count()).select_from(Material), search, grade_level, subject_id, education_stage
    )

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(Material.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    materials = [MaterialOut.model_validate(m) for m in result.scalars().all()]
    return success_response(materials, pagination=build_pagination(page, limit, total))


# --- CREATE MATERIAL ---
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_material(
    payload: MaterialCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    await _get_subject_or_404(db, payload.subject_id)

    material = Material(
        title=payload.title,
        grade_level=format_grade_level(payload.grade_level),
        quantity=payload.quantity,
        source=payload.source,
        subject_id=payload.subject_id
    )
    db.add(material)
    await db.commit()

    material = await get_material_or_404(db, material.id)
    logger.info(f"Material created: {material.title} (qty={material.quantity})")
    return success_response(MaterialOut.model_validate(material), message="Material created successfully")


# --- GET MATERIAL (with recent issuances) ---
@router.get("/{material_id}")
async def get_material(
    material_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    material = await get_material_or_404(db, material_id)

    result = await db.execute(
        select(Issuance)
        .where(Issuance.material_id == material_id)
        .order_by(Issuance.issued_at.desc())
        .limit(RECENT_ISSUANCES_LIMIT)
    )
    detail = MaterialDetailOut.model_validate(material)
    detail.recent_issuances = [
        MaterialIssuanceOut(
            id=issuance.id,
            school_id=issuance.school_id,
            school_name=issuance.school.schoolname,
            quantity=issuance.quantity,
            issued_at=issuance.issued_at,
            issued_by=issuance.user.username,
            status=issuance.status,
        )
        for issuance in result.scalars().all()
    ]
    return success_response(detail)


# --- UPDATE MATERIAL ---
@router.put("/{material_id}")
async def update_material(
    material_id: str,
    payload: MaterialUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No update data provided")

    material = await get_material_or_404(db, material_id)

    if update_data.get("subject_id"):
        await _get_subject_or_404(db, update_data["subject_id"])
        material.subject_id = update_data["subject_id"]
    if update_data.get("title") is not None:
        material.title = update_data["title"]
    if update_data.get("grade_level") is not None:
        material.grade_level = format_grade_level(update_data["grade_level"])
    if update_data.get("quantity") is not None:
        material.quantity = update_data["quantity"]
    if "source" in update_data:
        material.source = update_data["source"]

    await db.commit()

    material = await get_material_or_404(db, material_id)
    logger.info(f"Material updated: {material.id}")
    return success_response(MaterialOut.model_validate(material), message="Material updated successfully")


# --- DELETE MATERIAL ---
@router.delete("/{material_id}")
async def delete_material(
    material_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    material = await get_material_or_404(db, material_id)

    issuance_count = (await db.execute(
        select(func.count()).select_from(Issuance).where(Issuance.material_id == material_id)
    )).scalar_one()
    history_count = (await db.execute(
        select(func.count()).select_from(CompletedIssuance).where(CompletedIssuance.material_id == material_id)
    )).scalar_one()
    if issuance_count or history_count:
        raise ConflictError(
            f"Cannot delete material with {issuance_count} issuance(s) and "
            f"{history_count} delivery record(s). Delete those first."
        )

    await db.delete(material)
    await db.commit()
    logger.info(f"Material deleted: {material_id}")
    return success_response(message="Material deleted successfully")
