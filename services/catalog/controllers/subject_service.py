from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func

from shared.db import get_db
from shared.auth import get_current_user
from shared.exceptions import ConflictError
from shared.logging_config import get_logger
from shared.responses import success_response
from services.catalog.models.subjects import Subject
from services.catalog.models.materials import Material
from services.catalog.schemas.subjects import SubjectCreate, SubjectOut, SubjectWithCountOut

router = APIRouter(prefix="/subjects", tags=["Subjects"])
logger = get_logger(__name__)


# --- LIST SUBJECTS (with material counts) ---
@router.get("")
async def list_subjects(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    material_counts = (
        select(Material.subject_id, func.count(Material.id).label("material_count"))
        .group_by(Material.subject_id)
        .subquery()
    )
    result = await db.execute(
        select(Subject, func.coalesce(material_counts.c.material_count, 0))
        .outerjoin(material_counts, material_counts.c.subject_id == Subject.id)
        .order_by(Subject.education_stage, Subject.name)
    )

    subjects = []
    for subject, material_count in result.all():
        item = SubjectWithCountOut.model_validate(subject)
        item.material_count = material_count
        subjects.append(item)
    return success_response(subjects)


# --- CREATE SUBJECT ---
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    existing = await db.execute(
        select(Subject).where(
            Subject.name == payload.name,
            Subject.education_stage == payload.education_stage
        )
    )
    if existing.scalars().first():
        raise ConflictError("Subject with this name already exists for this education stage")

    subject = Subject(
        name=payload.name,
        category=payload.category,
        strand=payload.strand,
        education_stage=payload.education_stage
    )
    db.add(subject)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Subject with this name already exists for this education stage")

    await db.refresh(subject)
    logger.info(f"Subject created: {subject.name} ({subject.education_stage.value})")
    return success_response(SubjectOut.model_validate(subject), message="Subject created successfully")
