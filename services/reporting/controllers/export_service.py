"""
CSV / XLSX downloads of delivery history, the material catalog and the
school directory. Exports honour the same filters as the list endpoints
but are never paginated.
"""
import csv
import io
from datetime import date, datetime
from typing import Optional

import openpyxl
from openpyxl.styles import Font, Alignment
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shared.db import get_db
from shared.auth import get_current_user
from shared.logging_config import get_logger
from services.catalog.models.subjects import Subject, EducationStage
from services.catalog.models.materials import Material
from services.catalog.controllers.material_service import filter_materials
from services.directory.models.schools import School, SchoolType
from services.directory.controllers.school_service import filter_schools
from services.issuance.models.issuances import CompletedIssuance
from services.issuance.controllers.history_service import filter_history

router = APIRouter(prefix="/export", tags=["Export"])
logger = get_logger(__name__)

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMAT_PATTERN = "^(csv|xlsx)$"

HISTORY_HEADERS = [
    "Material", "Subject", "Grade Level", "Education Stage", "School", "Municipality",
    "Congressional District", "Quantity", "Date Issued", "Date Delivered", "Remarks",
]
MATERIAL_HEADERS = ["Title", "Subject", "Grade Level", "Education Stage", "Quantity", "Created At"]
SCHOOL_HEADERS = ["School ID", "Name", "Type", "Municipality", "Congressional District", "Zone"]


def _format_date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ""


def render_csv(headers: list, rows: list) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue().encode("utf-8")


def render_xlsx(title: str, headers: list, rows: list) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title

    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center")

    for row in rows:
        ws.append(row)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_export_response(resource: str, sheet_title: str, headers: list, rows: list, export_format: str) -> Response:
    filename = f"{resource}-{date.today().isoformat()}.{export_format}"
    if export_format == "xlsx":
        content = render_xlsx(sheet_title, headers, rows)
        media_type = XLSX_MEDIA_TYPE
    else:
        content = render_csv(headers, rows)
        media_type = CSV_MEDIA_TYPE

    logger.info(f"Exported {len(rows)} row(s) to {filename}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# --- EXPORT DELIVERY HISTORY ---
@router.get("/history")
async def export_history(
    school_id: Optional[str] = Query(None),
    material_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    format: str = Query("csv", pattern=EXPORT_FORMAT_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    result = await db.execute(
        filter_history(
            select(CompletedIssuance),
            school_id=school_id,
            material_id=material_id,
            start_date=start_date,
            end_date=end_date,
            search=search,
        ).order_by(CompletedIssuance.delivered_at.desc())
    )
    rows = [
        [
            record.material.title,
            record.material.subject.name,
            record.material.grade_level,
            record.material.education_stage.value,
            record.school.schoolname,
            record.school.municipality,
            record.school.congressional_district,
            record.quantity,
            _format_date(record.date_issued),
            _format_date(record.delivered_at),
            record.remarks or "",
        ]
        for record in result.scalars().all()
    ]
    return build_export_response("delivery-history", "Delivery History", HISTORY_HEADERS, rows, format)


# --- EXPORT MATERIALS ---
@router.get("/materials")
async def export_materials(
    search: Optional[str] = Query(None),
    grade_level: Optional[int] = Query(None, ge=1, le=12),
    subject_id: Optional[str] = Query(None),
    education_stage: Optional[EducationStage] = Query(None),
    format: str = Query("csv", pattern=EXPORT_FORMAT_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    stage_order = (
        select(Subject.education_stage)
        .where(Subject.id == Material.subject_id)
        .scalar_subquery()
    )
    result = await db.execute(
        filter_materials(select(Material), search, grade_level, subject_id, education_stage)
        .order_by(stage_order, Material.grade_level, Material.title)
    )
    rows = [
        [
            material.title,
            material.subject.name,
            material.grade_level,
            material.education_stage.value,
            material.quantity,
            _format_date(material.created_at),
        ]
        for material in result.scalars().all()
    ]
    return build_export_response("materials", "Materials", MATERIAL_HEADERS, rows, format)


# --- EXPORT SCHOOLS ---
@router.get("/schools")
async def export_schools(
    search: Optional[str] = Query(None),
    type: Optional[SchoolType] = Query(None),
    municipality: Optional[str] = Query(None),
    congressional_district: Optional[int] = Query(None, ge=1, le=2),
    format: str = Query("csv", pattern=EXPORT_FORMAT_PATTERN),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    result = await db.execute(
        filter_schools(select(School), search, type, municipality, congressional_district)
        .order_by(School.congressional_district, School.municipality, School.schoolname)
    )
    rows = [
        [
            school.school_id,
            school.schoolname,
            school.schooltype.value,
            school.municipality,
            school.congressional_district,
            school.zone or "",
        ]
        for school in result.scalars().all()
    ]
    return build_export_response("schools", "Schools", SCHOOL_HEADERS, rows, format)
