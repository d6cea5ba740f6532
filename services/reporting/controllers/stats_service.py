from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func

from shared.db import get_db
from shared.auth import get_current_user
from shared.responses import success_response
from services.catalog.models.materials import Material
from services.directory.models.schools import School
from services.issuance.models.issuances import Issuance, CompletedIssuance
from services.reporting.schemas.stats import DashboardStatsOut

router = APIRouter(prefix="/stats", tags=["Dashboard"])


# --- DASHBOARD COUNTERS ---
@router.get("")
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    total_materials = (await db.execute(select(func.count()).select_from(Material))).scalar_one()
    total_stock = (await db.execute(select(func.coalesce(func.sum(Material.quantity), 0)))).scalar_one()
    total_schools = (await db.execute(select(func.count()).select_from(School))).scalar_one()
    completed = (await db.execute(
        select(func.count()).select_from(Issuance).where(Issuance.completed_issuance.has())
    )).scalar_one()
    pending = (await db.execute(
        select(func.count()).select_from(Issuance).where(~Issuance.completed_issuance.has())
    )).scalar_one()
    delivered_units = (await db.execute(
        select(func.coalesce(func.sum(CompletedIssuance.quantity), 0))
    )).scalar_one()

    return success_response(DashboardStatsOut(
        total_materials=total_materials,
        total_stock=total_stock,
        total_schools=total_schools,
        pending_issuances=pending,
        completed_issuances=completed,
        delivered_units=delivered_units,
    ))
