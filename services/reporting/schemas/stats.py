from pydantic import BaseModel


class DashboardStatsOut(BaseModel):
    total_materials: int
    total_stock: int
    total_schools: int
    pending_issuances: int
    completed_issuances: int
    delivered_units: int
