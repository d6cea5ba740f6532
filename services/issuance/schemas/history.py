# services/issuance/schemas/history.py

from pydantic import BaseModel
from typing import Optional

from shared.db import UTCDateTime
from services.issuance.schemas.issuances import IssuanceMaterialOut, IssuanceSchoolOut


class CompletedIssuanceOut(BaseModel):
    id: str
    issuance_id: str
    material_id: str
    school_id: str
    quantity: int
    date_issued: UTCDateTime
    delivered_at: UTCDateTime
    received_by: Optional[str]
    remarks: Optional[str]
    created_at: UTCDateTime
    material: IssuanceMaterialOut
    school: IssuanceSchoolOut

    class Config:
        from_attributes = True
