# services/directory/schemas/schools.py

from pydantic import BaseModel, Field
from typing import Optional, List

from shared.db import UTCDateTime
from services.directory.models.schools import SchoolType
from services.issuance.models.issuances import IssuanceStatus


class SchoolCreate(BaseModel):
    schoolname: str = Field(..., min_length=1, max_length=255)
    schooltype: SchoolType
    municipality: str = Field(..., min_length=1, max_length=100)
    congressional_district: int = Field(..., ge=1, le=2)
    zone: Optional[str] = Field(None, max_length=100)


class SchoolUpdate(BaseModel):
    schoolname: Optional[str] = Field(None, min_length=1, max_length=255)
    schooltype: Optional[SchoolType] = None
    municipality: Optional[str] = Field(None, min_length=1, max_length=100)
    congressional_district: Optional[int] = Field(None, ge=1, le=2)
    zone: Optional[str] = Field(None, max_length=100)


class SchoolOut(BaseModel):
    id: str
    school_id: str
    schoolname: str
    schooltype: SchoolType
    municipality: str
    congressional_district: int
    zone: Optional[str]
    issuance_count: int = 0
    created_at: UTCDateTime
    updated_at: UTCDateTime

    class Config:
        from_attributes = True


class SchoolIssuanceOut(BaseModel):
    id: str
    material_id: str
    material_title: str
    quantity: int
    issued_at: UTCDateTime
    issued_by: str
    status: IssuanceStatus


class SchoolDetailOut(SchoolOut):
    recent_issuances: List[SchoolIssuanceOut] = []
