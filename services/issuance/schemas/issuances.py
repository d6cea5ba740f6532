# services/issuance/schemas/issuances.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from shared.db import UTCDateTime
from services.catalog.models.subjects import EducationStage
from services.catalog.models.materials import parse_grade_level
from services.issuance.models.issuances import IssuanceStatus


class IssuanceCreate(BaseModel):
    material_id: str = Field(..., min_length=1)
    school_id: str = Field(..., min_length=1)
    user_id: Optional[str] = Field(
        None, description="Issuing user; defaults to the authenticated user"
    )
    quantity: int = Field(..., gt=0)
    remarks: Optional[str] = None


class IssuanceUpdate(BaseModel):
    quantity: Optional[int] = Field(None, gt=0)
    remarks: Optional[str] = None


class IssuanceComplete(BaseModel):
    received_by: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None
    delivered_at: Optional[datetime] = None


class IssuanceMaterialOut(BaseModel):
    id: str
    title: str
    grade_level: int
    education_stage: EducationStage
    subject_id: str

    class Config:
        from_attributes = True

    @field_validator("grade_level", mode="before")
    @classmethod
    def grade_level_as_number(cls, value):
        if isinstance(value, str):
            return parse_grade_level(value)
        return value


class IssuanceSchoolOut(BaseModel):
    id: str
    school_id: str
    schoolname: str
    municipality: str
    congressional_district: int

    class Config:
        from_attributes = True


class IssuanceUserOut(BaseModel):
    id: str
    username: str

    class Config:
        from_attributes = True


class CompletionSummaryOut(BaseModel):
    id: str
    delivered_at: UTCDateTime
    received_by: Optional[str]
    remarks: Optional[str]

    class Config:
        from_attributes = True


class IssuanceOut(BaseModel):
    id: str
    material_id: str
    school_id: str
    user_id: str
    quantity: int
    issued_at: UTCDateTime
    date_issued: UTCDateTime
    remarks: Optional[str]
    status: IssuanceStatus
    material: IssuanceMaterialOut
    school: IssuanceSchoolOut
    user: IssuanceUserOut
    completed_issuance: Optional[CompletionSummaryOut] = None

    class Config:
        from_attributes = True
