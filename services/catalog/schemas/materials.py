# services/catalog/schemas/materials.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from shared.db import UTCDateTime
from services.catalog.models.subjects import EducationStage
from services.catalog.models.materials import GRADE_LEVEL_MIN, GRADE_LEVEL_MAX, parse_grade_level
from services.catalog.schemas.subjects import SubjectOut
from services.issuance.models.issuances import IssuanceStatus


class MaterialCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    grade_level: int = Field(..., ge=GRADE_LEVEL_MIN, le=GRADE_LEVEL_MAX)
    quantity: int = Field(default=0, ge=0)
    source: Optional[str] = Field(None, max_length=255)
    subject_id: str = Field(..., min_length=1)


class MaterialUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    grade_level: Optional[int] = Field(None, ge=GRADE_LEVEL_MIN, le=GRADE_LEVEL_MAX)
    quantity: Optional[int] = Field(None, ge=0)
    source: Optional[str] = Field(None, max_length=255)
    subject_id: Optional[str] = Field(None, min_length=1)


class MaterialOut(BaseModel):
    id: str
    title: str
    grade_level: int
    education_stage: EducationStage
    quantity: int
    source: Optional[str]
    subject_id: str
    subject: SubjectOut
    created_at: UTCDateTime
    updated_at: UTCDateTime

    class Config:
        from_attributes = True

    @field_validator("grade_level", mode="before")
    @classmethod
    def grade_level_as_number(cls, value):
        if isinstance(value, str):
            return parse_grade_level(value)
        return value


class MaterialIssuanceOut(BaseModel):
    id: str
    school_id: str
    school_name: str
    quantity: int
    issued_at: UTCDateTime
    issued_by: str
    status: IssuanceStatus


class MaterialDetailOut(MaterialOut):
    recent_issuances: List[MaterialIssuanceOut] = []
