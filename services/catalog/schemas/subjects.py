# services/catalog/schemas/subjects.py

from pydantic import BaseModel, Field
from typing import Optional

from shared.db import UTCDateTime
from services.catalog.models.subjects import EducationStage


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: Optional[str] = Field(None, max_length=100)
    strand: Optional[str] = Field(None, max_length=100)
    education_stage: EducationStage


class SubjectOut(BaseModel):
    id: str
    name: str
    category: Optional[str]
    strand: Optional[str]
    education_stage: EducationStage
    created_at: UTCDateTime

    class Config:
        from_attributes = True


class SubjectWithCountOut(SubjectOut):
    material_count: int = 0
