# services/issuance/models/issuances.py
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from shared.db import Base, generate_uuid, utcnow
import enum

# Related mappers must be registered before relationships below are configured
from services.catalog.models import Material  # noqa: F401
from services.directory.models import School  # noqa: F401
from services.identity.models import User  # noqa: F401


class IssuanceStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class Issuance(Base):
    __tablename__ = "issuances"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    material_id = Column(String(36), ForeignKey("materials.id"), nullable=False)
    school_id = Column(String(36), ForeignKey("schools.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    issued_at = Column(DateTime, default=utcnow, nullable=False)
    remarks = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_issuance_quantity_positive"),
        Index("ix_issuance_material_id", "material_id"),
        Index("ix_issuance_school_id", "school_id"),
        Index("ix_issuance_issued_at", "issued_at"),
    )

    material = relationship("Material", lazy="joined")
    school = relationship("School", lazy="joined")
    user = relationship("User", lazy="joined")
    completed_issuance = relationship(
        "CompletedIssuance", back_populates="issuance", uselist=False, lazy="joined"
    )

    @property
    def status(self) -> IssuanceStatus:
        return IssuanceStatus.COMPLETED if self.completed_issuance is not None else IssuanceStatus.PENDING

    @property
    def date_issued(self):
        return self.issued_at


class CompletedIssuance(Base):
    __tablename__ = "completed_issuances"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    issuance_id = Column(String(36), ForeignKey("issuances.id"), unique=True, nullable=False)
    material_id = Column(String(36), ForeignKey("materials.id"), nullable=False)
    school_id = Column(String(36), ForeignKey("schools.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    date_issued = Column(DateTime, nullable=False)        # snapshot of Issuance.issued_at
    delivered_at = Column(DateTime, default=utcnow, nullable=False)
    received_by = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_completed_issuance_delivered_at", "delivered_at"),
        Index("ix_completed_issuance_school_id", "school_id"),
        Index("ix_completed_issuance_material_id", "material_id"),
    )

    issuance = relationship("Issuance", back_populates="completed_issuance")
    material = relationship("Material", lazy="joined")
    school = relationship("School", lazy="joined")
