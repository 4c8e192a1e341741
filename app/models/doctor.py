from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Numeric, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.formatting import format_doctor_name

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)

    # Professional information
    specialization = Column(String(100), nullable=False)
    experience_years = Column(Integer, nullable=True)
    consultation_fee = Column(Numeric(10, 2), nullable=True)

    # Weekly working hours, e.g. {"monday": ["09:00", "17:00"]}
    availability = Column(JSON, nullable=True)
    is_available = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    department = relationship("Department", back_populates="doctors")
    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def full_name(self):
        return self.user.full_name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None

    @property
    def display_name(self):
        return format_doctor_name(self.full_name)

    def __repr__(self):
        return f"<Doctor(id={self.id}, specialization='{self.specialization}', department_id={self.department_id})>"
