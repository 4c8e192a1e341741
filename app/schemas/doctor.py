from pydantic import BaseModel
from typing import Any, Optional


class DoctorUser(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class DoctorDepartment(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class DoctorResponse(BaseModel):
    id: int
    specialization: str
    department_id: int
    department: Optional[DoctorDepartment] = None
    user: Optional[DoctorUser] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    experience_years: Optional[int] = None
    consultation_fee: Optional[float] = None
    availability: Optional[Any] = None
    is_available: bool = True
    is_active: bool = True

    class Config:
        from_attributes = True
