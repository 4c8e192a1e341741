from pydantic import BaseModel
from typing import Optional


class DepartmentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class DepartmentOption(DepartmentResponse):
    """Department as offered by the first booking step."""
    icon: str
