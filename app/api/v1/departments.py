from fastapi import APIRouter, Depends
from typing import List

from ...api.deps import get_data_access
from ...schemas.department import DepartmentResponse
from ...services.data_access import DataAccess

router = APIRouter(prefix="/departments", tags=["Departments"])

@router.get("", response_model=List[DepartmentResponse])
async def list_departments(data: DataAccess = Depends(get_data_access)):
    """List active departments ordered by name."""
    return data.list_departments()

@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: int,
    data: DataAccess = Depends(get_data_access)
):
    """Get a single department."""
    return data.get_department(department_id)
