"""
Employee directory endpoints.

- GET operations require any authenticated user.
- POST / PUT / DELETE operations require admin role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence.api.v1.deps import get_current_active_user, get_db, require_admin
from presence.models.employee import Employee
from presence.models.user import User
from presence.repositories.employees import EmployeeRepository
from presence.schemas.employee import (DeleteResponse, EmployeeCreate,
                                       EmployeeRead, EmployeeUpdate)

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)

_employees = EmployeeRepository()


async def _get_or_404(db: AsyncSession, employee_id: int) -> Employee:
    # inactive rows included so admins can reactivate them
    emp = await db.get(Employee, employee_id)
    if emp is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


async def _check_account_link(
    db: AsyncSession, user_id: int | None, employee_id: int | None = None
) -> None:
    """A login account may check in for exactly one employee."""
    if user_id is None:
        return
    if await db.get(User, user_id) is None:
        raise HTTPException(status_code=400, detail=f"User {user_id} does not exist")
    query = select(Employee.id).where(Employee.user_id == user_id)
    if employee_id is not None:
        query = query.where(Employee.id != employee_id)
    if (await db.execute(query)).scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=400, detail=f"User {user_id} is already linked to another employee"
        )


@router.get("", response_model=list[EmployeeRead])
async def list_employees(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> list[Employee]:
    query = (
        select(Employee)
        .where(Employee.is_active.is_(True))
        .order_by(Employee.name)
        .offset(skip)
        .limit(limit)
    )
    if search:
        # LIKE metacharacters are matched literally
        safe_search = search.replace("%", r"\%").replace("_", r"\_")
        query = query.where(Employee.name.ilike(f"%{safe_search}%", escape="\\"))
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("", response_model=EmployeeRead, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Employee:
    existing = await db.execute(
        select(Employee).where(Employee.employee_code == body.employee_code)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=400,
            detail=f"Employee code '{body.employee_code}' already registered",
        )
    await _check_account_link(db, body.user_id)

    employee = Employee(**body.model_dump())
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    logger.info("Created employee %s (%s)", employee.name, employee.employee_code)
    return employee


@router.get("/by-code", response_model=EmployeeRead)
async def get_employee_by_code(
    code: str = Query(min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Employee:
    emp = await _employees.get_by_code(db, code.strip())
    if emp is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


@router.get("/{employee_id}", response_model=EmployeeRead)
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Employee:
    emp = await _employees.get(db, employee_id)
    if emp is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


@router.put("/{employee_id}", response_model=EmployeeRead)
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Employee:
    emp = await _get_or_404(db, employee_id)

    changes = body.model_dump(exclude_unset=True)
    if "user_id" in changes:
        await _check_account_link(db, changes["user_id"], employee_id)
    for field, value in changes.items():
        setattr(emp, field, value)

    await db.commit()
    await db.refresh(emp)
    logger.info("Updated employee %d", employee_id)
    return emp


@router.delete("/{employee_id}", response_model=DeleteResponse)
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> DeleteResponse:
    """Soft-delete (deactivate) an employee. Attendance history is preserved."""
    emp = await _get_or_404(db, employee_id)

    emp.is_active = False
    await db.commit()
    logger.info("Deactivated employee %d (%s)", employee_id, emp.name)
    return DeleteResponse(success=True, message=f"Employee '{emp.name}' deactivated")
