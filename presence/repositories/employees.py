"""
Employee directory: resolves the identity a presence event belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presence.models.employee import Employee


@dataclass(frozen=True)
class EmployeeRef:
    """How the caller identifies the employee.

    The public kiosk flow passes the employee code typed in by the person at
    the door; the session flow passes the logged-in user id.
    """

    employee_code: str | None = None
    user_id: int | None = None

    @classmethod
    def by_code(cls, employee_code: str) -> EmployeeRef:
        return cls(employee_code=employee_code)

    @classmethod
    def by_user(cls, user_id: int) -> EmployeeRef:
        return cls(user_id=user_id)


class EmployeeRepository:
    async def get(self, db: AsyncSession, employee_id: int) -> Employee | None:
        result = await db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, db: AsyncSession, employee_code: str) -> Employee | None:
        result = await db.execute(
            select(Employee).where(
                Employee.employee_code == employee_code, Employee.is_active.is_(True)
            )
        )
        return result.scalar_one_or_none()

    async def get_by_user(self, db: AsyncSession, user_id: int) -> Employee | None:
        result = await db.execute(
            select(Employee).where(Employee.user_id == user_id, Employee.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def resolve(self, db: AsyncSession, ref: EmployeeRef) -> Employee | None:
        if ref.employee_code is not None:
            return await self.get_by_code(db, ref.employee_code)
        if ref.user_id is not None:
            return await self.get_by_user(db, ref.user_id)
        return None

    async def names_by_id(self, db: AsyncSession, employee_ids: set[int]) -> dict[int, str]:
        """One query for every name a listing needs (inactive employees included)."""
        if not employee_ids:
            return {}
        result = await db.execute(
            select(Employee.id, Employee.name).where(Employee.id.in_(employee_ids))
        )
        return {emp_id: name for emp_id, name in result.all()}
