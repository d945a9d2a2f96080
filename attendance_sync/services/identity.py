from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_sync.models import Employee


@dataclass(frozen=True, slots=True)
class EmployeeIdentity:
    uid: int
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    id_number: str | None = None
    id_barcode: str | None = None

    @property
    def name(self) -> str:
        parts = [part.strip() for part in (self.first_name, self.last_name) if part and part.strip()]
        if not parts:
            return f"Employee {self.uid}"
        return " ".join(parts)


class IdentityLookup(Protocol):
    def exists(self, employee_uid: int) -> bool: ...

    def resolve(self, employee_uid: int) -> EmployeeIdentity | None: ...


class SqlIdentityLookup:
    def __init__(self, db: Session) -> None:
        self._db = db

    def exists(self, employee_uid: int) -> bool:
        return self._db.scalar(select(Employee.uid).where(Employee.uid == employee_uid)) is not None

    def resolve(self, employee_uid: int) -> EmployeeIdentity | None:
        employee = self._db.get(Employee, employee_uid)
        if employee is None:
            return None
        return EmployeeIdentity(
            uid=employee.uid,
            first_name=employee.first_name,
            last_name=employee.last_name,
            department=employee.department,
            id_number=employee.id_number,
            id_barcode=employee.id_barcode,
        )
