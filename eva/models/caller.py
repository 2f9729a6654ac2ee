"""Caller identity for tool scoping."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict

StaffRole = Literal["super_admin", "admin", "lawyer", "staff"]

STAFF_ROLES: tuple[StaffRole, ...] = ("super_admin", "admin", "lawyer", "staff")
WRITE_ROLES: frozenset[str] = frozenset({"super_admin", "admin", "lawyer"})
PORTAL_ROLES: tuple[str, ...] = ("client", *STAFF_ROLES)


@dataclass(frozen=True)
class StaffCaller:
    """A firm member using the internal assistant."""

    tenant_id: str
    user_id: str
    role: StaffRole

    @property
    def can_write(self) -> bool:
        return self.role in WRITE_ROLES


@dataclass(frozen=True)
class ClientCaller:
    """An external contact using the client portal."""

    tenant_id: str
    contact_id: str


Caller = StaffCaller | ClientCaller


class UserProfile(BaseModel):
    """Authenticated user profile loaded from the `users` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    law_firm_id: str | None = None
    user_type: str
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return " ".join(part for part in (self.first_name, self.last_name) if part) or "Usuário"

    def staff_caller(self) -> StaffCaller | None:
        """Return the staff identity, or None for non-staff or firm-less users."""
        if self.user_type not in STAFF_ROLES or not self.law_firm_id:
            return None
        return StaffCaller(tenant_id=self.law_firm_id, user_id=self.id, role=self.user_type)  # type: ignore[arg-type]
