from pydantic import BaseModel, ConfigDict
from typing import Optional
import enum

class RoleEnum(str, enum.Enum):
    student = "student"
    faculty = "faculty"
    admin = "admin"

class TokenPayload(BaseModel):
    sub: Optional[str] = None # Principal id issued by the identity provider
    role: Optional[RoleEnum] = None
    exp: Optional[int] = None # Expiry time

class Principal(BaseModel):
    """Authenticated caller as seen by the exam engine."""
    id: int
    role: RoleEnum

    model_config = ConfigDict(frozen=True)

    @property
    def is_student(self) -> bool:
        return self.role == RoleEnum.student

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin

    @property
    def is_staff(self) -> bool:
        return self.role in (RoleEnum.faculty, RoleEnum.admin)
