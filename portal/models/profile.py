from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    STUDENT = "aluno"
    GUARDIAN = "pai"
    ADMIN = "admin"
    INSTRUCTOR = "professor"


class ActivationStatus(str, Enum):
    ACTIVE = "ativo"
    INACTIVE = "inativo"


class ProfileRecord(BaseModel):
    """Ligne de tbf_controle_user, une par compte"""

    id: str = Field(..., description="ID de l'utilisateur Supabase Auth")
    first_name: str = Field(default="", alias="nome")
    last_name: str = Field(default="", alias="sobrenome")
    email: str = Field(default="")
    role: Optional[str] = Field(default=None)  # aluno, pai, admin, professor
    signature: Optional[str] = Field(default=None)  # ativo, inativo
    dependent_emails: str = Field(default="", alias="emailaluno")  # emails séparés par ", "
    guardian_email: str = Field(default="", alias="emailpai")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProfileRecord":
        return cls.model_validate({key: value for key, value in row.items() if value is not None})

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @property
    def is_active_student(self) -> bool:
        return self.role == Role.STUDENT.value and self.signature == ActivationStatus.ACTIVE.value
