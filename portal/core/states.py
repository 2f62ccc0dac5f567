from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict, Optional


@dataclass(frozen=True)
class FlowState:
    """État d'un flux: un nom et les données propres à cet état"""
    name: ClassVar[str] = "state"

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.name
        return data


@dataclass(frozen=True)
class Idle(FlowState):
    name: ClassVar[str] = "idle"
    field_error: Optional[str] = None


@dataclass(frozen=True)
class Validating(FlowState):
    name: ClassVar[str] = "validating"


@dataclass(frozen=True)
class Submitting(FlowState):
    name: ClassVar[str] = "submitting"


@dataclass(frozen=True)
class Success(FlowState):
    name: ClassVar[str] = "success"
    redirect_to: Optional[str] = None
    redirect_after: Optional[int] = None


@dataclass(frozen=True)
class Failed(FlowState):
    name: ClassVar[str] = "error"
    message: str = ""


@dataclass(frozen=True)
class InvalidLink(FlowState):
    name: ClassVar[str] = "invalid-link"
    message: str = ""
