"""
Closed enumerations shared by task, evidence and wave records.
"""

from enum import Enum
from typing import TypeVar, Union

from ..errors import ValidationError


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Role(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    DEVOPS = "devops"
    TEST = "test"
    DOCS = "docs"
    SECURITY = "security"
    REVIEW = "review"
    WORKER = "worker"


class Complexity(str, Enum):
    SIMPLE = "simple"
    STANDARD = "standard"
    COMPLEX = "complex"


class WaveStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"
    FAILED = "failed"


class EvidenceType(str, Enum):
    COMMAND = "command"
    FILE = "file"
    TEST = "test"
    MANUAL = "manual"


def choices(enum_cls: type[Enum]) -> list[str]:
    """Return the allowed string values of an enumeration."""
    return [member.value for member in enum_cls]


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: Union[str, E], field: str) -> E:
    """
    Convert an ingress value to an enumeration member.

    Raises:
        ValidationError: If value is not one of the allowed values
    """
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(choices(enum_cls))
        raise ValidationError(
            f"Invalid {field} {value!r}. Must be one of: {allowed}",
            field=field,
            value=value,
        ) from None
