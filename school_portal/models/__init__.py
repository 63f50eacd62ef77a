# school_portal/models/__init__.py

from .evaluation_schemas import EvaluationFormCreate, EvaluationReport, EvaluationResponseCreate
from .personnel_schemas import DepartmentCreate, PersonnelCreate, SubjectCreate
from .user_schemas import UserCreate, UserResponse

__all__ = [
    "EvaluationFormCreate",
    "EvaluationReport",
    "EvaluationResponseCreate",
    "DepartmentCreate",
    "PersonnelCreate",
    "SubjectCreate",
    "UserCreate",
    "UserResponse",
]
