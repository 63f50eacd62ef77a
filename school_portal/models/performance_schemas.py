from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from school_portal.models.evaluation_schemas import EvaluationAudience


class PerformanceEvaluationCreate(BaseModel):
    # personnel id
    personnel: str
    audience: EvaluationAudience = EvaluationAudience.teaching
    evaluationDate: date
    semester: Optional[str] = None
    # criterion code -> score, e.g. {"PAA": 4, "KSM": 5, ...}
    scores: Dict[str, float]
    feedback: Optional[str] = None
    evaluatedBy: Optional[str] = None


class PerformanceEvaluationUpdate(BaseModel):
    evaluationDate: Optional[date] = None
    semester: Optional[str] = None
    scores: Optional[Dict[str, float]] = None
    feedback: Optional[str] = None
    evaluatedBy: Optional[str] = None


class SkippedPersonnelRow(BaseModel):
    row: int
    email: str
    firstName: str
    lastName: str
    reason: str


class UploadRowError(BaseModel):
    row: int
    field: Optional[str] = None
    message: str
    data: dict = Field(default_factory=dict)


class PerformanceBulkUploadResult(BaseModel):
    totalRows: int
    successfulPersonnel: int
    successfulEvaluations: int
    skippedRows: int
    skippedPersonnel: List[SkippedPersonnelRow]
    errors: List[UploadRowError]
