from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class EvaluationAudience(str, Enum):
    teaching = "teaching"
    non_teaching = "non-teaching"


class ScaleItem(BaseModel):
    value: float
    label: str


class Section(BaseModel):
    # short code such as PAA or KSM
    key: Optional[str] = None
    title: str = Field(..., min_length=1)
    items: List[str] = []


DEFAULT_SCALE = [
    ScaleItem(value=5, label="Outstanding"),
    ScaleItem(value=4, label="Very Satisfactory"),
    ScaleItem(value=3, label="Satisfactory"),
    ScaleItem(value=2, label="Fair"),
    ScaleItem(value=1, label="Poor"),
]


class EvaluationFormCreate(BaseModel):
    name: str = Field(..., min_length=1)
    audience: EvaluationAudience
    description: Optional[str] = None
    evaluatorOptions: List[str] = []
    scale: List[ScaleItem] = DEFAULT_SCALE
    sections: List[Section] = []
    departments: List[str] = []
    semester: Optional[str] = None
    schoolYear: Optional[str] = None
    endDate: Optional[datetime] = None

    @model_validator(mode="after")
    def _unique_section_titles(self):
        titles = [s.title for s in self.sections]
        if len(titles) != len(set(titles)):
            raise ValueError("Section titles must be unique within a form.")
        return self


class EvaluationFormUpdate(BaseModel):
    name: Optional[str] = None
    audience: Optional[EvaluationAudience] = None
    description: Optional[str] = None
    evaluatorOptions: Optional[List[str]] = None
    scale: Optional[List[ScaleItem]] = None
    sections: Optional[List[Section]] = None
    departments: Optional[List[str]] = None
    semester: Optional[str] = None
    schoolYear: Optional[str] = None
    endDate: Optional[datetime] = None


class Answer(BaseModel):
    section: str
    item: str
    score: float


class EvaluationResponseCreate(BaseModel):
    formId: str
    semester: Optional[str] = None
    evaluator: Optional[str] = None
    respondentName: Optional[str] = None
    respondentDepartment: Optional[str] = None
    answers: List[Answer] = Field(..., min_length=1)


class ReportItem(BaseModel):
    section: str
    item: str
    respondentCount: int
    averageScore: float
    percentage: float


class ReportSection(BaseModel):
    section: str
    items: List[ReportItem]
    respondentCount: int
    sumAverage: float
    sumPercentage: float


class ReportTotals(BaseModel):
    sumAverage: float
    sumPercentage: float
    respondentCount: int


class EvaluationReport(BaseModel):
    formId: Optional[str] = None
    semester: Optional[str] = None
    totalResponses: int
    overallAverageScore: float
    overallPercentage: float
    items: List[ReportItem]
    sections: List[ReportSection]
    grandTotal: ReportTotals


class PersonnelSectionItem(BaseModel):
    item: str
    averageScore: float
    percentage: float


class PersonnelSection(BaseModel):
    section: str
    averageScore: float
    percentage: float
    items: List[PersonnelSectionItem]


class PersonnelSummary(BaseModel):
    name: str
    department: str
    responseCount: int
    evaluatorCount: int
    evaluators: str
    totalScore: float
    averageScore: float
    percentage: float
    semesters: str
    sections: List[PersonnelSection]


class PersonnelSummaryReport(BaseModel):
    formId: str
    semester: Optional[str] = None
    totalResponses: int
    totalPersonnel: int
    overallAverageScore: float
    overallPercentage: float
    personnel: List[PersonnelSummary]


class BulkUploadError(BaseModel):
    row: int
    message: str
    data: dict = {}


class ResponseBulkUploadResult(BaseModel):
    totalRows: int
    successfulResponses: int
    skippedRows: int
    errors: List[BulkUploadError]
