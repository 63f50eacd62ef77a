from datetime import date
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""


class DepartmentUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class PersonnelCreate(BaseModel):
    firstName: str = Field(..., min_length=1)
    lastName: str = Field(..., min_length=1)
    middleName: Optional[str] = None
    email: EmailStr
    # department id
    department: str
    jobTitle: Optional[str] = None
    hireDate: Optional[date] = None
    phoneNumber: Optional[str] = None
    gender: Optional[str] = None


class PersonnelUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    middleName: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    jobTitle: Optional[str] = None
    hireDate: Optional[date] = None
    phoneNumber: Optional[str] = None
    gender: Optional[str] = None


class PersonnelUploadRow(BaseModel):
    """One spreadsheet row; the department is given by name."""
    firstName: str = Field(..., min_length=1)
    lastName: str = Field(..., min_length=1)
    middleName: Optional[str] = None
    email: EmailStr
    department: str = Field(..., min_length=1)
    jobTitle: Optional[str] = None
    hireDate: Optional[date] = None
    phoneNumber: Optional[str] = None
    gender: Optional[str] = None


class SkippedPersonnelRecord(BaseModel):
    row: int
    email: str
    firstName: str
    lastName: str
    reason: str


class FailedPersonnelRecord(BaseModel):
    row: int
    data: dict
    error: str


class PersonnelBulkUploadResult(BaseModel):
    success: bool
    created: int
    skipped: int
    failed: int
    total: int
    skippedRecords: List[SkippedPersonnelRecord]
    failedRecords: List[FailedPersonnelRecord]


class SubjectCreate(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    department: str
    teacher: Optional[str] = None
    gradeLevel: Optional[str] = None
    semester: Optional[str] = None
    isActive: bool = True


class SubjectUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    teacher: Optional[str] = None
    gradeLevel: Optional[str] = None
    semester: Optional[str] = None
    isActive: Optional[bool] = None
