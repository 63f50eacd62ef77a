from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional


class UserCreate(BaseModel):
    email: EmailStr
    # length and character rules come from the password policy settings
    password: str = Field(..., min_length=1)
    firstName: str = ""
    lastName: str = ""
    # Only honoured on the admin /users endpoint; self-registration always gets the default role.
    roles: List[str] = []


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1)
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    isActive: Optional[bool] = None


class UserResponse(BaseModel):
    id: str
    email: EmailStr
    firstName: str = ""
    lastName: str = ""
    roles: List[str]
    permissions: List[str] = []
    isActive: bool


class Token(BaseModel):
    access_token: str
    token_type: str


class UserRolesUpdate(BaseModel):
    roles: List[str]


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    displayName: str = ""
    description: str = ""
    hierarchy: int = 10
    permissions: List[str] = []


class RoleUpdate(BaseModel):
    displayName: Optional[str] = None
    description: Optional[str] = None
    hierarchy: Optional[int] = None
    permissions: Optional[List[str]] = None


class PermissionUpdate(BaseModel):
    displayName: Optional[str] = None
    description: Optional[str] = None


class SessionStatus(BaseModel):
    state: str
    secondsRemaining: float
    idleTimeoutMinutes: int
    warningCountdownSeconds: int
