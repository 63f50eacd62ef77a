from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SystemSettings(BaseModel):
    siteName: str
    siteDescription: str = ""
    maintenanceMode: bool = False
    allowRegistration: bool = True
    defaultUserRole: str
    # minutes of inactivity before the idle warning
    sessionTimeout: int = Field(..., ge=1)
    passwordMinLength: int = Field(..., ge=1, le=72)
    passwordRequireUppercase: bool = False
    passwordRequireLowercase: bool = False
    passwordRequireNumbers: bool = False
    passwordRequireSpecialChars: bool = False
    updatedAt: Optional[datetime] = None


class SettingsUpdate(BaseModel):
    siteName: Optional[str] = Field(None, min_length=1)
    siteDescription: Optional[str] = None
    maintenanceMode: Optional[bool] = None
    allowRegistration: Optional[bool] = None
    defaultUserRole: Optional[str] = None
    sessionTimeout: Optional[int] = Field(None, ge=1, le=24 * 60)
    passwordMinLength: Optional[int] = Field(None, ge=1, le=72)
    passwordRequireUppercase: Optional[bool] = None
    passwordRequireLowercase: Optional[bool] = None
    passwordRequireNumbers: Optional[bool] = None
    passwordRequireSpecialChars: Optional[bool] = None
