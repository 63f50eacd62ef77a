from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.database import Database

from school_portal.core.database import get_db
from school_portal.core.security import require_permission
from school_portal.models.settings_schemas import SettingsUpdate, SystemSettings
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.services.audit_log import audit

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=SystemSettings, dependencies=[Depends(require_permission("settings.view"))])
def get_settings(db: Database = Depends(get_db)):
    return SettingsRepository(db).get()


@router.patch("", response_model=SystemSettings)
def update_settings(
    updates: SettingsUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("settings.manage")),
):
    """
    Change system settings. New session timeouts apply to open sessions on
    their next request; password rules apply to passwords set from now on.
    """
    changes = updates.model_dump(exclude_none=True)
    role = changes.get("defaultUserRole")
    if role is not None and not db["roles"].find_one({"name": role}):
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")

    repo = SettingsRepository(db)
    if not changes:
        return repo.get()
    settings = repo.update(changes)
    audit(db, request, current_user, "settings.update", "settings", "system", details={"fields": sorted(changes)})
    return settings
