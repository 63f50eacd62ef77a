from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db
from school_portal.core.security import get_password_hash, require_permission, user_permissions
from school_portal.models.user_schemas import UserCreate, UserResponse, UserRolesUpdate, UserUpdate
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.routes.auth_routes import to_user_response
from school_portal.services.audit_log import audit
from school_portal.services.password_policy import check_password

router = APIRouter(prefix="/users", tags=["Users"])


def _check_roles_exist(db: Database, roles: list) -> None:
    known = {r["name"] for r in db["roles"].find({"name": {"$in": roles}}, {"name": 1})}
    unknown = [r for r in roles if r not in known]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown roles: {', '.join(unknown)}")


@router.get("", response_model=list[UserResponse], dependencies=[Depends(require_permission("users.read"))])
def list_users(db: Database = Depends(get_db)):
    return [to_user_response(doc) for doc in db["users"].find({}).sort("email", 1)]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user: UserCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("users.create")),
):
    email = user.email.lower()
    if db["users"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    settings = SettingsRepository(db).get()
    check_password(user.password, settings)
    roles = user.roles or [settings["defaultUserRole"]]
    _check_roles_exist(db, roles)

    now = datetime.now(timezone.utc)
    doc = {
        "email": email,
        "hashed_password": get_password_hash(user.password),
        "firstName": user.firstName,
        "lastName": user.lastName,
        "roles": roles,
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["users"].insert_one(doc).inserted_id
    audit(db, request, current_user, "users.create", "users", str(doc["_id"]), details={"email": email})
    return to_user_response(doc, permissions=user_permissions(db, doc))


@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_permission("users.read"))])
def get_user(user_id: str, db: Database = Depends(get_db)):
    doc = find_or_404(db["users"], user_id, "User")
    return to_user_response(doc, permissions=user_permissions(db, doc))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    updates: UserUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("users.update")),
):
    doc = find_or_404(db["users"], user_id, "User")
    update_data = {}

    if updates.email:
        email = updates.email.lower()
        if email != doc["email"] and db["users"].find_one({"email": email}):
            raise HTTPException(status_code=400, detail="Email already taken.")
        update_data["email"] = email
    if updates.password:
        check_password(updates.password, SettingsRepository(db).get())
        update_data["hashed_password"] = get_password_hash(updates.password)
    for field in ("firstName", "lastName", "isActive"):
        value = getattr(updates, field)
        if value is not None:
            update_data[field] = value

    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["users"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        changed = sorted(k for k in update_data if k not in ("hashed_password", "updatedAt"))
        audit(db, request, current_user, "users.update", "users", user_id, details={"fields": changed})

    updated = db["users"].find_one({"_id": doc["_id"]})
    return to_user_response(updated, permissions=user_permissions(db, updated))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("users.delete")),
):
    doc = find_or_404(db["users"], user_id, "User")
    if doc["_id"] == current_user["_id"]:
        raise HTTPException(status_code=400, detail="You cannot delete your own account.")
    db["users"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "users.delete", "users", user_id, details={"email": doc["email"]})


@router.put("/{user_id}/roles", response_model=UserResponse)
def set_user_roles(
    user_id: str,
    req: UserRolesUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("users.update", "roles.update")),
):
    doc = find_or_404(db["users"], user_id, "User")
    _check_roles_exist(db, req.roles)
    db["users"].update_one(
        {"_id": doc["_id"]},
        {"$set": {"roles": req.roles, "updatedAt": datetime.now(timezone.utc)}},
    )
    audit(db, request, current_user, "users.roles", "users", user_id, details={"roles": req.roles})
    updated = db["users"].find_one({"_id": doc["_id"]})
    return to_user_response(updated, permissions=user_permissions(db, updated))
