from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc
from school_portal.core.security import require_permission
from school_portal.models.user_schemas import PermissionUpdate, RoleCreate, RoleUpdate
from school_portal.services.audit_log import audit

router = APIRouter(tags=["Roles & Permissions"])


def _check_permissions_exist(db: Database, names: list) -> None:
    known = {p["name"] for p in db["permissions"].find({"name": {"$in": names}}, {"name": 1})}
    unknown = [n for n in names if n not in known]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown permissions: {', '.join(unknown)}")


@router.get("/roles", dependencies=[Depends(require_permission("roles.read"))])
def list_roles(db: Database = Depends(get_db)):
    return [serialize_doc(r) for r in db["roles"].find({}).sort("hierarchy", 1)]


@router.post("/roles", status_code=status.HTTP_201_CREATED)
def create_role(
    role: RoleCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("roles.create")),
):
    name = role.name.strip().lower()
    if db["roles"].find_one({"name": name}):
        raise HTTPException(status_code=400, detail="Role already exists")
    _check_permissions_exist(db, role.permissions)

    now = datetime.now(timezone.utc)
    doc = role.model_dump()
    doc.update({"name": name, "isSystem": False, "createdAt": now, "updatedAt": now})
    if not doc["displayName"]:
        doc["displayName"] = role.name.strip().title()
    doc["_id"] = db["roles"].insert_one(doc).inserted_id
    audit(db, request, current_user, "roles.create", "roles", str(doc["_id"]), details={"name": name})
    return serialize_doc(doc)


@router.get("/roles/{role_id}", dependencies=[Depends(require_permission("roles.read"))])
def get_role(role_id: str, db: Database = Depends(get_db)):
    return serialize_doc(find_or_404(db["roles"], role_id, "Role"))


@router.patch("/roles/{role_id}")
def update_role(
    role_id: str,
    updates: RoleUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("roles.update")),
):
    doc = find_or_404(db["roles"], role_id, "Role")
    update_data = updates.model_dump(exclude_none=True)
    if "permissions" in update_data:
        _check_permissions_exist(db, update_data["permissions"])
    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["roles"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "roles.update", "roles", role_id,
              details={"fields": sorted(k for k in update_data if k != "updatedAt")})
    return serialize_doc(db["roles"].find_one({"_id": doc["_id"]}))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("roles.delete")),
):
    doc = find_or_404(db["roles"], role_id, "Role")
    if doc.get("isSystem"):
        raise HTTPException(status_code=400, detail="System roles cannot be deleted.")
    if db["users"].count_documents({"roles": doc["name"]}):
        raise HTTPException(status_code=400, detail="Role is still assigned to users.")
    db["roles"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "roles.delete", "roles", role_id, details={"name": doc["name"]})


@router.get("/permissions", dependencies=[Depends(require_permission("permissions.read"))])
def list_permissions(category: str | None = None, db: Database = Depends(get_db)):
    query = {"category": category} if category else {}
    return [serialize_doc(p) for p in db["permissions"].find(query).sort("name", 1)]


@router.get("/permissions/categorized", dependencies=[Depends(require_permission("permissions.read"))])
def list_permissions_by_category(db: Database = Depends(get_db)):
    grouped = {}
    for p in db["permissions"].find({}).sort("name", 1):
        grouped.setdefault(p.get("category", "Other"), []).append(serialize_doc(p))
    return grouped


@router.patch("/permissions/{permission_id}")
def update_permission(
    permission_id: str,
    updates: PermissionUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("permissions.manage")),
):
    doc = find_or_404(db["permissions"], permission_id, "Permission")
    update_data = updates.model_dump(exclude_none=True)
    if update_data:
        db["permissions"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "permissions.update", "permissions", permission_id)
    return serialize_doc(db["permissions"].find_one({"_id": doc["_id"]}))
