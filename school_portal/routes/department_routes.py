from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc
from school_portal.core.security import require_permission
from school_portal.models.personnel_schemas import DepartmentCreate, DepartmentUpdate
from school_portal.services.audit_log import audit

router = APIRouter(prefix="/departments", tags=["Departments"])


@router.get("", dependencies=[Depends(require_permission("departments.read"))])
def list_departments(db: Database = Depends(get_db)):
    return [serialize_doc(d) for d in db["departments"].find({}).sort("name", 1)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_department(
    dept: DepartmentCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("departments.manage")),
):
    name = dept.name.strip()
    if db["departments"].find_one({"name": name}):
        raise HTTPException(status_code=400, detail="Department already exists")
    now = datetime.now(timezone.utc)
    doc = {"name": name, "description": dept.description, "createdAt": now, "updatedAt": now}
    doc["_id"] = db["departments"].insert_one(doc).inserted_id
    audit(db, request, current_user, "departments.create", "departments", str(doc["_id"]))
    return serialize_doc(doc)


@router.get("/{dept_id}", dependencies=[Depends(require_permission("departments.read"))])
def get_department(dept_id: str, db: Database = Depends(get_db)):
    return serialize_doc(find_or_404(db["departments"], dept_id, "Department"))


@router.patch("/{dept_id}")
def update_department(
    dept_id: str,
    updates: DepartmentUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("departments.manage")),
):
    doc = find_or_404(db["departments"], dept_id, "Department")
    update_data = updates.model_dump(exclude_none=True)
    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
        clash = db["departments"].find_one({"name": update_data["name"], "_id": {"$ne": doc["_id"]}})
        if clash:
            raise HTTPException(status_code=400, detail="Department already exists")
    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["departments"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "departments.update", "departments", dept_id)
    return serialize_doc(db["departments"].find_one({"_id": doc["_id"]}))


@router.delete("/{dept_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    dept_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("departments.manage")),
):
    doc = find_or_404(db["departments"], dept_id, "Department")
    if db["personnel"].count_documents({"department": doc["_id"]}):
        raise HTTPException(status_code=400, detail="Department still has personnel assigned.")
    db["departments"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "departments.delete", "departments", dept_id, details={"name": doc["name"]})
