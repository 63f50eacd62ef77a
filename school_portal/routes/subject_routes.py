from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc, to_object_id
from school_portal.core.security import require_permission
from school_portal.models.personnel_schemas import SubjectCreate, SubjectUpdate
from school_portal.services.audit_log import audit

router = APIRouter(prefix="/subjects", tags=["Subjects"])


def _resolve_refs(db: Database, data: dict) -> dict:
    if "department" in data:
        oid = to_object_id(data["department"])
        if oid is None or not db["departments"].find_one({"_id": oid}):
            raise HTTPException(status_code=400, detail="Department does not exist.")
        data["department"] = oid
    if data.get("teacher"):
        oid = to_object_id(data["teacher"])
        if oid is None or not db["personnel"].find_one({"_id": oid}):
            raise HTTPException(status_code=400, detail="Teacher does not exist.")
        data["teacher"] = oid
    return data


@router.get("", dependencies=[Depends(require_permission("subjects.read"))])
def list_subjects(
    department: str | None = None,
    semester: str | None = None,
    active: bool | None = None,
    db: Database = Depends(get_db),
):
    query = {}
    if department:
        query["department"] = to_object_id(department)
    if semester:
        query["semester"] = semester
    if active is not None:
        query["isActive"] = active
    return [serialize_doc(s) for s in db["subjects"].find(query).sort("code", 1)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_subject(
    subject: SubjectCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("subjects.manage")),
):
    code = subject.code.strip().upper()
    if db["subjects"].find_one({"code": code}):
        raise HTTPException(status_code=400, detail="Subject code already exists")

    now = datetime.now(timezone.utc)
    doc = _resolve_refs(db, subject.model_dump())
    doc.update({"code": code, "createdAt": now, "updatedAt": now})
    doc["_id"] = db["subjects"].insert_one(doc).inserted_id
    audit(db, request, current_user, "subjects.create", "subjects", str(doc["_id"]), details={"code": code})
    return serialize_doc(doc)


@router.get("/{subject_id}", dependencies=[Depends(require_permission("subjects.read"))])
def get_subject(subject_id: str, db: Database = Depends(get_db)):
    return serialize_doc(find_or_404(db["subjects"], subject_id, "Subject"))


@router.patch("/{subject_id}")
def update_subject(
    subject_id: str,
    updates: SubjectUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("subjects.manage")),
):
    doc = find_or_404(db["subjects"], subject_id, "Subject")
    update_data = _resolve_refs(db, updates.model_dump(exclude_none=True))
    if "code" in update_data:
        update_data["code"] = update_data["code"].strip().upper()
        clash = db["subjects"].find_one({"code": update_data["code"], "_id": {"$ne": doc["_id"]}})
        if clash:
            raise HTTPException(status_code=400, detail="Subject code already exists")
    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["subjects"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "subjects.update", "subjects", subject_id)
    return serialize_doc(db["subjects"].find_one({"_id": doc["_id"]}))


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subject(
    subject_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("subjects.manage")),
):
    doc = find_or_404(db["subjects"], subject_id, "Subject")
    db["subjects"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "subjects.delete", "subjects", subject_id, details={"code": doc["code"]})
