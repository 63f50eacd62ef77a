from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import Response
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc, to_object_id
from school_portal.core.security import require_permission
from school_portal.models.personnel_schemas import (
    PersonnelBulkUploadResult,
    PersonnelCreate,
    PersonnelUpdate,
)
from school_portal.services.audit_log import audit
from school_portal.services.bulk_upload import process_personnel_upload
from school_portal.services.spreadsheet import export_personnel, personnel_template

router = APIRouter(prefix="/personnel", tags=["Personnel"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _department_id(db: Database, dept_id: str):
    oid = to_object_id(dept_id)
    if oid is None or not db["departments"].find_one({"_id": oid}):
        raise HTTPException(status_code=400, detail="Department does not exist.")
    return oid


def _with_department(db: Database, doc: dict) -> dict:
    out = serialize_doc(doc)
    dept = db["departments"].find_one({"_id": doc.get("department")})
    out["department"] = {"_id": str(dept["_id"]), "name": dept["name"]} if dept else None
    return out


def _to_storage(data: dict) -> dict:
    # pymongo stores datetimes, not dates
    if data.get("hireDate") is not None:
        data["hireDate"] = datetime.combine(data["hireDate"], datetime.min.time())
    return data


@router.get("", dependencies=[Depends(require_permission("personnel.read"))])
def list_personnel(department: str | None = None, db: Database = Depends(get_db)):
    query = {}
    if department:
        query["department"] = to_object_id(department)
    return [_with_department(db, p) for p in db["personnel"].find(query).sort([("lastName", 1), ("firstName", 1)])]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_personnel(
    person: PersonnelCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    email = person.email.lower()
    if db["personnel"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Personnel with this email already exists")

    now = datetime.now(timezone.utc)
    doc = _to_storage(person.model_dump())
    doc.update({
        "email": email,
        "department": _department_id(db, person.department),
        "createdAt": now,
        "updatedAt": now,
    })
    doc["_id"] = db["personnel"].insert_one(doc).inserted_id
    audit(db, request, current_user, "personnel.create", "personnel", str(doc["_id"]), details={"email": email})
    return _with_department(db, doc)


@router.get("/template", dependencies=[Depends(require_permission("personnel.manage"))])
def download_personnel_template():
    return Response(
        content=personnel_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="personnel-template.xlsx"'},
    )


@router.get("/export", dependencies=[Depends(require_permission("analytics.export"))])
def export_personnel_xlsx(db: Database = Depends(get_db)):
    departments = {str(d["_id"]): d["name"] for d in db["departments"].find({})}
    content = export_personnel(list(db["personnel"].find({}).sort("lastName", 1)), departments)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="personnel.xlsx"'},
    )


@router.post("/bulk-upload", response_model=PersonnelBulkUploadResult)
async def bulk_upload_personnel(
    request: Request,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    """
    Create personnel from an .xlsx/.xls/.csv sheet. Duplicate emails are skipped,
    invalid rows are reported per row.
    """
    content = await file.read()
    result = process_personnel_upload(db, content, file.filename or "")
    audit(db, request, current_user, "personnel.bulk_upload", "personnel",
          details={"created": result["created"], "skipped": result["skipped"], "failed": result["failed"]})
    return result


@router.get("/{personnel_id}", dependencies=[Depends(require_permission("personnel.read"))])
def get_personnel(personnel_id: str, db: Database = Depends(get_db)):
    return _with_department(db, find_or_404(db["personnel"], personnel_id, "Personnel"))


@router.patch("/{personnel_id}")
def update_personnel(
    personnel_id: str,
    updates: PersonnelUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    doc = find_or_404(db["personnel"], personnel_id, "Personnel")
    update_data = _to_storage(updates.model_dump(exclude_none=True))

    if "email" in update_data:
        update_data["email"] = update_data["email"].lower()
        clash = db["personnel"].find_one({"email": update_data["email"], "_id": {"$ne": doc["_id"]}})
        if clash:
            raise HTTPException(status_code=400, detail="Personnel with this email already exists")
    if "department" in update_data:
        update_data["department"] = _department_id(db, update_data["department"])

    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["personnel"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "personnel.update", "personnel", personnel_id,
              details={"fields": sorted(k for k in update_data if k != "updatedAt")})
    return _with_department(db, db["personnel"].find_one({"_id": doc["_id"]}))


@router.delete("/{personnel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_personnel(
    personnel_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    doc = find_or_404(db["personnel"], personnel_id, "Personnel")
    db["personnel"].delete_one({"_id": doc["_id"]})
    db["subjects"].update_many({"teacher": doc["_id"]}, {"$set": {"teacher": None}})
    db["performance_evaluations"].delete_many({"personnel": doc["_id"]})
    audit(db, request, current_user, "personnel.delete", "personnel", personnel_id, details={"email": doc["email"]})
