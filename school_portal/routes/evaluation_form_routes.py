from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc, to_object_id
from school_portal.core.security import require_permission
from school_portal.models.evaluation_schemas import EvaluationFormCreate, EvaluationFormUpdate
from school_portal.services.audit_log import audit

router = APIRouter(prefix="/evaluation-forms", tags=["Evaluation Forms"])


def _department_ids(db: Database, ids: list) -> list:
    oids = []
    for dept_id in ids:
        oid = to_object_id(dept_id)
        if oid is None or not db["departments"].find_one({"_id": oid}):
            raise HTTPException(status_code=400, detail=f"Department {dept_id} does not exist.")
        oids.append(oid)
    return oids


def _with_departments(db: Database, form: dict) -> dict:
    out = serialize_doc(form)
    ids = form.get("departments", []) or []
    depts = db["departments"].find({"_id": {"$in": ids}}) if ids else []
    out["departments"] = [{"_id": str(d["_id"]), "name": d["name"]} for d in depts]
    return out


@router.get("", dependencies=[Depends(require_permission("evaluations.read"))])
def list_forms(audience: str | None = None, db: Database = Depends(get_db)):
    query = {"audience": audience} if audience else {}
    return [_with_departments(db, f) for f in db["evaluation_forms"].find(query).sort("createdAt", -1)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_form(
    form: EvaluationFormCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.manage")),
):
    now = datetime.now(timezone.utc)
    doc = form.model_dump(mode="python")
    doc["audience"] = form.audience.value
    doc["departments"] = _department_ids(db, form.departments)
    doc.update({"createdAt": now, "updatedAt": now, "createdBy": current_user["_id"]})
    doc["_id"] = db["evaluation_forms"].insert_one(doc).inserted_id
    audit(db, request, current_user, "evaluation_forms.create", "evaluation_forms", str(doc["_id"]),
          details={"name": form.name})
    return _with_departments(db, doc)


@router.get("/{form_id}", dependencies=[Depends(require_permission("evaluations.read"))])
def get_form(form_id: str, db: Database = Depends(get_db)):
    return _with_departments(db, find_or_404(db["evaluation_forms"], form_id, "Evaluation form"))


@router.patch("/{form_id}")
def update_form(
    form_id: str,
    updates: EvaluationFormUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.manage")),
):
    doc = find_or_404(db["evaluation_forms"], form_id, "Evaluation form")
    update_data = updates.model_dump(exclude_none=True, mode="python")
    if "audience" in update_data:
        update_data["audience"] = updates.audience.value
    if "departments" in update_data:
        update_data["departments"] = _department_ids(db, updates.departments)
    if "sections" in update_data:
        titles = [s["title"] for s in update_data["sections"]]
        if len(titles) != len(set(titles)):
            raise HTTPException(status_code=400, detail="Section titles must be unique within a form.")

    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["evaluation_forms"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "evaluation_forms.update", "evaluation_forms", form_id,
              details={"fields": sorted(k for k in update_data if k != "updatedAt")})
    return _with_departments(db, db["evaluation_forms"].find_one({"_id": doc["_id"]}))


@router.delete("/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_form(
    form_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.manage")),
):
    doc = find_or_404(db["evaluation_forms"], form_id, "Evaluation form")
    if db["evaluation_form_responses"].count_documents({"form": doc["_id"]}):
        raise HTTPException(
            status_code=400,
            detail="Form has responses; delete its responses before deleting the form.",
        )
    db["evaluation_forms"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "evaluation_forms.delete", "evaluation_forms", form_id,
          details={"name": doc.get("name")})
