from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import Response
from pymongo.database import Database

from school_portal.core.database import find_or_404, get_db, serialize_doc, to_object_id
from school_portal.core.security import require_permission
from school_portal.models.evaluation_schemas import EvaluationAudience
from school_portal.models.performance_schemas import (
    PerformanceBulkUploadResult,
    PerformanceEvaluationCreate,
    PerformanceEvaluationUpdate,
)
from school_portal.services.audit_log import audit
from school_portal.services.bulk_upload import process_performance_upload
from school_portal.services.performance_evaluation import (
    evaluation_document,
    general_average,
    validate_scores,
)
from school_portal.services.spreadsheet import performance_template

router = APIRouter(prefix="/performance-evaluations", tags=["Performance Evaluations"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _as_datetime(value):
    return datetime.combine(value, datetime.min.time())


def _with_personnel(db: Database, doc: dict) -> dict:
    out = serialize_doc(doc)
    person = db["personnel"].find_one({"_id": doc.get("personnel")})
    out["personnel"] = {
        "_id": str(person["_id"]),
        "firstName": person.get("firstName", ""),
        "lastName": person.get("lastName", ""),
        "email": person.get("email", ""),
    } if person else None
    return out


@router.get("", dependencies=[Depends(require_permission("personnel.read"))])
def list_performance_evaluations(
    personnel: str | None = None,
    audience: EvaluationAudience | None = None,
    semester: str | None = None,
    db: Database = Depends(get_db),
):
    query = {}
    if personnel:
        query["personnel"] = to_object_id(personnel)
    if audience:
        query["audience"] = audience.value
    if semester:
        query["semester"] = semester
    cursor = db["performance_evaluations"].find(query).sort("evaluationDate", -1)
    return [_with_personnel(db, e) for e in cursor]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_performance_evaluation(
    evaluation: PerformanceEvaluationCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    oid = to_object_id(evaluation.personnel)
    if oid is None or not db["personnel"].find_one({"_id": oid}):
        raise HTTPException(status_code=400, detail="Personnel does not exist.")
    scores = validate_scores(evaluation.scores, evaluation.audience.value)

    doc = evaluation_document(
        oid,
        evaluation.audience.value,
        _as_datetime(evaluation.evaluationDate),
        scores,
        semester=evaluation.semester,
        feedback=evaluation.feedback,
        evaluated_by=evaluation.evaluatedBy,
    )
    doc["_id"] = db["performance_evaluations"].insert_one(doc).inserted_id
    audit(db, request, current_user, "performance_evaluations.create", "performance_evaluations",
          str(doc["_id"]), details={"personnel": evaluation.personnel})
    return _with_personnel(db, doc)


@router.get("/template", dependencies=[Depends(require_permission("personnel.manage"))])
def download_performance_template(audience: EvaluationAudience = EvaluationAudience.teaching):
    return Response(
        content=performance_template(audience.value),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{audience.value}-evaluation-template.xlsx"'},
    )


@router.post("/bulk-upload", response_model=PerformanceBulkUploadResult)
async def bulk_upload_performance_evaluations(
    request: Request,
    audience: EvaluationAudience = EvaluationAudience.teaching,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    """
    Create personnel and their evaluations from one .xlsx/.xls/.csv sheet.
    Existing personnel are matched by email and reused.
    """
    content = await file.read()
    result = process_performance_upload(db, content, file.filename or "", audience.value)
    audit(db, request, current_user, "performance_evaluations.bulk_upload", "performance_evaluations",
          details={
              "personnel": result["successfulPersonnel"],
              "evaluations": result["successfulEvaluations"],
              "errors": len(result["errors"]),
          })
    return result


@router.get("/{evaluation_id}", dependencies=[Depends(require_permission("personnel.read"))])
def get_performance_evaluation(evaluation_id: str, db: Database = Depends(get_db)):
    doc = find_or_404(db["performance_evaluations"], evaluation_id, "Performance evaluation")
    return _with_personnel(db, doc)


@router.patch("/{evaluation_id}")
def update_performance_evaluation(
    evaluation_id: str,
    updates: PerformanceEvaluationUpdate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    doc = find_or_404(db["performance_evaluations"], evaluation_id, "Performance evaluation")
    update_data = updates.model_dump(exclude_none=True)

    if "scores" in update_data:
        update_data["scores"] = validate_scores(update_data["scores"], doc.get("audience", "teaching"))
        update_data["generalAverage"] = general_average(update_data["scores"])
    if "evaluationDate" in update_data:
        update_data["evaluationDate"] = _as_datetime(update_data["evaluationDate"])

    if update_data:
        update_data["updatedAt"] = datetime.now(timezone.utc)
        db["performance_evaluations"].update_one({"_id": doc["_id"]}, {"$set": update_data})
        audit(db, request, current_user, "performance_evaluations.update", "performance_evaluations",
              evaluation_id, details={"fields": sorted(k for k in update_data if k != "updatedAt")})
    return _with_personnel(db, db["performance_evaluations"].find_one({"_id": doc["_id"]}))


@router.delete("/{evaluation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_performance_evaluation(
    evaluation_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("personnel.manage")),
):
    doc = find_or_404(db["performance_evaluations"], evaluation_id, "Performance evaluation")
    db["performance_evaluations"].delete_one({"_id": doc["_id"]})
    audit(db, request, current_user, "performance_evaluations.delete", "performance_evaluations", evaluation_id)
