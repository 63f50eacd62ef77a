from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response
from pymongo.database import Database

from school_portal.analysis.report_pdf import render_report_pdf
from school_portal.core.database import find_or_404, get_db, serialize_doc
from school_portal.core.security import get_current_active_user, require_permission
from school_portal.models.evaluation_schemas import (
    EvaluationReport,
    EvaluationResponseCreate,
    PersonnelSummaryReport,
    ResponseBulkUploadResult,
)
from school_portal.repositories.response_repository import EvaluationResponseRepository
from school_portal.services.audit_log import audit
from school_portal.services.bulk_upload import process_response_upload
from school_portal.services.evaluation_service import is_closed, validate_answers
from school_portal.services.report_builder import build_personnel_report, build_report
from school_portal.services.spreadsheet import export_responses, response_template

router = APIRouter(prefix="/evaluation-form-responses", tags=["Evaluation Responses"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _form(db: Database, form_id: str) -> dict:
    return find_or_404(db["evaluation_forms"], form_id, "Evaluation form")


@router.get("", dependencies=[Depends(require_permission("evaluations.read"))])
def list_responses(
    formId: str = Query(..., description="Evaluation form id"),
    department: str | None = None,
    semester: str | None = None,
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Database = Depends(get_db),
):
    form = _form(db, formId)
    responses = EvaluationResponseRepository(db).find_by_form(
        form["_id"], semester=semester, department=department, start_date=startDate, end_date=endDate,
    )
    # newest first for the table
    return [serialize_doc(r) for r in reversed(responses)]


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_response(
    payload: EvaluationResponseCreate,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.submit")),
):
    form = _form(db, payload.formId)
    if is_closed(form):
        raise HTTPException(status_code=400, detail="This evaluation has ended.")

    answers = validate_answers(form, [a.model_dump() for a in payload.answers])
    full_name = f"{current_user.get('firstName', '')} {current_user.get('lastName', '')}".strip()
    doc = EvaluationResponseRepository(db).create(form["_id"], {
        "respondentName": payload.respondentName or full_name,
        "respondentEmail": current_user["email"],
        "respondentDepartment": payload.respondentDepartment or "",
        "semester": payload.semester or form.get("semester") or "",
        "evaluator": payload.evaluator or "",
        "answers": answers,
    })
    audit(db, request, current_user, "evaluation_responses.submit", "evaluation_form_responses",
          str(doc["_id"]), details={"formId": payload.formId})
    return serialize_doc(doc)


@router.get("/my-responses")
def my_responses(current_user: dict = Depends(get_current_active_user), db: Database = Depends(get_db)):
    return [serialize_doc(r) for r in EvaluationResponseRepository(db).find_by_respondent(current_user["email"])]


@router.get(
    "/{form_id}/report",
    response_model=EvaluationReport,
    dependencies=[Depends(require_permission("evaluations.report"))],
)
def get_report(form_id: str, semester: str | None = None, db: Database = Depends(get_db)):
    """Per-item averages and percentages with section subtotals and a grand total."""
    return build_report(db, form_id, semester)


@router.get(
    "/{form_id}/personnel-report",
    response_model=PersonnelSummaryReport,
    dependencies=[Depends(require_permission("evaluations.report"))],
)
def get_personnel_report(form_id: str, semester: str | None = None, db: Database = Depends(get_db)):
    return build_personnel_report(db, form_id, semester)


@router.get("/{form_id}/report.pdf", dependencies=[Depends(require_permission("evaluations.report"))])
def get_report_pdf(form_id: str, semester: str | None = None, db: Database = Depends(get_db)):
    report = build_report(db, form_id, semester)
    content = render_report_pdf(report, _form(db, form_id))
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": 'inline; filename="evaluation-report.pdf"'},
    )


@router.get("/{form_id}/semesters", dependencies=[Depends(require_permission("evaluations.read"))])
def list_semesters(form_id: str, db: Database = Depends(get_db)):
    form = _form(db, form_id)
    return EvaluationResponseRepository(db).distinct_semesters(form["_id"])


@router.get("/{form_id}/template", dependencies=[Depends(require_permission("evaluations.manage"))])
def download_template(form_id: str, db: Database = Depends(get_db)):
    return Response(
        content=response_template(_form(db, form_id)),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="evaluation-form-responses-template.xlsx"'},
    )


@router.get("/{form_id}/export", dependencies=[Depends(require_permission("analytics.export"))])
def export_form_responses(
    form_id: str,
    department: str | None = None,
    semester: str | None = None,
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Database = Depends(get_db),
):
    form = _form(db, form_id)
    responses = EvaluationResponseRepository(db).find_by_form(
        form["_id"], semester=semester, department=department, start_date=startDate, end_date=endDate,
    )
    return Response(
        content=export_responses(form, responses),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="evaluation-form-responses.xlsx"'},
    )


@router.post("/{form_id}/bulk-upload", response_model=ResponseBulkUploadResult)
async def bulk_upload_responses(
    form_id: str,
    request: Request,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.manage")),
):
    form = _form(db, form_id)
    content = await file.read()
    result = process_response_upload(db, form, content, file.filename or "")
    audit(db, request, current_user, "evaluation_responses.bulk_upload", "evaluation_form_responses",
          details={"formId": form_id, "created": result["successfulResponses"], "errors": len(result["errors"])})
    return result


@router.delete("/{form_id}")
def delete_form_responses(
    form_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("evaluations.manage")),
):
    form = _form(db, form_id)
    deleted = EvaluationResponseRepository(db).delete_many_by_form(form["_id"])
    audit(db, request, current_user, "evaluation_responses.delete", "evaluation_form_responses",
          details={"formId": form_id, "deleted": deleted})
    return {"status": "success", "deleted": deleted}
