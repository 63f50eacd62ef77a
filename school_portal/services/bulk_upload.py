import math
import re
from datetime import datetime, timezone
from typing import Dict

import pandas as pd
from pydantic import ValidationError
from pymongo.database import Database

from school_portal.core.logger import get_logger
from school_portal.models.personnel_schemas import PersonnelUploadRow
from school_portal.repositories.response_repository import EvaluationResponseRepository
from school_portal.services.evaluation_service import form_items, scale_bounds
from school_portal.services.performance_evaluation import (
    SCORE_MAX,
    SCORE_MIN,
    criteria_for,
    evaluation_document,
)
from school_portal.services.spreadsheet import (
    RESPONSE_FIXED_COLUMNS,
    item_column,
    normalize_header,
    read_table,
)

logger = get_logger(__name__)

# normalized header -> PersonnelUploadRow field
_PERSONNEL_FIELDS = {
    "firstname": "firstName",
    "lastname": "lastName",
    "middlename": "middleName",
    "email": "email",
    "department": "department",
    "jobtitle": "jobTitle",
    "hiredate": "hireDate",
    "phonenumber": "phoneNumber",
    "phone": "phoneNumber",
    "gender": "gender",
}


def _validation_message(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        field = ".".join(str(p) for p in e["loc"]) or "row"
        parts.append(f"{field}: {e['msg']}")
    return "; ".join(parts)


def _row_to_personnel_fields(row: Dict[str, str]) -> Dict[str, str]:
    data = {}
    for header, value in row.items():
        field = _PERSONNEL_FIELDS.get(normalize_header(header))
        if field and str(value).strip():
            data[field] = str(value).strip()
    if "hireDate" in data:
        parsed = pd.to_datetime(data["hireDate"], errors="coerce")
        data["hireDate"] = None if pd.isna(parsed) else parsed.date()
    return data


def _resolve_department(database: Database, name: str, cache: Dict[str, object]):
    key = name.strip().lower()
    if key in cache:
        return cache[key]
    doc = database["departments"].find_one({"name": {"$regex": f"^{re.escape(name.strip())}$", "$options": "i"}})
    if doc is None:
        now = datetime.now(timezone.utc)
        doc = {"name": name.strip(), "description": "", "createdAt": now, "updatedAt": now}
        doc["_id"] = database["departments"].insert_one(doc).inserted_id
        logger.info("Created department '%s' during bulk upload", name.strip())
    cache[key] = doc["_id"]
    return doc["_id"]


def process_personnel_upload(database: Database, content: bytes, filename: str) -> dict:
    """
    Create personnel from an uploaded spreadsheet.

    Rows are handled one by one: invalid rows land in failedRecords, emails that
    already exist (in the database or earlier in the file) land in skippedRecords.
    Nothing is raised for a bad row.
    """
    df = read_table(content, filename)
    existing = {
        (p.get("email") or "").lower()
        for p in database["personnel"].find({}, {"email": 1})
    }
    dept_cache: Dict[str, object] = {}

    created = 0
    skipped_records, failed_records = [], []

    for idx, row in enumerate(df.to_dict(orient="records")):
        row_no = idx + 2  # header is spreadsheet row 1
        fields = _row_to_personnel_fields(row)
        try:
            record = PersonnelUploadRow(**fields)
        except ValidationError as e:
            failed_records.append({"row": row_no, "data": row, "error": _validation_message(e)})
            continue

        email = record.email.lower()
        if email in existing:
            skipped_records.append({
                "row": row_no,
                "email": email,
                "firstName": record.firstName,
                "lastName": record.lastName,
                "reason": "Personnel with this email already exists",
            })
            continue

        now = datetime.now(timezone.utc)
        doc = record.model_dump()
        doc["email"] = email
        doc["department"] = _resolve_department(database, record.department, dept_cache)
        if doc.get("hireDate"):
            doc["hireDate"] = datetime.combine(doc["hireDate"], datetime.min.time())
        doc["createdAt"] = now
        doc["updatedAt"] = now
        database["personnel"].insert_one(doc)
        existing.add(email)
        created += 1

    total = len(df.index)
    logger.info(
        "Personnel upload '%s': %d created, %d skipped, %d failed of %d rows",
        filename, created, len(skipped_records), len(failed_records), total,
    )
    return {
        "success": not failed_records,
        "created": created,
        "skipped": len(skipped_records),
        "failed": len(failed_records),
        "total": total,
        "skippedRecords": skipped_records,
        "failedRecords": failed_records,
    }


def process_response_upload(database: Database, form: dict, content: bytes, filename: str) -> dict:
    """
    Create one evaluation response per spreadsheet row.

    Expected columns: the fixed respondent columns followed by one
    "<section> - <item>" column per form item, as produced by the template.
    """
    df = read_table(content, filename)
    repo = EvaluationResponseRepository(database)
    low, high = scale_bounds(form)

    item_keys = form_items(form)
    missing = [item_column(s, i) for s, i in item_keys if item_column(s, i) not in df.columns]

    successful = 0
    skipped = 0
    errors = []

    for idx, row in enumerate(df.to_dict(orient="records")):
        row_no = idx + 2
        if not any(str(v).strip() for v in row.values()):
            skipped += 1
            continue
        if missing:
            errors.append({"row": row_no, "message": f"Missing columns: {', '.join(missing)}", "data": row})
            continue

        answers = []
        problems = []
        for section, item in item_keys:
            raw = str(row.get(item_column(section, item), "")).strip()
            if not raw:
                problems.append(f"'{item_column(section, item)}' is empty")
                continue
            try:
                score = float(raw)
            except ValueError:
                problems.append(f"'{item_column(section, item)}' is not a number")
                continue
            if not math.isfinite(score) or not low <= score <= high:
                problems.append(f"'{item_column(section, item)}' must be between {low:g} and {high:g}")
                continue
            answers.append({"section": section, "item": item, "score": score})

        if not item_keys:
            problems.append("Form has no items to score")
        if problems:
            errors.append({"row": row_no, "message": "; ".join(problems), "data": row})
            continue

        fixed = {c: str(row.get(c, "")).strip() for c in RESPONSE_FIXED_COLUMNS}
        repo.create(form["_id"], {
            "respondentName": fixed["Respondent Name"],
            "respondentEmail": fixed["Respondent Email"],
            "respondentDepartment": fixed["Department"],
            "semester": fixed["Semester"] or form.get("semester") or "",
            "evaluator": fixed["Evaluator"],
            "answers": answers,
        })
        successful += 1

    logger.info(
        "Response upload for form %s: %d created, %d skipped, %d errors",
        form["_id"], successful, skipped, len(errors),
    )
    return {
        "totalRows": len(df.index),
        "successfulResponses": successful,
        "skippedRows": skipped,
        "errors": errors,
    }


def _cell(row: dict, column: str) -> str:
    return str(row.get(column, "")).strip()


def _find_personnel(database: Database, email: str, first: str, last: str):
    if email:
        return database["personnel"].find_one({"email": email})
    return database["personnel"].find_one({
        "firstName": {"$regex": f"^{re.escape(first)}$", "$options": "i"},
        "lastName": {"$regex": f"^{re.escape(last)}$", "$options": "i"},
    })


def _row_scores(row: dict, criteria) -> tuple:
    scores, problems = {}, []
    for code in criteria:
        raw = _cell(row, code)
        if not raw:
            problems.append((code, f"'{code}' is empty"))
            continue
        try:
            score = float(raw)
        except ValueError:
            problems.append((code, f"'{code}' is not a number"))
            continue
        if not math.isfinite(score) or not SCORE_MIN <= score <= SCORE_MAX:
            problems.append((code, f"'{code}' must be between {SCORE_MIN:g} and {SCORE_MAX:g}"))
            continue
        scores[code] = score
    return scores, problems


def process_performance_upload(database: Database, content: bytes, filename: str, audience: str) -> dict:
    """
    Create personnel and their performance evaluations from one sheet.

    A row names the person (by email, or by first and last name when the email
    is blank) and carries one score column per criterion of the audience.
    Personnel that already exist are not created again: the row is listed in
    skippedPersonnel and its evaluation goes to the existing record. New
    personnel need an email and a department.
    """
    df = read_table(content, filename)
    criteria = list(criteria_for(audience))
    missing = [c for c in ["First Name", "Last Name"] + criteria if c not in df.columns]
    dept_cache: Dict[str, object] = {}

    created_personnel = 0
    created_evaluations = 0
    skipped_rows = 0
    skipped_personnel, errors = [], []

    for idx, row in enumerate(df.to_dict(orient="records")):
        row_no = idx + 2
        if not any(str(v).strip() for v in row.values()):
            skipped_rows += 1
            continue
        if missing:
            errors.append({"row": row_no, "message": f"Missing columns: {', '.join(missing)}", "data": row})
            continue

        first, last = _cell(row, "First Name"), _cell(row, "Last Name")
        email = _cell(row, "Email").lower()
        if not first or not last:
            field = "First Name" if not first else "Last Name"
            errors.append({"row": row_no, "field": field, "message": f"'{field}' is required", "data": row})
            continue

        scores, problems = _row_scores(row, criteria)
        evaluation_date = datetime.now(timezone.utc)
        if _cell(row, "Evaluation Date"):
            parsed = pd.to_datetime(_cell(row, "Evaluation Date"), errors="coerce")
            if pd.isna(parsed):
                problems.append(("Evaluation Date", "'Evaluation Date' is not a date"))
            else:
                evaluation_date = datetime.combine(parsed.date(), datetime.min.time())
        if problems:
            errors.append({
                "row": row_no,
                "field": problems[0][0],
                "message": "; ".join(message for _, message in problems),
                "data": row,
            })
            continue

        person = _find_personnel(database, email, first, last)
        if person is not None:
            skipped_personnel.append({
                "row": row_no,
                "email": person.get("email", ""),
                "firstName": first,
                "lastName": last,
                "reason": "Personnel already exists; evaluation added to the existing record",
            })
        else:
            fields = {"firstName": first, "lastName": last, "email": email, "department": _cell(row, "Department")}
            if _cell(row, "Job Title"):
                fields["jobTitle"] = _cell(row, "Job Title")
            try:
                record = PersonnelUploadRow(**fields)
            except ValidationError as e:
                errors.append({
                    "row": row_no,
                    "field": "personnel",
                    "message": f"Cannot create personnel: {_validation_message(e)}",
                    "data": row,
                })
                continue
            now = datetime.now(timezone.utc)
            person = record.model_dump()
            person["department"] = _resolve_department(database, record.department, dept_cache)
            person["createdAt"] = now
            person["updatedAt"] = now
            person["_id"] = database["personnel"].insert_one(person).inserted_id
            created_personnel += 1

        database["performance_evaluations"].insert_one(evaluation_document(
            person["_id"],
            audience,
            evaluation_date,
            scores,
            semester=_cell(row, "Semester"),
            feedback=_cell(row, "Feedback"),
            evaluated_by=_cell(row, "Evaluated By"),
        ))
        created_evaluations += 1

    logger.info(
        "Performance upload '%s' (%s): %d personnel, %d evaluations, %d errors",
        filename, audience, created_personnel, created_evaluations, len(errors),
    )
    return {
        "totalRows": len(df.index),
        "successfulPersonnel": created_personnel,
        "successfulEvaluations": created_evaluations,
        "skippedRows": skipped_rows,
        "skippedPersonnel": skipped_personnel,
        "errors": errors,
    }
