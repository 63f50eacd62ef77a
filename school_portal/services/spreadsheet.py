# school_portal/services/spreadsheet.py
import io
from typing import Dict, List

import pandas as pd

from school_portal.core.exceptions import ValidationFailed
from school_portal.services.performance_evaluation import SCORE_MAX, SCORE_MIN, criteria_for

ALLOWED_EXTENSIONS = (".xlsx", ".xls", ".csv")

PERSONNEL_COLUMNS = [
    "First Name",
    "Last Name",
    "Middle Name",
    "Email",
    "Department",
    "Job Title",
    "Hire Date",
    "Phone Number",
    "Gender",
]

RESPONSE_FIXED_COLUMNS = [
    "Respondent Name",
    "Respondent Email",
    "Department",
    "Semester",
    "Evaluator",
]

PERFORMANCE_FIXED_COLUMNS = [
    "First Name",
    "Last Name",
    "Email",
    "Department",
    "Job Title",
    "Semester",
    "Evaluation Date",
    "Feedback",
    "Evaluated By",
]


def read_table(content: bytes, filename: str) -> pd.DataFrame:
    """
    Load an uploaded spreadsheet as strings; empty cells become "".
    """
    name = (filename or "").lower()
    if not name.endswith(ALLOWED_EXTENSIONS):
        raise ValidationFailed("Only .xlsx, .xls or .csv files are allowed.")
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(io.BytesIO(content), dtype=str, keep_default_na=False)
    except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationFailed(f"Could not read spreadsheet: {e}")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def normalize_header(header: str) -> str:
    # "First Name", "first_name" and "firstName" all map to "firstname"
    return "".join(ch for ch in str(header).lower() if ch.isalnum())


def item_column(section: str, item: str) -> str:
    return f"{section} - {item}"


def response_columns(form: dict) -> List[str]:
    columns = list(RESPONSE_FIXED_COLUMNS)
    for section in form.get("sections", []) or []:
        for item in section.get("items", []) or []:
            columns.append(item_column(section.get("title", ""), item))
    return columns


def to_xlsx(sheets: Dict[str, pd.DataFrame]) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, sheet_name=sheet_name[:31], index=False)
    return buffer.getvalue()


def personnel_template() -> bytes:
    return to_xlsx({"Personnel": pd.DataFrame(columns=PERSONNEL_COLUMNS)})


def response_template(form: dict) -> bytes:
    sheets = {"Responses": pd.DataFrame(columns=response_columns(form))}
    scale = form.get("scale") or []
    if scale:
        sheets["Scale"] = pd.DataFrame(
            [{"Value": s["value"], "Label": s["label"]} for s in scale]
        )
    return to_xlsx(sheets)


def performance_columns(audience: str) -> List[str]:
    return PERFORMANCE_FIXED_COLUMNS + list(criteria_for(audience))


def performance_template(audience: str) -> bytes:
    criteria = criteria_for(audience)
    return to_xlsx({
        "Evaluations": pd.DataFrame(columns=performance_columns(audience)),
        "Criteria": pd.DataFrame(
            [{"Code": code, "Criterion": label, "Min": SCORE_MIN, "Max": SCORE_MAX} for code, label in criteria.items()]
        ),
    })


def export_responses(form: dict, responses: List[dict]) -> bytes:
    columns = response_columns(form)
    rows = []
    for response in responses:
        row = {
            "Respondent Name": response.get("respondentName", ""),
            "Respondent Email": response.get("respondentEmail", ""),
            "Department": response.get("respondentDepartment", ""),
            "Semester": response.get("semester", ""),
            "Evaluator": response.get("evaluator", ""),
        }
        for answer in response.get("answers", []) or []:
            row[item_column(answer["section"], answer["item"])] = answer["score"]
        row["Total Score"] = response.get("totalScore", 0)
        created = response.get("createdAt")
        row["Submitted At"] = created.isoformat() if hasattr(created, "isoformat") else created
        rows.append(row)
    df = pd.DataFrame(rows, columns=columns + ["Total Score", "Submitted At"])
    return to_xlsx({"Responses": df})


def export_personnel(personnel: List[dict], departments: Dict[str, str]) -> bytes:
    rows = []
    for p in personnel:
        rows.append({
            "First Name": p.get("firstName", ""),
            "Last Name": p.get("lastName", ""),
            "Middle Name": p.get("middleName", ""),
            "Email": p.get("email", ""),
            "Department": departments.get(str(p.get("department")), ""),
            "Job Title": p.get("jobTitle", ""),
            "Hire Date": p.get("hireDate", ""),
            "Phone Number": p.get("phoneNumber", ""),
            "Gender": p.get("gender", ""),
        })
    return to_xlsx({"Personnel": pd.DataFrame(rows, columns=PERSONNEL_COLUMNS)})
