import io

import pandas as pd
import pytest

from school_portal.core.exceptions import ValidationFailed
from school_portal.services.bulk_upload import process_performance_upload
from school_portal.services.performance_evaluation import general_average, validate_scores
from school_portal.services.spreadsheet import performance_columns

TEACHING_SCORES = {"PAA": 4, "KSM": 5, "TS": 4, "CM": 3, "AL": 4, "GO": 4}


@pytest.fixture
def person_id(client, admin_headers):
    dept = client.post("/departments", json={"name": "Science"}, headers=admin_headers).json()
    resp = client.post(
        "/personnel",
        json={"firstName": "Ana", "lastName": "Cruz", "email": "ana@school.edu", "department": dept["_id"]},
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["_id"]


def _evaluation(person_id, **overrides):
    data = {
        "personnel": person_id,
        "evaluationDate": "2026-03-15",
        "semester": "2nd Semester",
        "scores": dict(TEACHING_SCORES),
        "evaluatedBy": "Principal",
    }
    data.update(overrides)
    return data


def test_scores_must_cover_the_audience_criteria():
    assert validate_scores(TEACHING_SCORES, "teaching")["KSM"] == 5.0

    with pytest.raises(ValidationFailed) as exc:
        validate_scores({"PAA": 4, "XX": 3}, "teaching")
    errors = exc.value.details["errors"]
    assert "Missing score for KSM" in errors
    assert "Unknown criterion 'XX'" in errors

    with pytest.raises(ValidationFailed):
        validate_scores(TEACHING_SCORES, "non-teaching")


@pytest.mark.parametrize("bad", [0, 6, float("nan"), float("inf")])
def test_scores_outside_the_scale_are_rejected(bad):
    with pytest.raises(ValidationFailed):
        validate_scores(dict(TEACHING_SCORES, CM=bad), "teaching")


def test_general_average():
    assert general_average({"PAA": 4, "KSM": 5, "TS": 3}) == 4.0
    assert general_average({}) == 0.0


def test_performance_evaluation_crud(client, admin_headers, person_id):
    resp = client.post("/performance-evaluations", json=_evaluation(person_id), headers=admin_headers)
    assert resp.status_code == 201, resp.text
    evaluation = resp.json()
    assert evaluation["personnel"]["email"] == "ana@school.edu"
    assert evaluation["audience"] == "teaching"
    assert evaluation["generalAverage"] == pytest.approx(4.0)

    listed = client.get("/performance-evaluations", params={"personnel": person_id}, headers=admin_headers).json()
    assert [e["_id"] for e in listed] == [evaluation["_id"]]

    resp = client.patch(
        f"/performance-evaluations/{evaluation['_id']}",
        json={"scores": dict(TEACHING_SCORES, CM=5, AL=5)},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["generalAverage"] == pytest.approx(4.5)

    assert client.delete(f"/performance-evaluations/{evaluation['_id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/performance-evaluations/{evaluation['_id']}", headers=admin_headers).status_code == 404


def test_invalid_evaluations_are_rejected(client, admin_headers, person_id):
    resp = client.post(
        "/performance-evaluations",
        json=_evaluation(person_id, scores=dict(TEACHING_SCORES, GO=7)),
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_FAILED"

    resp = client.post("/performance-evaluations", json=_evaluation("64b000000000000000000000"), headers=admin_headers)
    assert resp.status_code == 400


def test_deleting_personnel_removes_their_evaluations(client, admin_headers, person_id, mongo_db):
    client.post("/performance-evaluations", json=_evaluation(person_id), headers=admin_headers)
    client.delete(f"/personnel/{person_id}", headers=admin_headers)
    assert mongo_db["performance_evaluations"].count_documents({}) == 0


def test_user_role_cannot_read_evaluations(client, user_headers):
    assert client.get("/performance-evaluations", headers=user_headers).status_code == 403


def test_template_columns_follow_audience(client, admin_headers):
    resp = client.get("/performance-evaluations/template", params={"audience": "non-teaching"}, headers=admin_headers)
    assert resp.status_code == 200
    sheets = pd.read_excel(io.BytesIO(resp.content), sheet_name=None)
    assert list(sheets["Evaluations"].columns) == performance_columns("non-teaching")
    assert list(sheets["Criteria"]["Code"]) == ["JK", "WQ", "PR", "TW", "RL", "IN"]


def _upload_csv(rows, audience="teaching"):
    df = pd.DataFrame(rows, columns=performance_columns(audience))
    return df.to_csv(index=False).encode("utf-8")


def test_combined_upload_creates_and_reuses_personnel(mongo_db):
    mongo_db["personnel"].insert_one({"firstName": "Old", "lastName": "Timer", "email": "old@school.edu"})
    content = _upload_csv([
        # new person
        ["Ana", "Cruz", "ana@school.edu", "Science", "Teacher", "1st Semester", "2026-01-20", "", "Principal",
         "4", "5", "4", "3", "4", "4"],
        # already in the database: personnel skipped, evaluation kept
        ["Old", "Timer", "old@school.edu", "Math", "", "", "", "", "", "3", "3", "3", "3", "3", "3"],
        # same email again in the file
        ["Ana", "Cruz", "ANA@school.edu", "Science", "", "", "", "", "", "5", "5", "5", "5", "5", "5"],
        ["", "", "", "", "", "", "", "", "", "", "", "", "", "", ""],
        # score out of range
        ["Ben", "Diaz", "ben@school.edu", "Math", "", "", "", "", "", "4", "4", "9", "4", "4", "4"],
        # new person without department
        ["Cara", "Reyes", "cara@school.edu", "", "", "", "", "", "", "4", "4", "4", "4", "4", "4"],
    ])

    result = process_performance_upload(mongo_db, content, "evaluations.csv", "teaching")

    assert result["totalRows"] == 6
    assert result["successfulPersonnel"] == 1
    assert result["successfulEvaluations"] == 3
    assert result["skippedRows"] == 1
    assert [s["row"] for s in result["skippedPersonnel"]] == [3, 4]
    assert [(e["row"], e["field"]) for e in result["errors"]] == [(6, "TS"), (7, "personnel")]

    assert mongo_db["personnel"].count_documents({}) == 2
    ana = mongo_db["personnel"].find_one({"email": "ana@school.edu"})
    evaluations = list(mongo_db["performance_evaluations"].find({"personnel": ana["_id"]}))
    assert len(evaluations) == 2
    first = next(e for e in evaluations if e["semester"] == "1st Semester")
    assert first["scores"]["KSM"] == 5.0
    assert first["evaluationDate"].year == 2026
    assert first["evaluatedBy"] == "Principal"


def test_combined_upload_matches_by_name_without_email(mongo_db):
    person_id = mongo_db["personnel"].insert_one(
        {"firstName": "Ana", "lastName": "Cruz", "email": "ana@school.edu"}
    ).inserted_id
    content = _upload_csv([["ana", "CRUZ", "", "", "", "", "", "", "", "4", "4", "4", "4", "4", "4"]])

    result = process_performance_upload(mongo_db, content, "evaluations.csv", "teaching")

    assert result["successfulEvaluations"] == 1
    assert result["successfulPersonnel"] == 0
    assert mongo_db["performance_evaluations"].find_one()["personnel"] == person_id


def test_combined_upload_rejects_non_finite_scores(mongo_db):
    content = _upload_csv([["Ana", "Cruz", "ana@school.edu", "Science", "", "", "", "", "", "nan", "4", "4", "4", "4", "4"]])
    result = process_performance_upload(mongo_db, content, "evaluations.csv", "teaching")
    assert result["successfulEvaluations"] == 0
    assert result["errors"][0]["field"] == "PAA"
    assert mongo_db["personnel"].count_documents({}) == 0


def test_combined_upload_reports_missing_criteria_columns(mongo_db):
    content = b"First Name,Last Name,PAA\nAna,Cruz,4\n"
    result = process_performance_upload(mongo_db, content, "evaluations.csv", "teaching")
    assert "KSM" in result["errors"][0]["message"]


def test_bulk_upload_endpoint(client, admin_headers, mongo_db):
    df = pd.DataFrame(
        [["Jo", "Lim", "jo@school.edu", "Registrar", "Clerk", "", "", "", "", 4, 4, 5, 4, 3, 4]],
        columns=performance_columns("non-teaching"),
    )
    buffer = io.BytesIO()
    df.to_excel(buffer, index=False)

    resp = client.post(
        "/performance-evaluations/bulk-upload",
        params={"audience": "non-teaching"},
        files={"file": ("staff.xlsx", buffer.getvalue(), "application/octet-stream")},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["successfulEvaluations"] == 1
    stored = mongo_db["performance_evaluations"].find_one()
    assert stored["audience"] == "non-teaching"
    assert set(stored["scores"]) == {"JK", "WQ", "PR", "TW", "RL", "IN"}
