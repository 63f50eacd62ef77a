import io

import pandas as pd
import pytest

from school_portal.services.spreadsheet import PERSONNEL_COLUMNS


@pytest.fixture
def department_id(client, admin_headers):
    resp = client.post("/departments", json={"name": "Science"}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["_id"]


def _person(department_id, email="ana@school.edu", **overrides):
    data = {
        "firstName": "Ana",
        "lastName": "Cruz",
        "email": email,
        "department": department_id,
        "jobTitle": "Teacher",
        "hireDate": "2019-08-15",
    }
    data.update(overrides)
    return data


def test_personnel_crud(client, admin_headers, department_id):
    resp = client.post("/personnel", json=_person(department_id, email="Ana@School.edu"), headers=admin_headers)
    assert resp.status_code == 201, resp.text
    person = resp.json()
    assert person["email"] == "ana@school.edu"
    assert person["department"] == {"_id": department_id, "name": "Science"}

    resp = client.patch(f"/personnel/{person['_id']}", json={"jobTitle": "Head Teacher"}, headers=admin_headers)
    assert resp.json()["jobTitle"] == "Head Teacher"

    listed = client.get("/personnel", params={"department": department_id}, headers=admin_headers).json()
    assert [p["_id"] for p in listed] == [person["_id"]]

    assert client.delete(f"/personnel/{person['_id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/personnel/{person['_id']}", headers=admin_headers).status_code == 404


def test_duplicate_personnel_email(client, admin_headers, department_id):
    assert client.post("/personnel", json=_person(department_id), headers=admin_headers).status_code == 201
    resp = client.post("/personnel", json=_person(department_id, firstName="Other"), headers=admin_headers)
    assert resp.status_code == 400


def test_unknown_department_is_rejected(client, admin_headers):
    resp = client.post("/personnel", json=_person("64b000000000000000000000"), headers=admin_headers)
    assert resp.status_code == 400


def test_department_with_personnel_cannot_be_deleted(client, admin_headers, department_id):
    client.post("/personnel", json=_person(department_id), headers=admin_headers)
    assert client.delete(f"/departments/{department_id}", headers=admin_headers).status_code == 400


def test_subject_code_is_unique_and_uppercased(client, admin_headers, department_id):
    teacher = client.post("/personnel", json=_person(department_id), headers=admin_headers).json()
    subject = {"code": "sci101", "name": "General Science", "department": department_id, "teacher": teacher["_id"]}

    resp = client.post("/subjects", json=subject, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    assert resp.json()["code"] == "SCI101"
    assert client.post("/subjects", json=subject, headers=admin_headers).status_code == 400

    # removing the teacher clears the assignment
    client.delete(f"/personnel/{teacher['_id']}", headers=admin_headers)
    assert client.get(f"/subjects/{resp.json()['_id']}", headers=admin_headers).json()["teacher"] is None


def test_bulk_upload_via_api(client, mongo_db, admin_headers, department_id):
    client.post("/personnel", json=_person(department_id), headers=admin_headers)
    df = pd.DataFrame(
        [
            ["Ana", "Cruz", "", "ana@school.edu", "Science", "Teacher", "", "", ""],
            ["Ben", "Diaz", "", "ben@school.edu", "English", "Teacher", "2021-01-10", "", "M"],
            ["Cara", "", "", "cara@school.edu", "Science", "Teacher", "", "", ""],
        ],
        columns=PERSONNEL_COLUMNS,
    )
    buffer = io.BytesIO()
    df.to_excel(buffer, index=False)

    resp = client.post(
        "/personnel/bulk-upload",
        files={"file": ("staff.xlsx", buffer.getvalue(), "application/octet-stream")},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    result = resp.json()
    assert (result["created"], result["skipped"], result["failed"], result["total"]) == (1, 1, 1, 3)
    assert result["skippedRecords"][0]["email"] == "ana@school.edu"
    assert result["failedRecords"][0]["row"] == 4
    assert mongo_db["departments"].find_one({"name": "English"}) is not None


def test_bulk_upload_rejects_other_file_types(client, admin_headers):
    resp = client.post(
        "/personnel/bulk-upload",
        files={"file": ("staff.pdf", b"%PDF-1.4", "application/pdf")},
        headers=admin_headers,
    )
    assert resp.status_code == 400


def test_personnel_template_and_export(client, admin_headers, department_id):
    resp = client.get("/personnel/template", headers=admin_headers)
    assert list(pd.read_excel(io.BytesIO(resp.content)).columns) == PERSONNEL_COLUMNS

    client.post("/personnel", json=_person(department_id), headers=admin_headers)
    exported = pd.read_excel(io.BytesIO(client.get("/personnel/export", headers=admin_headers).content))
    assert list(exported["Email"]) == ["ana@school.edu"]
    assert list(exported["Department"]) == ["Science"]


def test_user_role_cannot_manage_personnel(client, user_headers, admin_headers, department_id):
    resp = client.post("/personnel", json=_person(department_id), headers=user_headers)
    assert resp.status_code == 403


def test_actions_are_recorded_in_audit_log(client, admin_headers, department_id):
    client.post("/personnel", json=_person(department_id), headers=admin_headers)

    resp = client.get("/audit-logs", params={"resource": "personnel"}, headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 1
    entry = body["logs"][0]
    assert entry["action"] == "personnel.create"
    assert entry["userEmail"] == "admin@school.edu"
    assert entry["status"] == "success"

    stats = client.get("/audit-logs/statistics", headers=admin_headers).json()
    assert stats["byAction"]["personnel.create"] == 1
    assert stats["byAction"]["auth.login"] == 1
    assert stats["total"] >= 3


def test_audit_log_requires_permission(client, user_headers):
    assert client.get("/audit-logs", headers=user_headers).status_code == 403
