from datetime import datetime

import pytest
import requests

from school_portal.core.exceptions import ExternalServiceError, NotFoundError
from school_portal.services import ml_client


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture
def person(mongo_db):
    doc = {
        "firstName": "Ana",
        "lastName": "Cruz",
        "email": "ana@school.edu",
        "hireDate": datetime(2015, 6, 1),
    }
    doc["_id"] = mongo_db["personnel"].insert_one(doc).inserted_id
    mongo_db["evaluation_form_responses"].insert_many([
        {"respondentName": "Ana Cruz", "answers": [{"score": 5}, {"score": 3}]},
        {"respondentEmail": "ana@school.edu", "respondentName": "A. Cruz", "answers": [{"score": 4}]},
        {"respondentName": "Someone Else", "answers": [{"score": 1}]},
    ])
    return doc


def test_features_from_evaluations(mongo_db, person):
    features = ml_client.personnel_features(mongo_db, person)
    assert features["evaluationCount"] == 2
    assert features["averageScore"] == pytest.approx(4.0)
    assert features["tenureYears"] > 10


def test_prediction_posts_features(mongo_db, person, monkeypatch):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return FakeResponse({"prediction": "3.8", "trainedAt": "2026-01-01T00:00:00"})

    monkeypatch.setattr(ml_client.requests, "post", fake_post)

    result = ml_client.predict_personnel_performance(mongo_db, str(person["_id"]))

    assert result["prediction"] == pytest.approx(3.8)
    assert result["trainedAt"] == "2026-01-01T00:00:00"
    assert calls[0][1]["personnelId"] == str(person["_id"])
    assert calls[0][1]["features"]["evaluationCount"] == 2


def test_unreachable_service(mongo_db, person, monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(ml_client.requests, "post", fake_post)
    with pytest.raises(ExternalServiceError):
        ml_client.predict_personnel_performance(mongo_db, str(person["_id"]))


def test_service_error_status_and_bad_body(mongo_db, person, monkeypatch):
    monkeypatch.setattr(ml_client.requests, "post", lambda *a, **kw: FakeResponse({}, status_code=500))
    with pytest.raises(ExternalServiceError):
        ml_client.predict_personnel_performance(mongo_db, str(person["_id"]))

    monkeypatch.setattr(ml_client.requests, "post", lambda *a, **kw: FakeResponse({"score": 1}))
    with pytest.raises(ExternalServiceError):
        ml_client.predict_personnel_performance(mongo_db, str(person["_id"]))


@pytest.mark.parametrize("payload", [
    [3.8],
    "3.8",
    {"prediction": None},
    {"prediction": "high"},
    {"prediction": {"value": 3.8}},
    {"prediction": "nan"},
])
def test_malformed_prediction_body(mongo_db, person, monkeypatch, payload):
    monkeypatch.setattr(ml_client.requests, "post", lambda *a, **kw: FakeResponse(payload))
    with pytest.raises(ExternalServiceError):
        ml_client.predict_personnel_performance(mongo_db, str(person["_id"]))


def test_predict_endpoint_returns_502_for_null_prediction(client, admin_headers, person, monkeypatch):
    monkeypatch.setattr(ml_client.requests, "post", lambda *a, **kw: FakeResponse({"prediction": None}))
    resp = client.post(f"/ml/predict/{person['_id']}", headers=admin_headers)
    assert resp.status_code == 502
    assert resp.json()["code"] == "EXTERNAL_SERVICE_ERROR"


def test_features_include_performance_evaluations(mongo_db, person):
    mongo_db["performance_evaluations"].insert_many([
        {"personnel": person["_id"], "scores": {"PAA": 4, "KSM": 5}},
        {"personnel": person["_id"], "scores": {"PAA": 2, "KSM": 3}},
        {"personnel": "someone-else", "scores": {"PAA": 1, "KSM": 1}},
    ])

    features = ml_client.personnel_features(mongo_db, person)

    assert features["performanceEvaluationCount"] == 2
    assert features["averagePerformanceScore"] == pytest.approx(3.5)
    assert features["PAA"] == pytest.approx(3.0)
    assert features["KSM"] == pytest.approx(4.0)


def test_features_without_performance_evaluations(mongo_db, person):
    features = ml_client.personnel_features(mongo_db, person)
    assert features["performanceEvaluationCount"] == 0
    assert features["averagePerformanceScore"] == 0.0
    assert "PAA" not in features


def test_unknown_personnel(mongo_db):
    with pytest.raises(NotFoundError):
        ml_client.predict_personnel_performance(mongo_db, "64b000000000000000000000")


def test_predict_endpoint_returns_502_when_service_fails(client, admin_headers, mongo_db, person, monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(ml_client.requests, "post", fake_post)
    resp = client.post(f"/ml/predict/{person['_id']}", headers=admin_headers)
    assert resp.status_code == 502
    assert resp.json()["code"] == "EXTERNAL_SERVICE_ERROR"


def test_predict_endpoint_requires_permission(client, user_headers, person):
    assert client.post(f"/ml/predict/{person['_id']}", headers=user_headers).status_code == 403
