import math
from datetime import datetime, timezone
from typing import Dict

import requests
from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.core.database import to_object_id
from school_portal.core.exceptions import ExternalServiceError, NotFoundError
from school_portal.core.logger import get_logger

logger = get_logger(__name__)


def _performance_features(database: Database, personnel_id) -> Dict[str, float]:
    evaluations = list(database["performance_evaluations"].find({"personnel": personnel_id}))
    per_metric: Dict[str, list] = {}
    for evaluation in evaluations:
        for code, score in (evaluation.get("scores") or {}).items():
            per_metric.setdefault(code, []).append(float(score))

    features = {"performanceEvaluationCount": float(len(evaluations))}
    all_scores = [s for scores in per_metric.values() for s in scores]
    features["averagePerformanceScore"] = sum(all_scores) / len(all_scores) if all_scores else 0.0
    for code, scores in sorted(per_metric.items()):
        features[code] = sum(scores) / len(scores)
    return features


def personnel_features(database: Database, personnel: dict) -> Dict[str, float]:
    """
    Feature vector sent to the model: tenure, the form responses received with
    their mean score, and the per-criterion means of performance evaluations.
    """
    hire_date = personnel.get("hireDate")
    tenure = 0.0
    if isinstance(hire_date, datetime):
        if hire_date.tzinfo is None:
            hire_date = hire_date.replace(tzinfo=timezone.utc)
        tenure = max(0.0, (datetime.now(timezone.utc) - hire_date).days / 365.25)

    full_name = f"{personnel.get('firstName', '')} {personnel.get('lastName', '')}".strip()
    responses = list(database["evaluation_form_responses"].find({
        "$or": [
            {"respondentEmail": personnel.get("email", "")},
            {"respondentName": full_name},
        ]
    }))
    scores = [float(a["score"]) for r in responses for a in r.get("answers", [])]
    features = {
        "tenureYears": round(tenure, 2),
        "evaluationCount": float(len(responses)),
        "averageScore": sum(scores) / len(scores) if scores else 0.0,
    }
    features.update(_performance_features(database, personnel["_id"]))
    return features


def predict_personnel_performance(database: Database, personnel_id: str) -> dict:
    oid = to_object_id(personnel_id)
    personnel = database["personnel"].find_one({"_id": oid}) if oid else None
    if not personnel:
        raise NotFoundError("Personnel", personnel_id)

    features = personnel_features(database, personnel)
    try:
        resp = requests.post(
            CONFIG.ML_SERVICE_URL,
            json={"personnelId": personnel_id, "features": features},
            timeout=CONFIG.ML_SERVICE_TIMEOUT,
        )
        resp.raise_for_status()
        body = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Prediction request for %s failed: %s", personnel_id, e)
        raise ExternalServiceError(f"Prediction service unavailable: {e}")

    if not isinstance(body, dict) or "prediction" not in body:
        logger.error("Prediction response for %s has no prediction: %r", personnel_id, body)
        raise ExternalServiceError("Prediction service returned no prediction.")
    try:
        prediction = float(body["prediction"])
    except (TypeError, ValueError):
        logger.error("Prediction for %s is not a number: %r", personnel_id, body["prediction"])
        raise ExternalServiceError("Prediction service returned a non-numeric prediction.")
    if not math.isfinite(prediction):
        raise ExternalServiceError("Prediction service returned a non-numeric prediction.")

    trained_at = body.get("trainedAt")
    return {
        "personnelId": personnel_id,
        "prediction": prediction,
        "trainedAt": str(trained_at) if trained_at is not None else None,
        "features": features,
    }
