"""
Criterion-based performance evaluations.

Each evaluation scores one person on a fixed set of criteria, chosen by
audience, on a 1-5 scale. The general average (GEN AVG) is the unweighted
mean of those scores and is the value the prediction model is trained on.
"""
import math
from datetime import datetime, timezone
from typing import Dict, List

from school_portal.core.exceptions import ValidationFailed

SCORE_MIN = 1.0
SCORE_MAX = 5.0

TEACHING_CRITERIA: Dict[str, str] = {
    "PAA": "Professionalism & Attitude",
    "KSM": "Knowledge & Skills Mastery",
    "TS": "Teamwork & Collaboration",
    "CM": "Communication Mastery",
    "AL": "Adaptive Leadership",
    "GO": "Goal-Oriented Execution",
}

NON_TEACHING_CRITERIA: Dict[str, str] = {
    "JK": "Job Knowledge",
    "WQ": "Work Quality",
    "PR": "Productivity",
    "TW": "Teamwork",
    "RL": "Reliability",
    "IN": "Initiative",
}

CRITERIA = {
    "teaching": TEACHING_CRITERIA,
    "non-teaching": NON_TEACHING_CRITERIA,
}


def criteria_for(audience: str) -> Dict[str, str]:
    try:
        return CRITERIA[audience]
    except KeyError:
        raise ValidationFailed(f"Unknown audience '{audience}'.")


def score_problems(scores: Dict[str, float], audience: str) -> List[str]:
    criteria = criteria_for(audience)
    problems = [f"Missing score for {code}" for code in criteria if code not in scores]
    for code, value in scores.items():
        if code not in criteria:
            problems.append(f"Unknown criterion '{code}'")
            continue
        try:
            score = float(value)
        except (TypeError, ValueError):
            problems.append(f"Score for {code} is not a number")
            continue
        if not math.isfinite(score) or not SCORE_MIN <= score <= SCORE_MAX:
            problems.append(f"Score for {code} must be between {SCORE_MIN:g} and {SCORE_MAX:g}")
    return problems


def validate_scores(scores: Dict[str, float], audience: str) -> Dict[str, float]:
    """Every criterion of the audience exactly once, each inside the 1-5 scale."""
    problems = score_problems(scores, audience)
    if problems:
        raise ValidationFailed("Invalid performance scores.", details={"errors": problems})
    return {code: float(scores[code]) for code in criteria_for(audience)}


def general_average(scores: Dict[str, float]) -> float:
    if not scores:
        return 0.0
    return round(sum(scores.values()) / len(scores), 2)


def evaluation_document(personnel_id, audience: str, evaluation_date: datetime, scores: Dict[str, float],
                        semester=None, feedback=None, evaluated_by=None) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "personnel": personnel_id,
        "audience": audience,
        "evaluationDate": evaluation_date,
        "semester": semester or "",
        "scores": scores,
        "generalAverage": general_average(scores),
        "feedback": feedback or "",
        "evaluatedBy": evaluated_by or "",
        "createdAt": now,
        "updatedAt": now,
    }
