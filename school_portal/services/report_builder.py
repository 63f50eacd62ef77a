# school_portal/services/report_builder.py
"""
Evaluation response reports.

Item report: every answer across the selected responses is bucketed by
(section, item). For each bucket

    averageScore = sum(scores) / respondentCount
    percentage   = averageScore / max_scale * 100

where max_scale is CONFIG.REPORT_MAX_SCALE (5) regardless of the form's own
rating scale. Section subtotals and the grand total are plain sums of the
item averages and percentages, not weighted means.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.core.database import to_object_id
from school_portal.core.exceptions import NotFoundError
from school_portal.core.logger import get_logger
from school_portal.repositories.response_repository import EvaluationResponseRepository

logger = get_logger(__name__)


def _percentage(average: float, max_scale: float) -> float:
    return average / max_scale * 100 if max_scale else 0.0


def _form_order(form: Optional[dict]) -> List[Tuple[str, str]]:
    order = []
    for section in (form or {}).get("sections", []) or []:
        for item in section.get("items", []) or []:
            order.append((section.get("title", ""), item))
    return order


def group_answers(
    responses: Iterable[dict],
    form: Optional[dict] = None,
) -> "OrderedDict[Tuple[str, str], List[float]]":
    """
    Bucket every answer score by (section, item).

    Buckets follow the form's section/item order; pairs the form does not
    list come afterwards in order of first appearance.
    """
    seen: "OrderedDict[Tuple[str, str], List[float]]" = OrderedDict()
    for response in responses:
        for answer in response.get("answers", []) or []:
            key = (answer.get("section", ""), answer.get("item", ""))
            seen.setdefault(key, []).append(float(answer.get("score", 0)))

    ordered: "OrderedDict[Tuple[str, str], List[float]]" = OrderedDict()
    for key in _form_order(form):
        if key in seen:
            ordered[key] = seen[key]
    for key, scores in seen.items():
        if key not in ordered:
            ordered[key] = scores
    return ordered


def compute_report_items(
    responses: Iterable[dict],
    form: Optional[dict] = None,
    max_scale: float | None = None,
) -> List[Dict]:
    if max_scale is None:
        max_scale = CONFIG.REPORT_MAX_SCALE

    items = []
    for (section, item), scores in group_answers(responses, form).items():
        count = len(scores)
        average = sum(scores) / count
        items.append({
            "section": section,
            "item": item,
            "respondentCount": count,
            "averageScore": average,
            "percentage": _percentage(average, max_scale),
        })
    return items


def roll_up_sections(items: List[Dict]) -> Tuple[List[Dict], Dict]:
    """Group report items per section and add subtotals and a grand total."""
    sections: "OrderedDict[str, Dict]" = OrderedDict()
    for item in items:
        current = sections.setdefault(item["section"], {
            "section": item["section"],
            "items": [],
            "respondentCount": 0,
            "sumAverage": 0.0,
            "sumPercentage": 0.0,
        })
        current["items"].append(item)
        current["respondentCount"] += item["respondentCount"]
        current["sumAverage"] += item["averageScore"]
        current["sumPercentage"] += item["percentage"]

    section_list = list(sections.values())
    grand_total = {
        "sumAverage": sum(s["sumAverage"] for s in section_list),
        "sumPercentage": sum(s["sumPercentage"] for s in section_list),
        "respondentCount": sum(s["respondentCount"] for s in section_list),
    }
    return section_list, grand_total


def summarize_responses(
    responses: List[dict],
    form: Optional[dict] = None,
    semester: Optional[str] = None,
    max_scale: float | None = None,
) -> Dict:
    if max_scale is None:
        max_scale = CONFIG.REPORT_MAX_SCALE

    items = compute_report_items(responses, form, max_scale)
    sections, grand_total = roll_up_sections(items)

    all_scores = [float(a.get("score", 0)) for r in responses for a in r.get("answers", []) or []]
    overall_average = sum(all_scores) / len(all_scores) if all_scores else 0.0

    return {
        "formId": str(form["_id"]) if form and form.get("_id") is not None else None,
        "semester": semester or None,
        "totalResponses": len(responses),
        "overallAverageScore": overall_average,
        "overallPercentage": _percentage(overall_average, max_scale),
        "items": items,
        "sections": sections,
        "grandTotal": grand_total,
    }


def build_report(database: Database, form_id: str, semester: Optional[str] = None) -> Dict:
    """Load the form and its (optionally semester-filtered) responses and summarize them."""
    oid = to_object_id(form_id)
    form = database["evaluation_forms"].find_one({"_id": oid}) if oid else None
    if not form:
        raise NotFoundError("Evaluation form", form_id)

    semester = semester.strip() if semester and semester.strip() else None
    responses = EvaluationResponseRepository(database).find_by_form(oid, semester=semester)
    logger.info(
        "Building report for form %s (semester=%s) over %d responses",
        form_id, semester or "all", len(responses),
    )
    return summarize_responses(responses, form, semester)


def summarize_personnel(
    responses: List[dict],
    form: Optional[dict] = None,
    max_scale: float | None = None,
) -> List[Dict]:
    """Per evaluated person: response count, evaluators, semesters and a section breakdown."""
    if max_scale is None:
        max_scale = CONFIG.REPORT_MAX_SCALE

    people: "OrderedDict[str, List[dict]]" = OrderedDict()
    for response in responses:
        name = (response.get("respondentName") or "").strip() or "Unknown"
        people.setdefault(name, []).append(response)

    summary = []
    for name, person_responses in people.items():
        scores = [float(a.get("score", 0)) for r in person_responses for a in r.get("answers", []) or []]
        average = sum(scores) / len(scores) if scores else 0.0
        evaluators = sorted({r.get("evaluator") for r in person_responses if r.get("evaluator")})
        semesters = sorted({r.get("semester") for r in person_responses if r.get("semester")})

        sections = []
        for section in roll_up_sections(compute_report_items(person_responses, form, max_scale))[0]:
            section_scores = sum(i["averageScore"] * i["respondentCount"] for i in section["items"])
            section_avg = section_scores / section["respondentCount"] if section["respondentCount"] else 0.0
            sections.append({
                "section": section["section"],
                "averageScore": section_avg,
                "percentage": _percentage(section_avg, max_scale),
                "items": [
                    {"item": i["item"], "averageScore": i["averageScore"], "percentage": i["percentage"]}
                    for i in section["items"]
                ],
            })

        summary.append({
            "name": name,
            "department": next(
                (r.get("respondentDepartment") for r in person_responses if r.get("respondentDepartment")), ""
            ),
            "responseCount": len(person_responses),
            "evaluatorCount": len(evaluators),
            "evaluators": ", ".join(evaluators),
            "totalScore": sum(float(r.get("totalScore") or 0) for r in person_responses),
            "averageScore": average,
            "percentage": _percentage(average, max_scale),
            "semesters": ", ".join(semesters),
            "sections": sections,
        })
    return summary


def build_personnel_report(database: Database, form_id: str, semester: Optional[str] = None) -> Dict:
    oid = to_object_id(form_id)
    form = database["evaluation_forms"].find_one({"_id": oid}) if oid else None
    if not form:
        raise NotFoundError("Evaluation form", form_id)

    semester = semester.strip() if semester and semester.strip() else None
    responses = EvaluationResponseRepository(database).find_by_form(oid, semester=semester)
    overall = summarize_responses(responses, form, semester)
    personnel = summarize_personnel(responses, form)
    return {
        "formId": form_id,
        "semester": semester,
        "totalResponses": overall["totalResponses"],
        "totalPersonnel": len(personnel),
        "overallAverageScore": overall["overallAverageScore"],
        "overallPercentage": overall["overallPercentage"],
        "personnel": personnel,
    }
