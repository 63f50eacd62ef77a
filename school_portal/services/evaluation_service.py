import math
from datetime import datetime, timezone
from typing import List, Tuple

from school_portal.core.exceptions import ValidationFailed


def scale_bounds(form: dict) -> Tuple[float, float]:
    values = [float(s["value"]) for s in form.get("scale") or [] if "value" in s]
    if not values:
        return 1.0, 5.0
    return min(values), max(values)


def form_items(form: dict) -> List[Tuple[str, str]]:
    return [
        (section.get("title", ""), item)
        for section in form.get("sections", []) or []
        for item in section.get("items", []) or []
    ]


def is_closed(form: dict, now: datetime | None = None) -> bool:
    end = form.get("endDate")
    if not end:
        return False
    now = now or datetime.now(timezone.utc)
    # the end date itself is still open
    return end.date() < now.date()


def validate_answers(form: dict, answers: List[dict]) -> List[dict]:
    """
    Check a submission against the form: every answer must name an existing
    (section, item) at most once and carry a score inside the form's scale.
    """
    known = set(form_items(form))
    low, high = scale_bounds(form)
    seen = set()
    problems = []

    for answer in answers:
        key = (answer["section"], answer["item"])
        if key not in known:
            problems.append(f"Unknown item '{answer['item']}' in section '{answer['section']}'")
        elif key in seen:
            problems.append(f"Item '{answer['item']}' in section '{answer['section']}' answered twice")
        elif not math.isfinite(float(answer["score"])) or not low <= float(answer["score"]) <= high:
            problems.append(f"Score for '{answer['item']}' must be between {low:g} and {high:g}")
        seen.add(key)

    if problems:
        raise ValidationFailed("Invalid evaluation answers.", details={"errors": problems})
    return [{"section": a["section"], "item": a["item"], "score": float(a["score"])} for a in answers]
