import pytest
from bson import ObjectId

from school_portal.core.exceptions import NotFoundError
from school_portal.repositories.response_repository import EvaluationResponseRepository
from school_portal.services.report_builder import (
    build_report,
    compute_report_items,
    roll_up_sections,
    summarize_personnel,
    summarize_responses,
)

FORM = {
    "_id": ObjectId(),
    "name": "Form",
    "sections": [{"title": "A", "items": ["Q1", "Q2"]}],
    "scale": [{"value": v, "label": str(v)} for v in range(1, 6)],
}


def _response(scores, semester="1st", name="Jane Doe", evaluator="Student"):
    return {
        "respondentName": name,
        "semester": semester,
        "evaluator": evaluator,
        "answers": [{"section": s, "item": i, "score": v} for (s, i), v in scores.items()],
        "totalScore": sum(scores.values()),
    }


@pytest.fixture
def three_responses():
    return [
        _response({("A", "Q1"): 5, ("A", "Q2"): 5}),
        _response({("A", "Q1"): 4, ("A", "Q2"): 5}),
        _response({("A", "Q1"): 3, ("A", "Q2"): 4}),
    ]


def test_item_averages_and_percentages(three_responses):
    items = compute_report_items(three_responses, FORM)

    q1, q2 = items
    assert (q1["section"], q1["item"]) == ("A", "Q1")
    assert q1["averageScore"] == pytest.approx(4.0)
    assert q1["percentage"] == pytest.approx(80.0)
    assert q1["respondentCount"] == 3
    assert q2["averageScore"] == pytest.approx(14 / 3)
    assert q2["percentage"] == pytest.approx(93.333, abs=1e-3)
    assert q2["respondentCount"] == 3


def test_section_subtotal_is_unweighted_sum(three_responses):
    sections, total = roll_up_sections(compute_report_items(three_responses, FORM))

    assert len(sections) == 1
    assert sections[0]["sumAverage"] == pytest.approx(8.667, abs=1e-3)
    assert sections[0]["sumPercentage"] == pytest.approx(173.333, abs=1e-3)
    assert sections[0]["respondentCount"] == 6
    assert total["sumAverage"] == pytest.approx(sections[0]["sumAverage"])
    assert total["sumPercentage"] == pytest.approx(sections[0]["sumPercentage"])


def test_percentage_uses_fixed_max_of_five_regardless_of_form_scale():
    form = dict(FORM, scale=[{"value": v, "label": str(v)} for v in range(1, 11)])
    items = compute_report_items([_response({("A", "Q1"): 10})], form)
    assert items[0]["percentage"] == pytest.approx(200.0)


def test_changing_one_score_moves_average_proportionally(three_responses):
    before = compute_report_items(three_responses, FORM)[0]["averageScore"]
    three_responses[2]["answers"][0]["score"] = 4
    after = compute_report_items(three_responses, FORM)[0]["averageScore"]
    assert after - before == pytest.approx(1 / 3)


def test_items_follow_form_order_then_first_appearance():
    responses = [
        _response({("Extra", "X"): 2, ("A", "Q2"): 3}),
        _response({("A", "Q1"): 4}),
    ]
    items = compute_report_items(responses, FORM)
    assert [(i["section"], i["item"]) for i in items] == [("A", "Q1"), ("A", "Q2"), ("Extra", "X")]


def test_grand_total_sums_all_sections():
    form = {"sections": [{"title": "A", "items": ["Q1"]}, {"title": "B", "items": ["Q2"]}]}
    report = summarize_responses(
        [_response({("A", "Q1"): 5, ("B", "Q2"): 3}), _response({("A", "Q1"): 3, ("B", "Q2"): 3})],
        form,
    )
    assert [s["section"] for s in report["sections"]] == ["A", "B"]
    assert report["grandTotal"]["sumAverage"] == pytest.approx(4.0 + 3.0)
    assert report["grandTotal"]["sumPercentage"] == pytest.approx(80.0 + 60.0)
    assert report["overallAverageScore"] == pytest.approx(3.5)
    assert report["totalResponses"] == 2


def test_empty_response_set_is_a_zero_report():
    report = summarize_responses([], FORM, semester="2nd")
    assert report["totalResponses"] == 0
    assert report["items"] == []
    assert report["sections"] == []
    assert report["grandTotal"] == {"sumAverage": 0, "sumPercentage": 0, "respondentCount": 0}
    assert report["overallAverageScore"] == 0.0
    assert report["semester"] == "2nd"


def test_build_report_filters_by_semester(mongo_db):
    form_id = mongo_db["evaluation_forms"].insert_one(dict(FORM, _id=ObjectId())).inserted_id
    repo = EvaluationResponseRepository(mongo_db)
    repo.create(form_id, _response({("A", "Q1"): 5}, semester="1st"))
    repo.create(form_id, _response({("A", "Q1"): 1}, semester="2nd"))

    first = build_report(mongo_db, str(form_id), "1st")
    assert first["totalResponses"] == 1
    assert first["items"][0]["averageScore"] == pytest.approx(5.0)

    everything = build_report(mongo_db, str(form_id))
    assert everything["totalResponses"] == 2
    assert everything["items"][0]["averageScore"] == pytest.approx(3.0)

    none = build_report(mongo_db, str(form_id), "Summer")
    assert none["totalResponses"] == 0
    assert none["items"] == []


def test_build_report_unknown_form(mongo_db):
    with pytest.raises(NotFoundError):
        build_report(mongo_db, str(ObjectId()))
    with pytest.raises(NotFoundError):
        build_report(mongo_db, "not-an-id")


def test_personnel_summary_groups_by_person():
    responses = [
        _response({("A", "Q1"): 5, ("A", "Q2"): 3}, name="Jane Doe", evaluator="Student"),
        _response({("A", "Q1"): 4, ("A", "Q2"): 4}, name="Jane Doe", evaluator="Peer", semester="2nd"),
        _response({("A", "Q1"): 2, ("A", "Q2"): 2}, name="John Roe", evaluator="Student"),
    ]
    people = summarize_personnel(responses, FORM)

    assert [p["name"] for p in people] == ["Jane Doe", "John Roe"]
    jane = people[0]
    assert jane["responseCount"] == 2
    assert jane["evaluatorCount"] == 2
    assert jane["evaluators"] == "Peer, Student"
    assert jane["semesters"] == "1st, 2nd"
    assert jane["averageScore"] == pytest.approx(4.0)
    assert jane["percentage"] == pytest.approx(80.0)
    assert jane["totalScore"] == pytest.approx(16.0)
    assert jane["sections"][0]["section"] == "A"
    assert jane["sections"][0]["averageScore"] == pytest.approx(4.0)
