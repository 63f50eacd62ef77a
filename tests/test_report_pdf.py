from school_portal.analysis.report_pdf import _report_rows, render_report_pdf
from school_portal.services.report_builder import summarize_responses

FORM = {"name": "Faculty Evaluation", "sections": [{"title": "A", "items": ["Q1"]}, {"title": "B", "items": ["Q2"]}]}


def _report():
    responses = [{"answers": [{"section": "A", "item": "Q1", "score": 4}, {"section": "B", "item": "Q2", "score": 2}]}]
    return summarize_responses(responses, FORM, semester="1st Semester")


def test_rows_have_section_headers_subtotals_and_grand_total():
    rows, header_rows, subtotal_rows = _report_rows(_report())

    assert rows[0] == ["Item", "Average", "Percentage", "Respondents"]
    assert header_rows == [1, 4]
    assert subtotal_rows == [3, 6]
    assert rows[3] == ["Subtotal", "4.00", "80.00%", "1"]
    assert rows[-1] == ["Grand Total", "6.00", "120.00%", "2"]


def test_renders_pdf_bytes():
    assert render_report_pdf(_report(), FORM).startswith(b"%PDF")


def test_empty_report_still_renders():
    report = summarize_responses([], FORM)
    assert render_report_pdf(report, FORM).startswith(b"%PDF")
