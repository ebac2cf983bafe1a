# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Grade report of one grading group, as an Excel workbook.

One row per student and rubric criterion, using the student's most
recent grading session.  Student and course element columns are only
filled on the first row of each student.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import arrow
from openpyxl import Workbook
from openpyxl.styles import Alignment
from openpyxl.utils import get_column_letter

from apsas.apsas_exceptions import APSASException
from apsas.config import DefaultSettings
from apsas.misc_utils import json_to_arrow, sanitize_name, timestamp_to_millis


log = logging.getLogger("export")

ReportHeaders = [
    "Student Code",
    "Student Name",
    "Assignment Type",
    "Course Element",
    "Submission ID",
    "Submitted At",
    "Total Score",
    "Question",
    "Criteria",
    "Score",
    "Max Score",
    "Comments",
]
ColumnWidths = [15, 25, 15, 30, 12, 20, 15, 50, 30, 10, 10, 30]
WrappedColumns = ("Question", "Criteria", "Comments")

_lab_words = ("lab", "thực hành")
_exam_words = ("exam", "pe", "practical", "thi thực hành", "kiểm tra thực hành")


def assignment_type(course_element_name: str | None) -> str:
    """Guess "Lab", "Practical Exam" or "Assignment" from a course element name."""
    name = (course_element_name or "").lower()
    if any(w in name for w in _lab_words):
        return "Lab"
    if any(w in name for w in _exam_words):
        return "Practical Exam"
    return "Assignment"


def _num(x: Any) -> float:
    try:
        return float(x or 0)
    except (TypeError, ValueError):
        return 0.0


def _total_display(total: float, max_score: float, graded: bool) -> str:
    if not graded:
        return "Not graded"
    if max_score > 0:
        return f"{total:.2f}/{max_score:.2f}"
    if total > 0:
        return f"{total:.2f}"
    return "0"


def _submitted_at(sub: dict[str, Any] | None) -> str:
    t = json_to_arrow((sub or {}).get("submittedAt"))
    if t is None:
        return "N/A"
    return t.format("MMM D, YYYY, hh:mm A")


def _latest(reports: list[dict[str, Any]]):
    """The latest submission, latest grading session and its grade items."""
    latest_sub = None
    latest_session = None
    latest_report = None
    for report in reports:
        sub = report["submission"]
        if sub.get("submittedAt"):
            if latest_sub is None or timestamp_to_millis(
                sub["submittedAt"]
            ) > timestamp_to_millis(latest_sub.get("submittedAt")):
                latest_sub = sub
        elif latest_sub is None:
            latest_sub = sub
        session = report["session"]
        if session:
            if latest_session is None or timestamp_to_millis(
                session.get("createdAt")
            ) > timestamp_to_millis(latest_session.get("createdAt")):
                latest_session = session
                latest_report = report
        elif latest_report is None and report["grade_items"]:
            latest_report = report
    items = latest_report["grade_items"] if latest_report else []
    return latest_sub, latest_session, items


def grade_report_rows(
    reports: list[dict[str, Any]],
    questions: list[dict[str, Any]],
    rubrics_by_question: dict[int, list[dict[str, Any]]],
    course_element_name: str | None = None,
) -> list[dict[str, Any]]:
    """Build the rows of the grade report.

    Args:
        reports: one dict per submission with keys ``submission``,
            ``session`` (the newest grading session or None) and
            ``grade_items``.
        questions: questions of the template, in report order.
        rubrics_by_question: rubric items of each question id.
        course_element_name: the group's course element.

    Returns:
        list of dicts keyed by :data:`ReportHeaders`.  Every student
        gets at least one row, and every rubric a row even if it was
        never scored.
    """
    students: dict[str, dict[str, Any]] = {}
    for report in reports:
        sub = report["submission"]
        key = str(sub.get("studentId") or 0)
        if key not in students:
            students[key] = {
                "code": sub.get("studentCode") or "",
                "name": sub.get("studentName") or "",
                "reports": [],
            }
        students[key]["reports"].append(report)

    max_score = sum(
        _num(r.get("score"))
        for q in questions
        for r in rubrics_by_question.get(q["id"], [])
    )
    element = course_element_name or "N/A"
    kind = assignment_type(element)

    rows = []
    for student in students.values():
        sub, session, items = _latest(student["reports"])
        total = sum(_num(i.get("score")) for i in items)
        graded = bool(items) or bool(session and session.get("status") == 1)
        total_display = _total_display(total, max_score, graded)

        # keyed on question and criterion text so repeats collapse
        criteria: dict[tuple, tuple] = {}
        for q in questions:
            number = q.get("questionNumber") or q["id"]
            qtext = f"Q{number}: {q.get('questionText') or ''}"
            rubrics = rubrics_by_question.get(q["id"], [])
            if not rubrics:
                criteria.setdefault((qtext, "N/A"), (qtext, "N/A", 0, 0, ""))
            for r in rubrics:
                ctext = r.get("description") or "N/A"
                item = next((i for i in items if i.get("rubricItemId") == r["id"]), {})
                criteria.setdefault(
                    (qtext, ctext),
                    (
                        qtext,
                        ctext,
                        item.get("score", 0),
                        r.get("score") or 0,
                        item.get("comments") or "",
                    ),
                )
        if not criteria:
            criteria[("N/A", "")] = ("N/A", "", 0, 0, "")

        first = True
        for question, crit, score, most, comments in criteria.values():
            rows.append(
                {
                    "Student Code": student["code"] if first else "",
                    "Student Name": student["name"] if first else "",
                    "Assignment Type": kind if first else "",
                    "Course Element": element if first else "",
                    "Submission ID": ((sub or {}).get("id") or 0) if first else "",
                    "Submitted At": _submitted_at(sub) if first else "",
                    "Total Score": total_display if first else "",
                    "Question": question,
                    "Criteria": crit,
                    "Score": score,
                    "Max Score": most,
                    "Comments": comments,
                }
            )
            first = False
    return rows


def write_grade_report(rows: list[dict[str, Any]], filename) -> None:
    """Save report rows as a single-sheet workbook.

    Raises:
        ValueError: no rows.
    """
    if not rows:
        raise ValueError("No data available to export")
    wb = Workbook()
    ws = wb.active
    ws.title = "Grade Report"
    ws.append(ReportHeaders)
    for row in rows:
        ws.append([row[h] for h in ReportHeaders])
    for n, width in enumerate(ColumnWidths, 1):
        ws.column_dimensions[get_column_letter(n)].width = width
    wrap = Alignment(wrap_text=True, vertical="top")
    for h in WrappedColumns:
        for cell in ws[get_column_letter(ReportHeaders.index(h) + 1)]:
            cell.alignment = wrap
    for r in range(1, ws.max_row + 1):
        ws.row_dimensions[r].height = 30
    wb.save(filename)


def _questions_and_rubrics(msgr, template_id: int, config: dict[str, Any]):
    questions: list[dict[str, Any]] = []
    rubrics: dict[int, list[dict[str, Any]]] = {}
    try:
        papers = msgr.list_assessment_papers(template_id, page_size=config["page_size"])
        for paper in papers:
            qs = msgr.list_assessment_questions(
                paper["id"], page_size=config["page_size"]
            )
            questions.extend(qs)
            for q in qs:
                rubrics[q["id"]] = msgr.list_rubric_items(q["id"])
    except APSASException as err:
        log.error(
            "Failed to fetch questions/rubrics of template %s: %s", template_id, err
        )
    return questions, rubrics


def _grading_of(msgr, sub: dict[str, Any]) -> dict[str, Any]:
    session = None
    items: list[dict[str, Any]] = []
    try:
        sessions = msgr.list_grading_sessions(sub["id"])
        if sessions:
            session = max(
                sessions, key=lambda s: timestamp_to_millis(s.get("createdAt"))
            )
            items = msgr.list_grade_items(session["id"])
    except APSASException as err:
        log.error("Failed to fetch grading data for submission %s: %s", sub["id"], err)
    return {"submission": sub, "session": session, "grade_items": items}


def export_grade_report(
    group: dict[str, Any],
    messages,
    *,
    msgr,
    outdir: Path | str = ".",
    config: dict[str, Any] | None = None,
    now: Any = None,
) -> Path | None:
    """Write the grade report of a grading group to an ``.xlsx`` file.

    Like :func:`apsas.export.archive.download_all`, nothing is raised:
    the outcome is one warning, success or error on ``messages``.

    Args:
        group: a grading group record from the server.
        messages: where to report, see :mod:`apsas.export.messages`.

    Keyword Args:
        msgr: a started :class:`apsas.messenger.Messenger`.
        outdir: where to write the workbook.
        config: settings, see :mod:`apsas.config`.
        now: date to put in the filename, for testing.

    Returns:
        The path of the workbook, or None if nothing was written.
    """
    config = {**DefaultSettings, **(config or {})}

    def _fail(kind, msg):
        messages.destroy()
        getattr(messages, kind)(msg)

    try:
        messages.loading("Preparing grade report...")
        subs = msgr.list_submissions(group["id"])
        if not subs:
            _fail("warning", "No submissions found for this grading group")
            return None

        template_id = group.get("assessmentTemplateId")
        template = None
        if template_id:
            templates = msgr.list_assessment_templates(
                page_size=config["template_page_size"]
            )
            template = next((t for t in templates if t.get("id") == template_id), None)
        if template is None:
            _fail("error", "Assessment template not found")
            return None

        element = None
        element_id = template.get("courseElementId")
        if element_id:
            elements = msgr.list_course_elements(page_size=config["template_page_size"])
            element = next((e for e in elements if e.get("id") == element_id), None)
        if element is None:
            _fail("error", "Course element not found")
            return None

        questions, rubrics = _questions_and_rubrics(msgr, template_id, config)
        reports = [_grading_of(msgr, sub) for sub in subs]
        rows = grade_report_rows(reports, questions, rubrics, element.get("name"))

        day = (arrow.utcnow() if now is None else arrow.get(now)).format("YYYY-MM-DD")
        title = sanitize_name(str(group.get("assessmentTemplateName") or group["id"]))
        filename = Path(outdir) / f"Grade_Report_{title}_{day}.xlsx"
        filename.parent.mkdir(parents=True, exist_ok=True)
        write_grade_report(rows, filename)
        log.info("wrote %s", filename)
        messages.destroy()
        messages.success("Grade report exported successfully")
        return filename
    except Exception as err:
        log.exception("Failed to export grade report")
        messages.destroy()
        messages.error(str(err) or "Export failed")
        return None
