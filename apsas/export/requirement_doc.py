# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Render an assessment template as a Word requirement document."""

from __future__ import annotations

from io import BytesIO
from typing import Any

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH


def _blank(doc) -> None:
    doc.add_paragraph(" ")


def _labelled(doc, label: str, value: Any = None) -> None:
    p = doc.add_paragraph()
    p.add_run(label).bold = True
    if value is not None:
        p.add_run(str(value))


def build_requirement_document(
    template: dict[str, Any],
    papers: list[dict[str, Any]],
    questions_by_paper: dict[int, list[dict[str, Any]]],
    rubrics_by_question: dict[int, list[dict[str, Any]]],
    *,
    fallback_title: str | None = None,
):
    """Build the requirement document of an assessment template.

    Args:
        template: the assessment template, we use ``name`` and
            ``description``.
        papers: the template's papers, in order.
        questions_by_paper: questions of each paper id, already sorted.
        rubrics_by_question: rubric items of each question id.

    Keyword Args:
        fallback_title: title when the template has no name, typically
            the grading group's template name.  If that is also empty
            the title is ``"Requirement"``.

    Returns:
        docx.document.Document: not yet saved anywhere.
    """
    doc = Document()
    title = template.get("name") or fallback_title or "Requirement"
    doc.add_heading(title, level=0).alignment = WD_ALIGN_PARAGRAPH.CENTER
    if template.get("description"):
        doc.add_paragraph().add_run(template["description"]).italic = True
    _blank(doc)

    for paper in papers:
        doc.add_heading(paper.get("name") or f"Paper {paper['id']}", level=1)
        if paper.get("description"):
            doc.add_paragraph(paper["description"])
        _blank(doc)

        for n, question in enumerate(questions_by_paper.get(paper["id"], []), 1):
            number = question.get("questionNumber") or n
            text = question.get("questionText") or ""
            doc.add_heading(f"Question {number}: {text}", level=2)
            if question.get("score"):
                _labelled(doc, "Score: ", question["score"])
            if question.get("questionSampleInput"):
                _blank(doc)
                _labelled(doc, "Sample Input: ")
                doc.add_paragraph(question["questionSampleInput"])
            if question.get("questionSampleOutput"):
                _blank(doc)
                _labelled(doc, "Sample Output: ")
                doc.add_paragraph(question["questionSampleOutput"])

            rubrics = rubrics_by_question.get(question["id"], [])
            if rubrics:
                _blank(doc)
                _labelled(doc, "Rubrics: ")
                for rubric in rubrics:
                    doc.add_paragraph(f"- {rubric.get('description') or ''}")
                    if rubric.get("input"):
                        _labelled(doc, "  Input: ", rubric["input"])
                    if rubric.get("output"):
                        _labelled(doc, "  Output: ", rubric["output"])
                    if rubric.get("score"):
                        _labelled(doc, "  Score: ", rubric["score"])
            _blank(doc)
    return doc


def requirement_docx_bytes(*args, **kwargs) -> bytes:
    """Like :func:`build_requirement_document` but return the .docx as bytes."""
    doc = build_requirement_document(*args, **kwargs)
    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()
