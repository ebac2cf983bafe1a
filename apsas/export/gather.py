# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Pull everything the grouping needs from the server."""

from __future__ import annotations

import logging
from typing import Any

from apsas.apsas_exceptions import APSASException
from apsas.config import DefaultSettings
from .grouping import (
    build_group_to_course_map,
    build_group_to_semester_map,
    group_by_course,
)
from .start_messenger import with_export_messenger


log = logging.getLogger("export")


@with_export_messenger
def gather_grading_data(
    *,
    msgr,
    lecturer_id: int | None = None,
    template_page_size: int = DefaultSettings["template_page_size"],
) -> dict[str, Any]:
    """Fetch grading groups and everything needed to place them.

    Keyword Args:
        msgr (Messenger/tuple): either a connected Messenger or a tuple
            of arguments for :func:`start_messenger`.
        lecturer_id: only the grading groups of this lecturer.
        template_page_size: how many templates to ask for at once.

    Returns:
        dict with keys ``groups`` (list), ``submissions`` (list),
        ``templates`` and ``course_elements`` (keyed by id, restricted
        to those the groups refer to), ``semesters`` (keyed by semester
        code), ``group_to_semester`` and ``group_to_course``.
    """
    groups = msgr.list_grading_groups(lecturer_id=lecturer_id)
    log.info("fetched %d grading groups", len(groups))

    submissions = []
    for g in groups:
        try:
            submissions.extend(msgr.list_submissions(grading_group_id=g["id"]))
        except APSASException as err:
            log.warning("no submissions for grading group %s: %s", g["id"], err)

    template_ids = {
        g["assessmentTemplateId"]
        for g in groups
        if g.get("assessmentTemplateId") is not None
    }
    templates = {}
    if template_ids:
        for t in msgr.list_assessment_templates(page_size=template_page_size):
            if t.get("id") in template_ids:
                templates[t["id"]] = t

    element_ids = {t.get("courseElementId") for t in templates.values()}
    course_elements = {}
    if element_ids:
        for e in msgr.list_course_elements():
            if e.get("id") in element_ids:
                course_elements[e["id"]] = e

    semesters = {}
    for s in msgr.list_semesters():
        if s.get("semesterCode"):
            semesters[s["semesterCode"]] = s

    return {
        "groups": groups,
        "submissions": submissions,
        "templates": templates,
        "course_elements": course_elements,
        "semesters": semesters,
        "group_to_semester": build_group_to_semester_map(
            groups, templates, course_elements
        ),
        "group_to_course": build_group_to_course_map(
            groups, templates, course_elements
        ),
    }


@with_export_messenger
def load_hierarchy(
    *,
    msgr,
    lecturer_id: int | None = None,
    semester: str | None = None,
    course_id: int | None = None,
    template_id: int | None = None,
    template_page_size: int = DefaultSettings["template_page_size"],
    now: Any = None,
) -> list[dict[str, Any]]:
    """Gather from the server and arrange by course, template and lecturer.

    The filters are those of :func:`group_by_course`; ``lecturer_id``
    also restricts what is fetched.
    """
    data = gather_grading_data(
        msgr=msgr, lecturer_id=lecturer_id, template_page_size=template_page_size
    )
    return group_by_course(
        data["groups"],
        data["submissions"],
        group_to_semester=data["group_to_semester"],
        templates=data["templates"],
        course_elements=data["course_elements"],
        semesters=data["semesters"],
        semester=semester,
        course_id=course_id,
        template_id=template_id,
        lecturer_id=lecturer_id,
        now=now,
    )
