# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Arrange grading groups into a course, template, lecturer hierarchy.

A grading group only reaches the hierarchy when we can walk the chain
grading group, assessment template, course element, semester course,
semester.  Groups where that chain breaks are dropped, with a warning
in the log so that bad upstream data can be noticed.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from apsas.misc_utils import is_in_future


log = logging.getLogger("export")


def _by_id(records: Mapping | Iterable[dict[str, Any]] | None) -> Mapping:
    """Accept either a dict keyed by id or a plain list of records."""
    if records is None:
        return {}
    if isinstance(records, Mapping):
        return records
    return {r["id"]: r for r in records}


def _course_element_for(
    group: dict[str, Any], templates: Mapping, course_elements: Mapping
) -> tuple[dict | None, dict | None, str | None]:
    """Walk from a grading group to its template and course element.

    Returns:
        A triple ``(template, course_element, missing)`` where
        ``missing`` names the first broken link, or is None.
    """
    template_id = group.get("assessmentTemplateId")
    if template_id is None:
        return None, None, "assessmentTemplateId"
    template = templates.get(template_id)
    if template is None:
        return None, None, f"template {template_id}"
    element_id = template.get("courseElementId")
    element = course_elements.get(element_id) if element_id is not None else None
    if element is None:
        return template, None, f"course element {element_id}"
    return template, element, None


def resolve_semester_code(
    group: dict[str, Any],
    templates: Mapping | Iterable[dict[str, Any]],
    course_elements: Mapping | Iterable[dict[str, Any]],
) -> str | None:
    """Find the semester code of a grading group, if it has one.

    Follows grading group to assessment template to course element to
    semester course to semester.

    Args:
        group: a grading group record.
        templates: assessment templates, keyed by id (or a list).
        course_elements: course elements, keyed by id (or a list).

    Returns:
        The semester code such as ``"FA24"``, or None if any link in
        the chain is missing.  Each None is logged as a warning naming
        the group and the missing link.
    """
    template, element, missing = _course_element_for(
        group, _by_id(templates), _by_id(course_elements)
    )
    if missing is None:
        semester = (element.get("semesterCourse") or {}).get("semester") or {}
        code = semester.get("semesterCode")
        if code:
            return code
        missing = "semester"
    log.warning(
        "dropping grading group %s: cannot resolve semester (missing %s)",
        group.get("id"),
        missing,
    )
    return None


def build_group_to_semester_map(
    groups: Iterable[dict[str, Any]],
    templates: Mapping | Iterable[dict[str, Any]],
    course_elements: Mapping | Iterable[dict[str, Any]],
) -> dict[int, str]:
    """Semester code for each grading group where we can find one."""
    templates = _by_id(templates)
    course_elements = _by_id(course_elements)
    result = {}
    for g in groups:
        code = resolve_semester_code(g, templates, course_elements)
        if code:
            result[g["id"]] = code
    return result


def build_group_to_course_map(
    groups: Iterable[dict[str, Any]],
    templates: Mapping | Iterable[dict[str, Any]],
    course_elements: Mapping | Iterable[dict[str, Any]],
) -> dict[int, dict[str, Any]]:
    """The course record (id, name, code) of each grading group, where known."""
    templates = _by_id(templates)
    course_elements = _by_id(course_elements)
    result = {}
    for g in groups:
        _, element, missing = _course_element_for(g, templates, course_elements)
        if missing:
            continue
        course = (element.get("semesterCourse") or {}).get("course")
        if course:
            result[g["id"]] = course
    return result


class HierarchyBuilder:
    """Accumulate grading groups into course, template and lecturer nodes.

    Nodes are keyed by the tuples ``(course_id,)``, ``(course_id,
    template_id)`` and ``(course_id, template_id, lecturer_id)``.  Each
    level remembers the order in which it first saw its children.
    Call :meth:`build` for the finished tree: it is a fresh copy each
    time, so callers can mutate it freely.
    """

    def __init__(self) -> None:
        self._nodes: dict[tuple, dict[str, Any]] = {}
        self._children: dict[tuple, list[tuple]] = defaultdict(list)
        self._groups: dict[tuple, list[dict[str, Any]]] = defaultdict(list)

    def _node(self, key: tuple, **fields) -> None:
        if key in self._nodes:
            return
        self._nodes[key] = fields
        self._children[key[:-1]].append(key)

    def add(
        self,
        course: dict[str, Any],
        template: dict[str, Any],
        lecturer: dict[str, Any],
        group: dict[str, Any],
    ) -> None:
        """Append a group, creating its course, template and lecturer on first sight.

        Args:
            course: dict with ``course_id``, ``course_name``, ``course_code``.
            template: dict with ``template_id``, ``template_name``.
            lecturer: dict with ``lecturer_id``, ``lecturer_name``,
                ``lecturer_code``.
            group: the enriched grading group.
        """
        ckey = (course["course_id"],)
        tkey = ckey + (template["template_id"],)
        lkey = tkey + (lecturer["lecturer_id"],)
        self._node(ckey, **course)
        self._node(tkey, **template)
        self._node(lkey, **lecturer)
        self._groups[lkey].append(group)

    def __len__(self) -> int:
        return len(self._children[()])

    def build(self) -> list[dict[str, Any]]:
        tree = []
        for ckey in self._children[()]:
            templates = []
            for tkey in self._children[ckey]:
                lecturers = []
                for lkey in self._children[tkey]:
                    lecturers.append(
                        {
                            **self._nodes[lkey],
                            "groups": copy.deepcopy(self._groups[lkey]),
                        }
                    )
                templates.append({**self._nodes[tkey], "lecturers": lecturers})
            tree.append({**self._nodes[ckey], "templates": templates})
        return tree


def _enrich_submission(sub: dict[str, Any], enriched: Mapping) -> dict[str, Any]:
    sub = dict(sub)
    extra = enriched.get(sub.get("id"))
    if extra:
        own = sub.get("submissionFile") or {}
        sub["submissionFile"] = {
            "name": extra.get("name") or own.get("name"),
            "submissionUrl": extra.get("submissionUrl") or own.get("submissionUrl"),
        }
    return sub


def _semester_start(
    code: str, semesters: Mapping | None, element: dict[str, Any]
) -> str | None:
    if semesters and code in semesters:
        return semesters[code].get("startDate")
    semester = (element.get("semesterCourse") or {}).get("semester") or {}
    if semester.get("semesterCode") == code:
        return semester.get("startDate")
    return None


def group_by_course(
    groups: Iterable[dict[str, Any]],
    submissions: Iterable[dict[str, Any]],
    *,
    group_to_semester: Mapping[int, str],
    templates: Mapping | Iterable[dict[str, Any]],
    course_elements: Mapping | Iterable[dict[str, Any]],
    semesters: Mapping[str, dict[str, Any]] | None = None,
    enriched: Mapping[int, dict[str, Any]] | None = None,
    semester: str | None = None,
    course_id: int | None = None,
    template_id: int | None = None,
    lecturer_id: int | None = None,
    now: Any = None,
) -> list[dict[str, Any]]:
    """Arrange grading groups by course, then template, then lecturer.

    Args:
        groups: grading group records from the server.
        submissions: submission records; each is attached to the
            group named by its ``gradingGroupId``.

    Keyword Args:
        group_to_semester: semester code for each grading group id,
            see :func:`build_group_to_semester_map`.
        templates: assessment templates keyed by id (or a list).
        course_elements: course elements keyed by id (or a list).
        semesters: semester records keyed by semester code, used for
            start dates.  If omitted, the semester nested in the course
            element is used.
        enriched: optional better file details per submission id, each
            a dict with ``name`` and ``submissionUrl``.
        semester: only this semester code; None or ``"all"`` for any.
        course_id: only this course.
        template_id: only this assessment template.
        lecturer_id: only this lecturer.
        now: the current time, for testing; anything arrow accepts.

    Returns:
        A list of course nodes, each with ``course_id``, ``course_name``,
        ``course_code`` and ``templates``; templates carry
        ``template_id``, ``template_name`` and ``lecturers``; lecturers
        carry ``lecturer_id``, ``lecturer_name``, ``lecturer_code`` and
        ``groups``.  Each group is a copy of the server record with
        ``subs`` and ``semesterCode`` added.  Order is the order of
        first appearance at every level.
    """
    templates = _by_id(templates)
    course_elements = _by_id(course_elements)
    enriched = enriched or {}
    if semester == "all":
        semester = None

    subs_by_group = defaultdict(list)
    for s in submissions:
        if s.get("gradingGroupId") is not None:
            subs_by_group[s["gradingGroupId"]].append(s)

    builder = HierarchyBuilder()
    for g in groups:
        template, element, missing = _course_element_for(g, templates, course_elements)
        if missing:
            log.debug("skipping grading group %s: missing %s", g.get("id"), missing)
            continue
        course = (element.get("semesterCourse") or {}).get("course")
        if not course:
            log.warning("skipping grading group %s: missing course", g.get("id"))
            continue
        code = group_to_semester.get(g["id"])
        if not code:
            log.debug("skipping grading group %s: no semester code", g["id"])
            continue
        if is_in_future(_semester_start(code, semesters, element), now):
            log.debug("skipping grading group %s: semester %s not begun", g["id"], code)
            continue

        if semester is not None and code != semester:
            continue
        if course_id is not None and course["id"] != course_id:
            continue
        if template_id is not None and template["id"] != template_id:
            continue
        if lecturer_id is not None and g.get("lecturerId") != lecturer_id:
            continue

        group = dict(g)
        group["subs"] = [
            _enrich_submission(s, enriched) for s in subs_by_group.get(g["id"], [])
        ]
        group["semesterCode"] = code
        builder.add(
            {
                "course_id": course["id"],
                "course_name": course.get("name") or "",
                "course_code": course.get("code") or "",
            },
            {
                "template_id": template["id"],
                "template_name": template.get("name")
                or g.get("assessmentTemplateName")
                or "",
            },
            {
                "lecturer_id": g.get("lecturerId"),
                "lecturer_name": (g.get("lecturerName") or "").strip() or "Unknown",
                "lecturer_code": g.get("lecturerCode"),
            },
            group,
        )
    return builder.build()
