# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Flatten the course hierarchy into table rows, and back again."""

from __future__ import annotations

from typing import Any

from apsas.misc_utils import timestamp_to_millis


def flatten_grading_groups(grouped: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """One row per course, template and lecturer, merging their grading groups.

    Groups without a ``semesterCode`` are left out.  When several
    groups share a row, their submissions are counted together, all
    their ids go in ``group_ids``, and the most recently created group
    becomes the representative ``group`` (and its id the row ``id``).
    On equal ``createdAt`` the first one seen stays.

    Args:
        grouped: course nodes as from :func:`group_by_course`.

    Returns:
        list of dicts with keys ``id``, ``course_code``, ``course_name``,
        ``template_name``, ``lecturer_names``, ``lecturer_codes``,
        ``semester_code``, ``submission_count``, ``group_ids`` and
        ``group``.
    """
    rows: dict[tuple, dict[str, Any]] = {}
    for course in grouped:
        for template in course["templates"]:
            for lecturer in template["lecturers"]:
                for group in lecturer["groups"]:
                    code = group.get("semesterCode")
                    if not code:
                        continue
                    key = (
                        course["course_id"],
                        template["template_id"],
                        lecturer["lecturer_id"],
                    )
                    nsubs = len(group.get("subs") or [])
                    row = rows.get(key)
                    if row is None:
                        rows[key] = {
                            "id": group["id"],
                            "course_code": course["course_code"],
                            "course_name": course["course_name"],
                            "template_name": template["template_name"],
                            "lecturer_names": [lecturer["lecturer_name"]],
                            "lecturer_codes": [lecturer["lecturer_code"]],
                            "semester_code": code,
                            "submission_count": nsubs,
                            "group_ids": [group["id"]],
                            "group": group,
                        }
                        continue
                    row["submission_count"] += nsubs
                    row["group_ids"].append(group["id"])
                    newer = timestamp_to_millis(group.get("createdAt"))
                    if newer > timestamp_to_millis(row["group"].get("createdAt")):
                        row["group"] = group
                        row["id"] = group["id"]
    return list(rows.values())


def filter_by_selection(
    selected_rows: list[dict[str, Any]], grouped: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Cut the hierarchy down to the grading groups behind some table rows.

    Lecturers, templates and courses left with nothing under them are
    removed.  The input hierarchy is not modified.
    """
    keep = {gid for row in selected_rows for gid in row["group_ids"]}
    courses = []
    for course in grouped:
        templates = []
        for template in course["templates"]:
            lecturers = []
            for lecturer in template["lecturers"]:
                groups = [g for g in lecturer["groups"] if g["id"] in keep]
                if groups:
                    lecturers.append({**lecturer, "groups": groups})
            if lecturers:
                templates.append({**template, "lecturers": lecturers})
        if templates:
            courses.append({**course, "templates": templates})
    return courses
