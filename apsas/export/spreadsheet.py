# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""The flattened grading-group table, as CSV or as text."""

from __future__ import annotations

import csv
from typing import Any

import arrow
from tabulate import tabulate


ColumnHeaders = [
    "CourseCode",
    "CourseName",
    "Template",
    "Lecturers",
    "LecturerCodes",
    "Semester",
    "Submissions",
    "GroupIds",
    "RepresentativeId",
    "Created",
]


def _created(row: dict[str, Any]) -> str:
    created = row["group"].get("createdAt")
    if not created:
        return ""
    try:
        return arrow.get(created).isoformat(" ", "seconds")
    except (TypeError, ValueError):
        return str(created)


def _row_values(row: dict[str, Any]) -> list[Any]:
    return [
        row["course_code"],
        row["course_name"],
        row["template_name"],
        "; ".join(row["lecturer_names"]),
        "; ".join(c or "" for c in row["lecturer_codes"]),
        row["semester_code"],
        row["submission_count"],
        " ".join(str(g) for g in row["group_ids"]),
        row["id"],
        _created(row),
    ]


def write_flat_csv(rows: list[dict[str, Any]], filename) -> None:
    """Write the flat table to a csv file, one line per row.

    Arguments:
        rows (list): rows from :func:`flatten_grading_groups`.
        filename (pathlib.Path/str): where to save the csv.
    """
    with open(filename, "w", newline="") as csvfile:
        writer = csv.DictWriter(
            csvfile,
            fieldnames=ColumnHeaders,
            quotechar='"',
            quoting=csv.QUOTE_NONNUMERIC,
        )
        writer.writeheader()
        for row in rows:
            writer.writerow(dict(zip(ColumnHeaders, _row_values(row))))


def format_flat_table(rows: list[dict[str, Any]]) -> str:
    """The flat table as text for the terminal."""
    return tabulate([_row_values(r) for r in rows], headers=ColumnHeaders)
