# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""APSAS tools for exporting grading groups and their submissions."""

__copyright__ = "Copyright (C) 2024-2025 The APSAS Developers"
__credits__ = "The APSAS Developers"
__license__ = "AGPL-3.0-or-later"

from apsas import __version__


CSVFilename = "grading_groups.csv"

from .start_messenger import start_messenger
from .start_messenger import with_export_messenger

from .grouping import group_by_course, resolve_semester_code
from .grouping import build_group_to_semester_map, build_group_to_course_map
from .grouping import HierarchyBuilder
from .flatten import flatten_grading_groups, filter_by_selection
from .requirement_doc import build_requirement_document, requirement_docx_bytes
from .throttle import Throttle
from .messages import ConsoleMessages
from .archive import download_all, download_selected
from .gather import gather_grading_data, load_hierarchy
from .spreadsheet import write_flat_csv, format_flat_table
from .grade_report import export_grade_report, grade_report_rows


# what you get from "from apsas.export import *"
__all__ = [
    "group_by_course",
    "resolve_semester_code",
    "flatten_grading_groups",
    "filter_by_selection",
    "build_requirement_document",
    "download_all",
    "download_selected",
    "gather_grading_data",
    "load_hierarchy",
    "write_flat_csv",
    "format_flat_table",
    "export_grade_report",
]
