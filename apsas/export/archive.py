# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Bundle requirements and student submissions into one zip file.

The archive has one folder per course and semester, named from the
course name and the semester code.  Each holds a ``Requirements_<T>``
folder per assessment template (a generated Word document plus any
files attached to the template) and a ``Submissions`` folder with one
entry per submission: either the student's file or a text placeholder
saying why it is missing.
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any

from tqdm import tqdm

from apsas.apsas_exceptions import APSASException
from apsas.config import DefaultSettings
from apsas.misc_utils import sanitize_name, timestamp_to_millis, utc_now_millis
from .flatten import filter_by_selection
from .requirement_doc import requirement_docx_bytes
from .throttle import Throttle


log = logging.getLogger("export")

ArchiveFilenameTemplate = "Teacher_Assignment_Submissions_{}.zip"


def _submission_items(grouped: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """One item per submission, in hierarchy order."""
    items = []
    for course in grouped:
        for template in course["templates"]:
            for lecturer in template["lecturers"]:
                for group in lecturer["groups"]:
                    for sub in group.get("subs") or []:
                        if not sub or not sub.get("id"):
                            continue
                        items.append(
                            {
                                "submission": sub,
                                "group": group,
                                "course_name": course["course_name"],
                                "course_code": course["course_code"],
                                "semester_code": group.get("semesterCode"),
                            }
                        )
    return items


def _bucket_by_course_semester(
    items: list[dict[str, Any]],
) -> dict[str, dict[str, Any]]:
    buckets: dict[str, dict[str, Any]] = {}
    for item in items:
        code = item["semester_code"]
        if not code:
            log.warning(
                "submission %s in grading group %s has no semester code: dropped",
                item["submission"]["id"],
                item["group"].get("id"),
            )
            continue
        key = f"{item['course_code']}_{code}"
        if key not in buckets:
            buckets[key] = {
                "course_name": item["course_name"],
                "course_code": item["course_code"],
                "semester_code": code,
                "items": [],
            }
        buckets[key]["items"].append(item)
    return buckets


def _fetch_requirement_parts(
    msgr, group: dict[str, Any], config: dict[str, Any]
) -> tuple[dict | None, list, dict, dict]:
    """Get the template, papers, questions and rubrics behind a grading group.

    Template and paper listing failures propagate; a failed question
    or rubric listing gives an empty list for that paper or question.
    """
    template_id = group["assessmentTemplateId"]
    templates = msgr.list_assessment_templates(
        page_size=config["template_page_size"]
    )
    template = next((t for t in templates if t.get("id") == template_id), None)
    if template is None:
        return None, [], {}, {}
    papers = msgr.list_assessment_papers(template_id, page_size=config["page_size"])

    questions_by_paper = {}
    rubrics_by_question = {}
    for paper in papers:
        try:
            questions = msgr.list_assessment_questions(
                paper["id"], page_size=config["page_size"]
            )
        except APSASException as err:
            log.error("Failed to fetch questions of paper %s: %s", paper["id"], err)
            questions = []
        questions = sorted(questions, key=lambda q: q.get("questionNumber") or 0)
        questions_by_paper[paper["id"]] = questions
        for q in questions:
            try:
                rubrics_by_question[q["id"]] = msgr.list_rubric_items(q["id"])
            except APSASException as err:
                log.error("Failed to fetch rubrics of question %s: %s", q["id"], err)
                rubrics_by_question[q["id"]] = []
    return template, papers, questions_by_paper, rubrics_by_question


def _add_requirements(
    zf: zipfile.ZipFile,
    folder: str,
    group: dict[str, Any],
    msgr,
    config: dict[str, Any],
) -> None:
    template_id = group.get("assessmentTemplateId")
    if not template_id:
        return
    try:
        template, papers, questions, rubrics = _fetch_requirement_parts(
            msgr, group, config
        )
    except APSASException as err:
        log.error(
            "Failed to generate requirement for template %s: %s", template_id, err
        )
        return
    if template is None:
        log.warning(
            "template %s of grading group %s not found", template_id, group["id"]
        )
        return

    try:
        data = requirement_docx_bytes(
            template,
            papers,
            questions,
            rubrics,
            fallback_title=group.get("assessmentTemplateName"),
        )
    except (ValueError, TypeError) as err:
        log.error("Failed to render requirement of template %s: %s", template_id, err)
        return
    name = sanitize_name(
        group.get("assessmentTemplateName") or f"Template_{group['id']}"
    )
    reqdir = f"{folder}/Requirements_{name}"
    zf.writestr(f"{reqdir}/{name}_Requirement.docx", data)

    try:
        files = msgr.list_template_files(template_id)
    except APSASException as err:
        log.error("Failed to fetch files of template %s: %s", template_id, err)
        return
    for f in files:
        try:
            response = msgr.get_file(f["fileUrl"])
        except APSASException as err:
            log.error("Failed to download assessment file %s: %s", f.get("name"), err)
            continue
        if not response.ok:
            log.error(
                "Failed to download assessment file %s: HTTP %s",
                f.get("name"),
                response.status_code,
            )
            continue
        zf.writestr(f"{reqdir}/{f['name']}", response.content)


def _add_submissions(
    zf: zipfile.ZipFile,
    folder: str,
    items: list[dict[str, Any]],
    msgr,
    throttle: Throttle,
    progress: bool = False,
) -> None:
    used = set()
    for item in tqdm(items, desc=folder, disable=not progress):
        sub = item["submission"]
        url = (sub.get("submissionFile") or {}).get("submissionUrl")
        if not url:
            zf.writestr(
                f"{folder}/submission_{sub['id']}_no_file.txt",
                f"Submission {sub['id']} - No file URL available",
            )
            continue
        throttle.wait()
        try:
            response = msgr.get_file(url)
            if not response.ok:
                raise APSASException(f"HTTP {response.status_code}: {response.reason}")
            data = response.content
        except APSASException as err:
            log.error("Failed to download submission %s: %s", sub["id"], err)
            zf.writestr(
                f"{folder}/submission_{sub['id']}_download_failed.txt",
                f"Submission {sub['id']} - Download failed: {err}\n"
                f"URL: {url}\n\n"
                "You can try downloading this file individually "
                "from the submission list.",
            )
            continue
        base = sub.get("studentCode") or f"student_{sub.get('studentId') or sub['id']}"
        name = f"{base}.zip"
        if name in used:
            name = f"{base}_{sub['id']}.zip"
        used.add(name)
        zf.writestr(f"{folder}/{name}", data)


def download_all(
    grouped: list[dict[str, Any]],
    messages,
    *,
    msgr,
    outdir: Path | str = ".",
    config: dict[str, Any] | None = None,
    throttle: Throttle | None = None,
    now: Any = None,
    progress: bool = False,
) -> Path | None:
    """Build the zip of requirements and submissions for a course hierarchy.

    Nothing is raised: the outcome is reported as exactly one warning,
    success or error on ``messages``.  Failures of single papers,
    files or submissions are logged and otherwise worked around.

    Args:
        grouped: course nodes as from
            :func:`apsas.export.grouping.group_by_course`.
        messages: where to report, see :mod:`apsas.export.messages`.

    Keyword Args:
        msgr: a started :class:`apsas.messenger.Messenger`.
        outdir: where to write the zip file.
        config: settings such as ``download_delay``, see
            :mod:`apsas.config`.
        throttle: spacing between submission downloads, built from
            ``download_delay`` if omitted.
        now: time to put in the filename, for testing.
        progress: show a progress bar per folder.

    Returns:
        The path of the zip file, or None if nothing was written.
    """
    if not grouped:
        messages.warning("No data to download")
        return None
    config = {**DefaultSettings, **(config or {})}
    if throttle is None:
        throttle = Throttle(float(config["download_delay"]))

    try:
        messages.loading("Preparing download...")
        buckets = _bucket_by_course_semester(_submission_items(grouped))
        if not buckets:
            messages.destroy()
            messages.warning("No submissions found to download")
            return None

        buf = BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for bucket in buckets.values():
                folder = (
                    f"{sanitize_name(bucket['course_name'])}_{bucket['semester_code']}"
                )
                log.info("building folder %s", folder)
                # one requirement folder per template
                seen = {}
                for item in bucket["items"]:
                    group = item["group"]
                    key = group.get("assessmentTemplateId") or ("group", group["id"])
                    seen.setdefault(key, group)
                for group in seen.values():
                    _add_requirements(zf, folder, group, msgr, config)
                _add_submissions(
                    zf,
                    f"{folder}/Submissions",
                    bucket["items"],
                    msgr,
                    throttle,
                    progress=progress,
                )
        data = buf.getvalue()

        millis = utc_now_millis() if now is None else timestamp_to_millis(now)
        filename = Path(outdir) / ArchiveFilenameTemplate.format(millis)
        filename.parent.mkdir(parents=True, exist_ok=True)
        with open(filename, "wb") as f:
            f.write(data)
        log.info("wrote %s", filename)
        messages.destroy()
        messages.success("Download completed successfully!")
        return filename
    except Exception as err:
        log.exception("Failed to download")
        messages.destroy()
        messages.error(str(err) or "Failed to download files")
        return None


def download_selected(
    selected_rows: list[dict[str, Any]],
    grouped: list[dict[str, Any]],
    messages,
    **kwargs,
) -> Path | None:
    """Like :func:`download_all` but only for some rows of the flat table."""
    if not selected_rows:
        messages.warning("Please select at least one group to download")
        return None
    return download_all(filter_by_selection(selected_rows, grouped), messages, **kwargs)
