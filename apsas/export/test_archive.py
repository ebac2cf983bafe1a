# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

import zipfile
from unittest.mock import MagicMock

from apsas.apsas_exceptions import APSASConnectionError, APSASSeriousException
from apsas.export.archive import download_all, download_selected
from apsas.export.flatten import flatten_grading_groups
from apsas.export.messages import RecordingMessages
from apsas.export.throttle import Throttle


NOW = "2025-01-01T00:00:00+00:00"
ZIPNAME = "Teacher_Assignment_Submissions_1735689600000.zip"
FOLDER = "Intro_to_C__FA24"


def _sub(sid, code, url=None, student_id=None):
    return {
        "id": sid,
        "studentId": student_id,
        "studentCode": code,
        "submissionFile": {"name": "x.zip", "submissionUrl": url} if url else None,
    }


def _hierarchy():
    g1 = {
        "id": 1,
        "assessmentTemplateId": 10,
        "assessmentTemplateName": "Lab 1",
        "semesterCode": "FA24",
        "createdAt": "2024-10-01",
        "subs": [
            _sub(101, "SE1", "https://files/101.zip"),
            _sub(102, "SE1", "https://files/102.zip"),
            _sub(103, "SE3", "https://files/103.zip"),
            _sub(104, "SE4"),
            _sub(105, "SE5", "https://files/105.zip"),
        ],
    }
    g2 = {
        "id": 2,
        "assessmentTemplateId": None,
        "semesterCode": "FA24",
        "createdAt": "2024-10-02",
        "subs": [_sub(106, None, "https://files/106.zip", student_id=42)],
    }
    g3 = {
        "id": 3,
        "assessmentTemplateId": 30,
        "semesterCode": None,
        "createdAt": "2024-10-03",
        "subs": [_sub(107, "SE7", "https://files/107.zip")],
    }
    return [
        {
            "course_id": 1,
            "course_name": "Intro to C#",
            "course_code": "PRF",
            "templates": [
                {
                    "template_id": 10,
                    "template_name": "Lab 1",
                    "lecturers": [
                        {
                            "lecturer_id": 5,
                            "lecturer_name": "A",
                            "lecturer_code": None,
                            "groups": [g1],
                        },
                        {
                            "lecturer_id": 6,
                            "lecturer_name": "B",
                            "lecturer_code": None,
                            "groups": [g2],
                        },
                    ],
                }
            ],
        },
        {
            "course_id": 2,
            "course_name": "Other",
            "course_code": "OTH",
            "templates": [
                {
                    "template_id": 30,
                    "template_name": "Exam",
                    "lecturers": [
                        {
                            "lecturer_id": 7,
                            "lecturer_name": "C",
                            "lecturer_code": None,
                            "groups": [g3],
                        }
                    ],
                }
            ],
        },
    ]


def _response(status=200, reason="OK", content=b""):
    r = MagicMock()
    r.ok = status < 400
    r.status_code = status
    r.reason = reason
    r.content = content
    return r


def _get_file(url):
    if url.endswith("103.zip"):
        return _response(404, "Not Found")
    if url.endswith("105.zip"):
        raise APSASConnectionError("Cannot reach file proxy")
    return _response(content=b"data:" + url.encode())


def _msgr():
    m = MagicMock()
    m.list_assessment_templates.return_value = [
        {"id": 9, "name": "Other"},
        {"id": 10, "name": "Lab 1", "description": "Lists"},
    ]
    m.list_assessment_papers.return_value = [{"id": 1, "name": "Part A"}]
    m.list_assessment_questions.return_value = [
        {"id": 12, "questionNumber": 2, "questionText": "second"},
        {"id": 11, "questionNumber": 1, "questionText": "first"},
    ]
    m.list_rubric_items.return_value = [{"id": 1, "description": "ok"}]
    m.list_template_files.return_value = [
        {"id": 1, "name": "brief.pdf", "fileUrl": "https://files/brief.pdf"},
        {"id": 2, "name": "broken.pdf", "fileUrl": "https://files/103.zip"},
    ]
    m.get_file.side_effect = _get_file
    return m


def _run(tmp_path, grouped=None, msgr=None, throttle=None):
    msgs = RecordingMessages()
    path = download_all(
        _hierarchy() if grouped is None else grouped,
        msgs,
        msgr=msgr or _msgr(),
        outdir=tmp_path,
        throttle=throttle or Throttle(0),
        now=NOW,
    )
    return path, msgs


def test_empty_input_warns_once(tmp_path) -> None:
    path, msgs = _run(tmp_path, grouped=[])
    assert path is None
    assert msgs.log == [("warning", "No data to download")]
    assert list(tmp_path.iterdir()) == []


def test_layout(tmp_path) -> None:
    path, msgs = _run(tmp_path)
    assert path == tmp_path / ZIPNAME
    with zipfile.ZipFile(path) as zf:
        names = set(zf.namelist())
        assert names == {
            f"{FOLDER}/Requirements_Lab_1/Lab_1_Requirement.docx",
            f"{FOLDER}/Requirements_Lab_1/brief.pdf",
            f"{FOLDER}/Submissions/SE1.zip",
            f"{FOLDER}/Submissions/SE1_102.zip",
            f"{FOLDER}/Submissions/submission_103_download_failed.txt",
            f"{FOLDER}/Submissions/submission_104_no_file.txt",
            f"{FOLDER}/Submissions/submission_105_download_failed.txt",
            f"{FOLDER}/Submissions/student_42.zip",
        }
        assert zf.read(f"{FOLDER}/Submissions/SE1.zip") == b"data:https://files/101.zip"
        assert zf.read(f"{FOLDER}/Requirements_Lab_1/brief.pdf") == (
            b"data:https://files/brief.pdf"
        )
    assert msgs.log == [
        ("loading", "Preparing download..."),
        ("destroy", None),
        ("success", "Download completed successfully!"),
    ]


def test_placeholders(tmp_path) -> None:
    path, _ = _run(tmp_path)
    with zipfile.ZipFile(path) as zf:
        failed = zf.read(f"{FOLDER}/Submissions/submission_103_download_failed.txt")
        nofile = zf.read(f"{FOLDER}/Submissions/submission_104_no_file.txt")
        unreachable = zf.read(
            f"{FOLDER}/Submissions/submission_105_download_failed.txt"
        )
    assert failed.decode() == (
        "Submission 103 - Download failed: HTTP 404: Not Found\n"
        "URL: https://files/103.zip\n\n"
        "You can try downloading this file individually from the submission list."
    )
    assert nofile.decode() == "Submission 104 - No file URL available"
    assert b"Cannot reach file proxy" in unreachable
    assert b"URL: https://files/105.zip" in unreachable


def test_archive_completeness(tmp_path) -> None:
    path, _ = _run(tmp_path)
    with zipfile.ZipFile(path) as zf:
        subs = [n for n in zf.namelist() if "/Submissions/" in n]
    # one entry per submission with a semester, none for submission 107
    assert len(subs) == 6
    assert not any("107" in n or "SE7" in n for n in subs)


def test_questions_sorted_and_rubrics_fetched(tmp_path) -> None:
    msgr = _msgr()
    _run(tmp_path, msgr=msgr)
    asked = [c.args[0] for c in msgr.list_rubric_items.call_args_list]
    assert asked == [11, 12]
    msgr.list_assessment_papers.assert_called_once()
    assert msgr.list_assessment_papers.call_args.args[0] == 10


def test_shared_template_written_once(tmp_path) -> None:
    h = _hierarchy()
    g2 = h[0]["templates"][0]["lecturers"][1]["groups"][0]
    g2["assessmentTemplateId"] = 10
    g2["assessmentTemplateName"] = "Lab 1"
    msgr = _msgr()
    path, _ = _run(tmp_path, grouped=h, msgr=msgr)
    with zipfile.ZipFile(path) as zf:
        names = zf.namelist()
    assert len(names) == len(set(names))
    assert names.count(f"{FOLDER}/Requirements_Lab_1/Lab_1_Requirement.docx") == 1
    assert names.count(f"{FOLDER}/Requirements_Lab_1/brief.pdf") == 1
    msgr.list_assessment_papers.assert_called_once()
    msgr.list_template_files.assert_called_once()


def test_unrenderable_requirement_skipped(tmp_path) -> None:
    msgr = _msgr()
    msgr.list_assessment_questions.return_value = [
        {"id": 11, "questionNumber": 1, "questionText": "bad\x0bchar"},
    ]
    path, msgs = _run(tmp_path, msgr=msgr)
    assert path == tmp_path / ZIPNAME
    with zipfile.ZipFile(path) as zf:
        names = zf.namelist()
    assert not any("Requirements_" in n for n in names)
    assert f"{FOLDER}/Submissions/SE1.zip" in names
    assert msgs.terminal() == [("success", "Download completed successfully!")]


def test_no_populated_bucket(tmp_path) -> None:
    h = _hierarchy()[1:]
    path, msgs = _run(tmp_path, grouped=h)
    assert path is None
    assert msgs.log == [
        ("loading", "Preparing download..."),
        ("destroy", None),
        ("warning", "No submissions found to download"),
    ]
    assert list(tmp_path.iterdir()) == []


def test_template_not_found_skips_requirements(tmp_path) -> None:
    msgr = _msgr()
    msgr.list_assessment_templates.return_value = [{"id": 9, "name": "Other"}]
    path, msgs = _run(tmp_path, msgr=msgr)
    with zipfile.ZipFile(path) as zf:
        assert not any("Requirements_" in n for n in zf.namelist())
    msgr.list_assessment_papers.assert_not_called()
    assert msgs.terminal() == [("success", "Download completed successfully!")]


def test_paper_listing_failure_skips_requirements(tmp_path) -> None:
    msgr = _msgr()
    msgr.list_assessment_papers.side_effect = APSASSeriousException("boom")
    path, msgs = _run(tmp_path, msgr=msgr)
    with zipfile.ZipFile(path) as zf:
        names = zf.namelist()
    assert not any("Requirements_" in n for n in names)
    assert f"{FOLDER}/Submissions/SE1.zip" in names
    assert msgs.terminal() == [("success", "Download completed successfully!")]


def test_question_failure_is_per_item(tmp_path) -> None:
    msgr = _msgr()
    msgr.list_assessment_questions.side_effect = APSASConnectionError("flaky")
    path, _ = _run(tmp_path, msgr=msgr)
    with zipfile.ZipFile(path) as zf:
        assert f"{FOLDER}/Requirements_Lab_1/Lab_1_Requirement.docx" in zf.namelist()
    msgr.list_rubric_items.assert_not_called()


def test_fatal_error_reported(tmp_path) -> None:
    msgr = _msgr()
    msgr.get_file.side_effect = RuntimeError("disk on fire")
    path, msgs = _run(tmp_path, msgr=msgr)
    assert path is None
    assert msgs.log[-2:] == [("destroy", None), ("error", "disk on fire")]
    assert len(msgs.terminal()) == 1
    assert list(tmp_path.iterdir()) == []


def test_fatal_error_default_message(tmp_path) -> None:
    msgr = _msgr()
    msgr.list_assessment_templates.side_effect = RuntimeError()
    path, msgs = _run(tmp_path, msgr=msgr)
    assert path is None
    assert msgs.terminal() == [("error", "Failed to download files")]


def test_throttle_between_downloads(tmp_path) -> None:
    sleeps = []
    throttle = Throttle(0.3, sleep=sleeps.append, clock=lambda: 100.0)
    _run(tmp_path, throttle=throttle)
    # five submissions have a URL: pauses between them, not before the first
    assert sleeps == [0.3] * 4


def test_download_selected_empty(tmp_path) -> None:
    msgs = RecordingMessages()
    path = download_selected([], _hierarchy(), msgs, msgr=_msgr(), outdir=tmp_path)
    assert path is None
    assert msgs.log == [("warning", "Please select at least one group to download")]


def test_download_selected_only_chosen_rows(tmp_path) -> None:
    h = _hierarchy()
    rows = flatten_grading_groups(h)
    selected = [r for r in rows if 2 in r["group_ids"]]
    msgs = RecordingMessages()
    path = download_selected(
        selected,
        h,
        msgs,
        msgr=_msgr(),
        outdir=tmp_path,
        throttle=Throttle(0),
        now=NOW,
    )
    with zipfile.ZipFile(path) as zf:
        assert zf.namelist() == [f"{FOLDER}/Submissions/student_42.zip"]
    assert msgs.terminal() == [("success", "Download completed successfully!")]
