# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

import importlib
from unittest.mock import MagicMock, patch

from pytest import raises

from apsas.apsas_exceptions import APSASAuthenticationException, APSASNoSuchObject
from apsas.messenger import Messenger
from apsas.export import gather_grading_data, load_hierarchy
from apsas.export import start_messenger

# the package re-exports a function of the same name as this module
sm = importlib.import_module("apsas.export.start_messenger")


def _msgr():
    m = MagicMock(spec=Messenger)
    m.list_grading_groups.return_value = [
        {"id": 1, "assessmentTemplateId": 10, "lecturerId": 5, "lecturerName": "A"},
        {"id": 2, "assessmentTemplateId": 10, "lecturerId": 6, "lecturerName": "B"},
        {"id": 3, "assessmentTemplateId": None, "lecturerId": 6},
    ]

    def subs(grading_group_id=None):
        if grading_group_id == 2:
            raise APSASNoSuchObject("gone")
        return [{"id": 100 + grading_group_id, "gradingGroupId": grading_group_id}]

    m.list_submissions.side_effect = subs
    m.list_assessment_templates.return_value = [
        {"id": 10, "name": "Lab 1", "courseElementId": 100},
        {"id": 99, "name": "Unrelated", "courseElementId": 900},
    ]
    m.list_course_elements.return_value = [
        {
            "id": 100,
            "semesterCourse": {
                "course": {"id": 1, "name": "Prog", "code": "PRF"},
                "semester": {"semesterCode": "FA24", "startDate": "2024-09-01"},
            },
        },
        {"id": 900, "semesterCourse": {}},
    ]
    m.list_semesters.return_value = [
        {"semesterCode": "FA24", "startDate": "2024-09-01"},
        {"semesterCode": None},
    ]
    return m


def test_gather_restricts_and_maps() -> None:
    data = gather_grading_data(msgr=_msgr())
    assert [g["id"] for g in data["groups"]] == [1, 2, 3]
    # group 2 failed to list submissions: counts as none
    assert [s["id"] for s in data["submissions"]] == [101, 103]
    assert list(data["templates"].keys()) == [10]
    assert list(data["course_elements"].keys()) == [100]
    assert list(data["semesters"].keys()) == ["FA24"]
    assert data["group_to_semester"] == {1: "FA24", 2: "FA24"}
    assert data["group_to_course"][1]["code"] == "PRF"


def test_gather_passes_lecturer() -> None:
    m = _msgr()
    gather_grading_data(msgr=m, lecturer_id=5)
    m.list_grading_groups.assert_called_once_with(lecturer_id=5)


def test_load_hierarchy() -> None:
    grouped = load_hierarchy(msgr=_msgr(), now="2025-01-01")
    assert len(grouped) == 1
    lecturers = grouped[0]["templates"][0]["lecturers"]
    assert [lec["lecturer_id"] for lec in lecturers] == [5, 6]
    assert lecturers[1]["groups"][0]["subs"] == []


def test_credentials_token() -> None:
    m = _msgr()
    with patch.object(sm, "Messenger") as M:
        M.return_value = m
        gather_grading_data(msgr={"server": "example.com", "token": "abc"})
        M.assert_called_once_with(
            "example.com", proxy=None, verify_ssl=True, token="abc"
        )
    m.start.assert_called_once()
    m.login.assert_not_called()
    m.closeUser.assert_called_once()
    m.stop.assert_called_once()


def test_credentials_login() -> None:
    m = _msgr()
    with patch.object(sm, "Messenger", return_value=m):
        msgr = start_messenger("example.com", "hod@example.com", "pw")
    assert msgr is m
    m.login.assert_called_once_with("hod@example.com", "pw")


def test_credentials_missing() -> None:
    m = _msgr()
    with patch.object(sm, "Messenger", return_value=m):
        with raises(APSASAuthenticationException):
            start_messenger("example.com")
    m.stop.assert_called_once()
