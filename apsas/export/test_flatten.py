# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from apsas.export.flatten import filter_by_selection, flatten_grading_groups


def _g(gid, nsubs, created, semester="FA24"):
    return {
        "id": gid,
        "createdAt": created,
        "semesterCode": semester,
        "subs": [{"id": gid * 100 + k} for k in range(nsubs)],
    }


def _lecturer(lid, *groups, name="Lecturer"):
    return {
        "lecturer_id": lid,
        "lecturer_name": name,
        "lecturer_code": f"L{lid}",
        "groups": list(groups),
    }


def _hierarchy():
    return [
        {
            "course_id": 1,
            "course_name": "Programming Fundamentals",
            "course_code": "PRF192",
            "templates": [
                {
                    "template_id": 10,
                    "template_name": "Lab 1",
                    "lecturers": [
                        _lecturer(
                            5,
                            _g(1, 3, "2024-01-01T00:00:00"),
                            _g(2, 2, "2024-02-01T00:00:00"),
                        ),
                        _lecturer(6, _g(3, 1, "2024-01-15T00:00:00")),
                    ],
                },
                {
                    "template_id": 11,
                    "template_name": "Lab 2",
                    "lecturers": [_lecturer(5, _g(4, 4, None))],
                },
            ],
        },
        {
            "course_id": 2,
            "course_name": "Data Structures",
            "course_code": "CSD201",
            "templates": [
                {
                    "template_id": 20,
                    "template_name": "Exam",
                    "lecturers": [
                        _lecturer(7, _g(5, 2, "2024-03-01T00:00:00", semester=None))
                    ],
                }
            ],
        },
    ]


def test_merge_same_course_template_lecturer() -> None:
    rows = flatten_grading_groups(_hierarchy())
    row = rows[0]
    assert row["submission_count"] == 5
    assert sorted(row["group_ids"]) == [1, 2]
    assert row["id"] == 2
    assert row["group"]["createdAt"] == "2024-02-01T00:00:00"
    assert row["course_code"] == "PRF192"
    assert row["template_name"] == "Lab 1"
    assert row["lecturer_names"] == ["Lecturer"]
    assert row["lecturer_codes"] == ["L5"]
    assert row["semester_code"] == "FA24"


def test_merge_keeps_first_on_equal_or_missing_dates() -> None:
    h = _hierarchy()
    lec = h[0]["templates"][0]["lecturers"][0]
    lec["groups"] = [_g(1, 1, None), _g(2, 1, None)]
    assert flatten_grading_groups(h)[0]["id"] == 1
    lec["groups"] = [_g(1, 1, "2024-01-01"), _g(2, 1, "2024-01-01")]
    assert flatten_grading_groups(h)[0]["id"] == 1
    lec["groups"] = [_g(1, 1, None), _g(2, 1, "2024-01-01")]
    assert flatten_grading_groups(h)[0]["id"] == 2


def test_row_invariants() -> None:
    for row in flatten_grading_groups(_hierarchy()):
        assert row["id"] in row["group_ids"]
        assert row["group"]["id"] == row["id"]


def test_missing_semester_dropped() -> None:
    rows = flatten_grading_groups(_hierarchy())
    assert [r["id"] for r in rows] == [2, 3, 4]
    assert all(5 not in r["group_ids"] for r in rows)


def test_flatten_empty() -> None:
    assert flatten_grading_groups([]) == []


def test_filter_prunes_empty_nodes() -> None:
    h = _hierarchy()
    rows = flatten_grading_groups(h)
    filtered = filter_by_selection([rows[1]], h)
    assert len(filtered) == 1
    assert len(filtered[0]["templates"]) == 1
    lecturers = filtered[0]["templates"][0]["lecturers"]
    assert [lec["lecturer_id"] for lec in lecturers] == [6]
    # input untouched
    assert len(h[0]["templates"][0]["lecturers"]) == 2


def test_filter_nothing_selected() -> None:
    assert filter_by_selection([], _hierarchy()) == []


def test_selection_inverse_law() -> None:
    h = _hierarchy()
    rows = flatten_grading_groups(h)
    for selection in ([rows[0]], [rows[2]], [rows[0], rows[2]], rows):
        assert flatten_grading_groups(filter_by_selection(selection, h)) == selection
