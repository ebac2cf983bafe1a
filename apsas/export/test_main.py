# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from pytest import raises

from apsas.export.__main__ import get_parser


def test_parse_download_groups() -> None:
    args = get_parser().parse_args(
        ["download", "--group", "12", "17", "--semester", "FA24", "--token", "t"]
    )
    assert args.command == "download"
    assert args.group == [12, 17]
    assert args.semester == "FA24"
    assert args.token == "t"
    assert args.course is None


def test_parse_delete_needs_id() -> None:
    args = get_parser().parse_args(["delete-group", "3"])
    assert args.group_id == 3
    with raises(SystemExit):
        get_parser().parse_args(["delete-group"])


def test_parse_proxy_port() -> None:
    args = get_parser().parse_args(["proxy", "--port", "4000"])
    assert args.port == 4000
    assert args.host == "127.0.0.1"


def test_csv_default_filename() -> None:
    args = get_parser().parse_args(["csv"])
    assert args.output == "grading_groups.csv"


def test_parse_grade_report() -> None:
    args = get_parser().parse_args(["grade-report", "7", "-d", "out", "-u", "me"])
    assert args.command == "grade-report"
    assert args.group_id == 7
    assert args.outdir == "out"
    assert args.email == "me"
