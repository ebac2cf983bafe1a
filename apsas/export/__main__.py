#!/usr/bin/env python3

# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""APSAS script for bulk export of grading groups.

## Overview

  1. Use the `list` command to see the grading groups, merged by
     course, template and lecturer, one row each.

  2. Use the `csv` command to save that table as a spreadsheet.

  3. Use the `download` command to build one zip file with the
     requirement documents and all student submissions, per course
     and semester.  Pass `--group` to restrict to the rows containing
     some grading groups.

  4. Use the `grade-report` command to save the grades of one
     grading group as an Excel workbook, one row per student and
     rubric criterion.

Submission files are fetched through the file proxy: run
`apsas-export proxy` in another terminal first, or point `--proxy`
at a running one.

## Settings

Settings are read from `apsas.toml` (see `init-config`), then from the
environment variables APSAS_SERVER, APSAS_PROXY, APSAS_TOKEN,
APSAS_EMAIL and APSAS_PASSWORD, and finally from the command line.
"""

__copyright__ = "Copyright (C) 2024-2025 The APSAS Developers"
__credits__ = "The APSAS Developers"
__license__ = "AGPL-3.0-or-later"

import argparse
import logging
import sys

from stdiomask import getpass

from apsas import __version__
from apsas import Default_Proxy_Port
from apsas.config import load_config, create_default_config
from apsas.export import CSVFilename
from apsas.export import start_messenger
from apsas.export import load_hierarchy
from apsas.export import flatten_grading_groups
from apsas.export import download_all, download_selected
from apsas.export import write_flat_csv, format_flat_table
from apsas.export import export_grade_report
from apsas.export.messages import ConsoleMessages


def get_parser():
    parser = argparse.ArgumentParser(
        description=__doc__.split("\n")[0],
        epilog="\n".join(__doc__.split("\n")[1:]),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version="%(prog)s " + __version__
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="""
            Settings file, defaults to "apsas.toml" in the current
            directory.  Also checks the environment variable APSAS_CONFIG.
        """,
    )

    sub = parser.add_subparsers(dest="command")

    spList = sub.add_parser(
        "list",
        help="Table of grading groups",
        description="List grading groups merged by course, template and lecturer.",
    )
    spCSV = sub.add_parser(
        "csv",
        help="CSV file of grading groups",
        description=f'Save the table of grading groups as "{CSVFilename}".',
    )
    spCSV.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        default=CSVFilename,
        help=f'Where to write the csv, defaults to "{CSVFilename}".',
    )
    spDownload = sub.add_parser(
        "download",
        help="Zip of requirements and submissions",
        description="""
            Build one zip file holding, per course and semester, the
            requirement documents of each assessment template and every
            student submission.
        """,
    )
    spDownload.add_argument(
        "--group",
        metavar="ID",
        type=int,
        nargs="+",
        help="""
            Only the table rows containing these grading groups.  A row
            merges several grading groups: all of them are included.
        """,
    )
    spDownload.add_argument(
        "-d",
        "--outdir",
        metavar="DIR",
        help="Where to write the zip file, defaults to the setting 'outdir'.",
    )
    spReport = sub.add_parser(
        "grade-report",
        help="Excel grade report of a grading group",
        description="""
            Save the grades of one grading group as an Excel workbook,
            using each student's most recent grading session.
        """,
    )
    spReport.add_argument("group_id", type=int, metavar="ID")
    spReport.add_argument(
        "-d",
        "--outdir",
        metavar="DIR",
        help="Where to write the workbook, defaults to the setting 'outdir'.",
    )
    spDelete = sub.add_parser(
        "delete-group",
        help="Delete a grading group",
        description="Delete a grading group on the server.",
    )
    spDelete.add_argument("group_id", type=int, metavar="ID")
    spProxy = sub.add_parser(
        "proxy",
        help="Run the file proxy",
        description="Serve /api/file-proxy until interrupted.",
    )
    spProxy.add_argument(
        "--port",
        type=int,
        default=Default_Proxy_Port,
        help=f"Port to listen on, defaults to {Default_Proxy_Port}.",
    )
    spProxy.add_argument(
        "--host",
        default="127.0.0.1",
        help="Address to bind, defaults to 127.0.0.1.",
    )
    spInit = sub.add_parser(
        "init-config",
        help="Write a default settings file",
        description="Write a commented apsas.toml in the current directory.",
    )

    for x in (spList, spCSV, spDownload, spDelete, spReport, spInit):
        x.add_argument(
            "-s",
            "--server",
            metavar="URL",
            action="store",
            help="""
                Root of the APSAS API.
                Also checks the environment variable APSAS_SERVER if omitted.
            """,
        )
    for x in (spList, spCSV, spDownload, spInit):
        x.add_argument(
            "--proxy",
            metavar="URL",
            help="""
                Root of the file proxy.
                Also checks the environment variable APSAS_PROXY if omitted.
            """,
        )
    for x in (spList, spCSV, spDownload, spDelete, spReport):
        x.add_argument(
            "--token",
            help="Bearer token, also checks the environment variable APSAS_TOKEN.",
        )
        x.add_argument(
            "-u",
            "--email",
            help="Account to log in with, also checks APSAS_EMAIL.",
        )
        x.add_argument(
            "-w",
            "--password",
            help="Password, also checks APSAS_PASSWORD.",
        )
    for x in (spList, spCSV, spDownload):
        x.add_argument("--semester", metavar="CODE", help='e.g., "FA24", or "all".')
        x.add_argument("--course", metavar="ID", type=int, help="Only this course.")
        x.add_argument(
            "--template", metavar="ID", type=int, help="Only this assessment template."
        )
        x.add_argument("--lecturer", metavar="ID", type=int, help="Only this lecturer.")

    return parser


def _credentials(args, cfg):
    token = getattr(args, "token", None) or cfg.get("token")
    email = getattr(args, "email", None) or cfg.get("email")
    password = getattr(args, "password", None) or cfg.get("password")
    if not token:
        if not email:
            email = input("Email: ")
        if not password:
            password = getpass(f'Please enter the password for "{email}": ')
    return {
        "server": cfg["server"],
        "email": email,
        "password": password,
        "token": token,
        "proxy": cfg["proxy"],
        "verify_ssl": cfg["verify_ssl"],
    }


def main():
    parser = get_parser()
    args = parser.parse_args()

    cfg = load_config(args.config)
    for key in ("server", "proxy", "outdir"):
        if getattr(args, key, None):
            cfg[key] = getattr(args, key)

    # 5 is to keep debug/info lined up
    fmtstr = "%(asctime)s %(levelname)5s:%(name)s\t%(message)s"
    logging.basicConfig(format=fmtstr, datefmt="%b%d %H:%M:%S %Z")
    logging.getLogger().setLevel(cfg["LogLevel"].upper())

    if args.command == "init-config":
        fname = create_default_config(server=args.server, proxy=args.proxy)
        print(f"Wrote {fname}")
        return
    if args.command == "proxy":
        from apsas.proxy import launch

        launch(host=args.host, port=args.port)
        return
    if args.command is None:
        parser.print_help()
        return

    msgr = start_messenger(**_credentials(args, cfg))
    try:
        if args.command == "delete-group":
            msgr.delete_grading_group(args.group_id)
            print(f"Deleted grading group {args.group_id}")
            return

        if args.command == "grade-report":
            groups = msgr.list_grading_groups()
            group = next((g for g in groups if g.get("id") == args.group_id), None)
            if group is None:
                print(f"No grading group {args.group_id}")
                sys.exit(1)
            path = export_grade_report(
                group, ConsoleMessages(), msgr=msgr, outdir=cfg["outdir"], config=cfg
            )
            if path is None:
                sys.exit(1)
            return

        grouped = load_hierarchy(
            msgr=msgr,
            lecturer_id=args.lecturer,
            semester=args.semester,
            course_id=args.course,
            template_id=args.template,
            template_page_size=cfg["template_page_size"],
        )
        rows = flatten_grading_groups(grouped)
        if args.command == "list":
            print(format_flat_table(rows))
        elif args.command == "csv":
            write_flat_csv(rows, args.output)
            print(f'Wrote {len(rows)} rows to "{args.output}"')
        elif args.command == "download":
            kwargs = dict(msgr=msgr, outdir=cfg["outdir"], config=cfg, progress=True)
            messages = ConsoleMessages()
            if args.group:
                wanted = set(args.group)
                selected = [r for r in rows if wanted.intersection(r["group_ids"])]
                path = download_selected(selected, grouped, messages, **kwargs)
            else:
                path = download_all(grouped, messages, **kwargs)
            if path is None:
                sys.exit(1)
    finally:
        msgr.closeUser()
        msgr.stop()


if __name__ == "__main__":
    main()
