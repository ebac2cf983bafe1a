# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Settings for the APSAS export tools.

Settings come from a TOML file, by default ``apsas.toml`` in the
current directory or wherever ``APSAS_CONFIG`` points.  Environment
variables override the file, and command-line flags override both.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Mapping

if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib
import tomlkit

from apsas.common import Default_Server, Default_Proxy_Port
from apsas.apsas_exceptions import APSASConfigError


log = logging.getLogger("config")

ConfigFilename = "apsas.toml"

DefaultSettings: dict[str, Any] = {
    "server": Default_Server,
    "proxy": f"http://127.0.0.1:{Default_Proxy_Port}",
    "verify_ssl": True,
    "download_delay": 0.3,
    "template_page_size": 1000,
    "page_size": 100,
    "outdir": ".",
    "LogLevel": "info",
}

# environment variable: setting name
EnvironmentSettings = {
    "APSAS_SERVER": "server",
    "APSAS_PROXY": "proxy",
    "APSAS_TOKEN": "token",
    "APSAS_EMAIL": "email",
    "APSAS_PASSWORD": "password",
}

LogLevels = ("debug", "info", "warning", "error", "critical")


def validate_config(cfg: Mapping[str, Any]) -> None:
    """Check the types and ranges of settings.

    Raises:
        APSASConfigError: a setting is malformed; this is also a
            ``ValueError``.
    """
    if not isinstance(cfg.get("verify_ssl"), bool):
        raise APSASConfigError(
            f"verify_ssl must be true or false: {cfg.get('verify_ssl')!r}"
        )
    delay = cfg.get("download_delay")
    if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
        raise APSASConfigError(
            f"download_delay must be a non-negative number: {delay!r}"
        )
    for key in ("template_page_size", "page_size"):
        n = cfg.get(key)
        if isinstance(n, bool) or not isinstance(n, int) or n < 1:
            raise APSASConfigError(f"{key} must be a positive integer: {n!r}")
    for key in ("server", "proxy", "outdir"):
        if not isinstance(cfg.get(key), str) or not cfg[key]:
            raise APSASConfigError(
                f"{key} must be a non-empty string: {cfg.get(key)!r}"
            )
    if str(cfg.get("LogLevel")).lower() not in LogLevels:
        raise APSASConfigError(
            f"LogLevel must be one of {', '.join(LogLevels)}: {cfg.get('LogLevel')!r}"
        )


def load_config(
    fname: Path | str | None = None, *, environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Read settings, filling in defaults and environment overrides.

    Args:
        fname: a TOML file.  If omitted, use ``APSAS_CONFIG`` or else
            ``apsas.toml`` in the current directory, and if that does
            not exist, just the defaults.

    Keyword Args:
        environ: environment variables, defaults to ``os.environ``.

    Returns:
        dict of settings.  May also contain ``token``, ``email`` and
        ``password`` when set in the environment.

    Raises:
        FileNotFoundError: an explicitly named file is missing.
        APSASConfigError: invalid TOML or bad values.
    """
    if environ is None:
        environ = os.environ
    explicit = fname is not None or bool(environ.get("APSAS_CONFIG"))
    if fname is None:
        fname = environ.get("APSAS_CONFIG") or ConfigFilename
    fname = Path(fname)

    cfg = dict(DefaultSettings)
    try:
        with open(fname, "rb") as f:
            cfg.update(tomllib.load(f))
        log.debug("settings loaded from %s", fname)
    except FileNotFoundError:
        if explicit:
            raise
        log.debug("no %s, using default settings", fname)
    except tomllib.TOMLDecodeError as e:
        raise APSASConfigError(f"Cannot parse {fname}: {e}") from None

    for var, key in EnvironmentSettings.items():
        if environ.get(var):
            cfg[key] = environ[var]
    validate_config(cfg)
    return cfg


def create_default_config(
    dur: Path | str = ".", *, server: str | None = None, proxy: str | None = None
) -> Path:
    """Write a commented settings file with default values.

    Args:
        dur: where to put the file.

    Keyword Args:
        server: API root URL, if not the default.
        proxy: file proxy root URL, if not the default.

    Returns:
        The path of the new file.

    Raises:
        FileExistsError: file is already there.
    """
    fname = Path(dur) / ConfigFilename
    if fname.exists():
        raise FileExistsError(f"Config already exists in {fname}")
    doc = tomlkit.document()
    doc.add(tomlkit.comment("Settings for apsas-export"))
    doc.add(tomlkit.nl())
    doc.add("server", server or DefaultSettings["server"])
    doc.add("proxy", proxy or DefaultSettings["proxy"])
    doc.add("verify_ssl", DefaultSettings["verify_ssl"])
    doc.add(tomlkit.nl())
    doc.add(tomlkit.comment("seconds between submission downloads"))
    doc.add("download_delay", DefaultSettings["download_delay"])
    doc.add("template_page_size", DefaultSettings["template_page_size"])
    doc.add("page_size", DefaultSettings["page_size"])
    doc.add("outdir", DefaultSettings["outdir"])
    doc.add("LogLevel", DefaultSettings["LogLevel"])
    with open(fname, "w") as f:
        tomlkit.dump(doc, f)
    return fname
