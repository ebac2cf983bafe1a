# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Exceptions for the APSAS export tools.

Serious exceptions are for unexpected things that we probably cannot
sanely or safely recover from.  Benign are for signaling expected (or
at least not unexpected) situations.
"""


class APSASException(Exception):
    """Catch-all parent of all APSAS-related exceptions."""

    pass


class APSASSeriousException(APSASException):
    """Serious or unexpected problems that are generally not recoverable."""

    pass


class APSASBenignException(APSASException):
    """A not-unexpected situation, often signaling an error condition."""

    pass


class APSASAPIException(APSASBenignException):
    """The server answered, but not in the shape we expected."""

    pass


class APSASConnectionError(APSASBenignException):
    pass


class APSASAuthenticationException(APSASBenignException):
    """You are not authenticated, with precisely that as the default message."""

    def __init__(self, msg=None):
        if not msg:
            msg = "You are not authenticated."
        super().__init__(msg)


class APSASNoSuchObject(APSASBenignException):
    """The server has no such grading group, template, paper, etc."""

    pass


class APSASConfigError(APSASBenignException, ValueError):
    """A configuration value is missing or malformed."""

    pass
