# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

import functools

from apsas.messenger import Messenger, BaseMessenger
from apsas.apsas_exceptions import APSASAuthenticationException


def start_messenger(
    server=None, email=None, password=None, *, token=None, proxy=None, verify_ssl=True
):
    """Start a messenger and make sure it has a token.

    Args:
        server (str/None): API root, or None for the default.
        email (str/None): account to log in with, unless we have a token.
        password (str/None): its password.

    Keyword Args:
        token (str/None): an existing bearer token; if given, no login.
        proxy (str/None): root URL of the file proxy.
        verify_ssl (bool): check SSL certificates.

    Returns:
        Messenger: started and ready to use.

    Raises:
        APSASAuthenticationException: no token and no way to get one,
            or the login failed.
    """
    msgr = Messenger(server, proxy=proxy, verify_ssl=verify_ssl, token=token)
    msgr.start()
    if token:
        return msgr
    if not email or not password:
        msgr.stop()
        raise APSASAuthenticationException(
            "Need either a token or an email and password to log in"
        )
    try:
        msgr.login(email, password)
    except Exception:
        msgr.stop()
        raise
    return msgr


def with_export_messenger(f):
    """Decorator for flexible credentials or open messenger.

    The decorated function takes a keyword argument ``msgr``: either an
    existing Messenger, which is used as is, or a tuple (or dict) of
    arguments for :func:`start_messenger`, in which case a messenger is
    started for the call and closed afterwards.

    Arguments:
        f (function): function to be decorated.

    Returns:
        function: the original wrapped with messenger handling.
    """

    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        # if we have a messenger, nothing special, just call function
        msgr = kwargs.get("msgr")
        if isinstance(msgr, BaseMessenger):
            return f(*args, **kwargs)

        # if not, we assume its appropriate args to make a messenger
        credentials = kwargs.pop("msgr")
        if isinstance(credentials, dict):
            msgr = start_messenger(**credentials)
        else:
            msgr = start_messenger(*credentials)
        kwargs["msgr"] = msgr
        try:
            return f(*args, **kwargs)
        finally:
            msgr.closeUser()
            msgr.stop()

    return wrapped
