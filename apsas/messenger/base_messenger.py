# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from __future__ import annotations

import logging
import threading
from typing import Any

import requests
import urllib3

from apsas.common import Default_Server
from apsas.apsas_exceptions import (
    APSASAPIException,
    APSASAuthenticationException,
    APSASConnectionError,
    APSASNoSuchObject,
    APSASSeriousException,
)


log = logging.getLogger("messenger")


class BaseMessenger:
    """Basic communication with an APSAS server.

    Handles the session, authentication and unwrapping of the server's
    response envelope; subclasses add the actual API calls.

    Instance Variables:
        token (str | None): the bearer token, once we have one.
    """

    def __init__(
        self,
        server: str | None = None,
        *,
        verify_ssl: bool = True,
        token: str | None = None,
    ) -> None:
        """Initialize a new BaseMessenger.

        Args:
            server: URL of the API root, such as
                ``"https://aspas-edu.site/api"``, or None for the default.
                If no scheme is given we assume ``https``.

        Keyword Args:
            verify_ssl: controls whether SSL certs are checked.
                This is passed through to the ``Session.verify`` parameter
                in the `requests` library.
            token: an existing bearer token, if the caller has one.

        Raises:
            APSASConnectionError: cannot parse the server URL.
        """
        if not server:
            server = Default_Server
        server = server.strip()
        if "://" not in server:
            server = f"https://{server}"
        try:
            parsed_url = urllib3.util.parse_url(server)
        except urllib3.exceptions.LocationParseError as e:
            raise APSASConnectionError(f'Cannot parse the URL "{server}"') from e
        if not parsed_url.host:
            raise APSASConnectionError(f'No host in the URL "{server}"')
        # remove any trailing slashes from the path
        while server.endswith("/"):
            server = server[:-1]
        self.base = server
        self.session: requests.Session | None = None
        self.token = token
        self.user: str | None = None
        # first number: connection timeout for each API call, second number
        # is read timeout: how long the server might spend executing the call
        self.default_timeout = (15, 90)
        self.SRmutex = threading.Lock()
        self.verify_ssl = verify_ssl
        if not self.verify_ssl:
            self._shutup_urllib3()

    def _shutup_urllib3(self) -> None:
        # If we use unverified ssl certificates we get lots of warnings,
        # so put in this to hide them.
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def server(self) -> str:
        return self.base

    def whoami(self) -> str | None:
        return self.user

    def _auth_headers(self) -> dict[str, str]:
        if not self.token:
            raise APSASAuthenticationException("Trying auth'd operation w/o token")
        return {"Authorization": f"Bearer {self.token}"}

    def get_raw(self, url: str, *args, **kwargs) -> requests.Response:
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.default_timeout
        assert self.session
        return self.session.get(self.base + url, *args, **kwargs)

    def get_auth(self, url: str, *args, **kwargs) -> requests.Response:
        """Perform a GET method on a URL with a token for authentication."""
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.default_timeout
        kwargs["headers"] = self._auth_headers()
        assert self.session
        return self.session.get(self.base + url, *args, **kwargs)

    def post_raw(self, url: str, *args, **kwargs) -> requests.Response:
        """Perform a POST method without tokens."""
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.default_timeout
        assert self.session
        return self.session.post(self.base + url, *args, **kwargs)

    def delete_auth(self, url: str, *args, **kwargs) -> requests.Response:
        """Perform a DELETE method on a URL with a token for authorization."""
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.default_timeout
        kwargs["headers"] = self._auth_headers()
        assert self.session
        return self.session.delete(self.base + url, *args, **kwargs)

    def _start_session(self) -> None:
        """Start the messenger session, low-level without any checks."""
        self.session = requests.Session()
        # TODO: not clear retries help: e.g., requests will not redo PUTs.
        self.session.mount(
            self.base.split("://")[0] + "://",
            requests.adapters.HTTPAdapter(max_retries=2),
        )
        self.session.verify = self.verify_ssl

    def start(self) -> None:
        """Start the messenger session."""
        if self.session:
            log.debug("already have a requests-session")
        else:
            log.debug("starting a new requests-session")
            self._start_session()

    def stop(self) -> None:
        """Stop the messenger."""
        if self.session:
            log.debug("stopping requests-session")
            self.session.close()
            self.session = None

    def isStarted(self) -> bool:
        return bool(self.session)

    @staticmethod
    def _unwrap(response: requests.Response) -> Any:
        """Extract the ``result`` from the server's response envelope.

        The server wraps everything as ``{statusCode, isSuccess,
        errorMessages, result}``.

        Raises:
            APSASAPIException: not JSON, or the envelope says we failed.
        """
        try:
            payload = response.json()
        except ValueError as e:
            raise APSASAPIException(f"Server response is not JSON: {e}") from None
        if not isinstance(payload, dict) or "result" not in payload:
            raise APSASAPIException(f"Unexpected response shape: {payload!r}")
        if payload.get("isSuccess") is False:
            msgs = payload.get("errorMessages") or ["unknown error"]
            raise APSASAPIException("; ".join(str(m) for m in msgs))
        return payload["result"]

    @staticmethod
    def _raise_for_http_error(response: requests.Response, e: Exception) -> None:
        """Convert an HTTP error into one of our exceptions; always raises."""
        if response.status_code in (401, 403):
            raise APSASAuthenticationException(response.reason) from None
        if response.status_code == 404:
            raise APSASNoSuchObject(response.reason) from None
        raise APSASSeriousException(f"Some other sort of error {e}") from None

    def _get_result(self, url: str, **kwargs) -> Any:
        """GET a URL with authentication and return the unwrapped result."""
        with self.SRmutex:
            try:
                response = self.get_auth(url, **kwargs)
                response.raise_for_status()
                return self._unwrap(response)
            except requests.HTTPError as e:
                self._raise_for_http_error(response, e)
            except requests.RequestException as err:
                raise APSASConnectionError(
                    f"Cannot connect to server {self.base}\n{err}"
                ) from None

    # ------------------------
    # Authentication stuff

    def login(self, email: str, password: str) -> None:
        """Get a bearer token from the server and keep it for later calls.

        Args:
            email: the account email.
            password: the password.

        Raises:
            APSASAuthenticationException: wrong password, account
                disabled, etc: check contents for details.
            APSASConnectionError: cannot reach the server, or timed out.
            APSASAPIException: the reply is not the JSON we expect.
            APSASSeriousException: something else unexpected.
        """
        with self.SRmutex:
            try:
                response = self.post_raw(
                    "/Auth/login", json={"email": email, "password": password}
                )
                response.raise_for_status()
                payload = response.json()
            except requests.HTTPError as e:
                if response.status_code in (400, 401):
                    raise APSASAuthenticationException(response.reason) from None
                raise APSASSeriousException(f"Some other sort of error {e}") from None
            except ValueError as e:
                raise APSASAPIException(f"Server response is not JSON: {e}") from None
            except requests.RequestException as err:
                raise APSASConnectionError(
                    f"Cannot connect to server {self.base}\n{err}\n\n"
                    "Please check details and try again."
                ) from None
        if not isinstance(payload, dict):
            raise APSASAPIException(f"Unexpected response shape: {payload!r}")
        # older deployments put the token at top-level
        token = None
        if isinstance(payload.get("result"), dict):
            token = payload["result"].get("token")
        token = token or payload.get("token")
        if not token:
            raise APSASAuthenticationException("Server did not give us a token")
        self.token = token
        self.user = email

    def closeUser(self) -> None:
        """Forget our token: the server keeps no session for us to close."""
        self.token = None
        self.user = None
