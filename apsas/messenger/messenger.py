# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

"""Backend bits 'n bobs to talk to an APSAS server."""

from __future__ import annotations

import logging
from typing import Any

import requests

from apsas.common import Default_Proxy_Port
from apsas.apsas_exceptions import APSASConnectionError, APSASSeriousException
from .base_messenger import BaseMessenger


log = logging.getLogger("messenger")

FileProxyPath = "/api/file-proxy"


class Messenger(BaseMessenger):
    """Handle communication with an APSAS server.

    Binary files (submissions, template attachments) are never fetched
    directly: they go through a file proxy, see :meth:`get_file`.

    Lists of grading groups and submissions are cached per messenger;
    :meth:`delete_grading_group` and :meth:`invalidate` drop the cache.
    """

    def __init__(
        self,
        server: str | None = None,
        *,
        proxy: str | None = None,
        **kwargs,
    ) -> None:
        """Initialize a new Messenger.

        Args:
            server: URL of the API root, see :class:`BaseMessenger`.

        Keyword Args:
            proxy: root URL of the file proxy, defaults to localhost on
                the default proxy port.
            **kwargs: passed to :class:`BaseMessenger`.
        """
        super().__init__(server, **kwargs)
        if not proxy:
            proxy = f"http://127.0.0.1:{Default_Proxy_Port}"
        self.proxy = proxy.strip().rstrip("/")
        self._cache: dict[tuple, Any] = {}

    def invalidate(self, *kinds: str) -> None:
        """Forget cached lists, either of the given kinds or everything.

        Args:
            kinds: e.g., ``"grading_groups"``, ``"submissions"``.  If
                omitted, all cached lists are dropped.
        """
        if not kinds:
            self._cache.clear()
            return
        for key in list(self._cache.keys()):
            if key[0] in kinds:
                del self._cache[key]

    def _cached_result(self, key: tuple, url: str, **kwargs) -> Any:
        if key not in self._cache:
            self._cache[key] = self._get_result(url, **kwargs)
        else:
            log.debug("using cached %s", key)
        return self._cache[key]

    @staticmethod
    def _items(result: Any) -> list[dict[str, Any]]:
        """Paginated results carry their records in ``items``."""
        if isinstance(result, dict):
            return result.get("items") or []
        return result or []

    # ------------------------
    # Grading groups and submissions

    def list_grading_groups(
        self, lecturer_id: int | None = None
    ) -> list[dict[str, Any]]:
        """All grading groups, or just those of one lecturer."""
        params = {} if lecturer_id is None else {"lecturerId": lecturer_id}
        return self._cached_result(
            ("grading_groups", lecturer_id), "/GradingGroup/list", params=params
        )

    def delete_grading_group(self, group_id: int) -> None:
        """Delete a grading group on the server.

        On success, cached grading groups and submissions are dropped
        because the server may have moved submissions around.

        Raises:
            APSASAuthenticationException: not allowed.
            APSASNoSuchObject: no such grading group.
            APSASSeriousException: something else unexpected.
        """
        with self.SRmutex:
            try:
                response = self.delete_auth(f"/GradingGroup/{group_id}")
                response.raise_for_status()
            except requests.HTTPError as e:
                self._raise_for_http_error(response, e)
            except requests.RequestException as err:
                raise APSASConnectionError(err) from None
        log.info("deleted grading group %s", group_id)
        self.invalidate("grading_groups", "submissions")

    def list_submissions(
        self, grading_group_id: int | None = None
    ) -> list[dict[str, Any]]:
        params = {}
        if grading_group_id is not None:
            params["gradingGroupId"] = grading_group_id
        return self._cached_result(
            ("submissions", grading_group_id), "/Submission/list", params=params
        )

    # ------------------------
    # Assessment templates, papers, questions, rubrics

    def list_assessment_templates(
        self, page_number: int = 1, page_size: int = 1000
    ) -> list[dict[str, Any]]:
        return self._items(
            self._cached_result(
                ("templates", page_number, page_size),
                "/AssessmentTemplate/list",
                params={"pageNumber": page_number, "pageSize": page_size},
            )
        )

    def list_assessment_papers(
        self, template_id: int, page_number: int = 1, page_size: int = 100
    ) -> list[dict[str, Any]]:
        result = self._get_result(
            "/AssessmentPaper/list",
            params={
                "assessmentTemplateId": template_id,
                "pageNumber": page_number,
                "pageSize": page_size,
            },
        )
        return self._items(result)

    def list_assessment_questions(
        self, paper_id: int, page_number: int = 1, page_size: int = 100
    ) -> list[dict[str, Any]]:
        result = self._get_result(
            "/AssessmentQuestion/list",
            params={
                "assessmentPaperId": paper_id,
                "pageNumber": page_number,
                "pageSize": page_size,
            },
        )
        return self._items(result)

    def list_rubric_items(self, question_id: int) -> list[dict[str, Any]]:
        return self._items(self._get_result(f"/RubricItem/question/{question_id}"))

    def list_template_files(self, template_id: int) -> list[dict[str, Any]]:
        """Files attached to a template, each with ``name`` and ``fileUrl``."""
        return self._items(self._get_result(f"/AssessmentFile/template/{template_id}"))

    # ------------------------
    # Grading results

    def list_grading_sessions(
        self, submission_id: int, page_number: int = 1, page_size: int = 100
    ) -> list[dict[str, Any]]:
        """Grading sessions of a submission, each with ``status`` and ``createdAt``."""
        result = self._get_result(
            "/GradingSession/page",
            params={
                "submissionId": submission_id,
                "pageNumber": page_number,
                "pageSize": page_size,
            },
        )
        return self._items(result)

    def list_grade_items(
        self, session_id: int, page_number: int = 1, page_size: int = 100
    ) -> list[dict[str, Any]]:
        """Per-rubric scores given in one grading session."""
        result = self._get_result(
            "/GradeItem/page",
            params={
                "gradingSessionId": session_id,
                "pageNumber": page_number,
                "pageSize": page_size,
            },
        )
        return self._items(result)

    # ------------------------
    # Course structure

    def list_course_elements(
        self, page_number: int = 1, page_size: int = 1000
    ) -> list[dict[str, Any]]:
        return self._items(
            self._cached_result(
                ("course_elements", page_number, page_size),
                "/CourseElements",
                params={"pageNumber": page_number, "pageSize": page_size},
            )
        )

    def list_semesters(
        self, page_number: int = 1, page_size: int = 1000
    ) -> list[dict[str, Any]]:
        return self._items(
            self._cached_result(
                ("semesters", page_number, page_size),
                "/Semester",
                params={"pageNumber": page_number, "pageSize": page_size},
            )
        )

    # ------------------------
    # Files

    def get_file(self, url: str) -> requests.Response:
        """Fetch a remote file through the file proxy.

        Args:
            url: the remote URL, as stored on the server.

        Returns:
            The response from the proxy.  The caller must check
            ``ok``: a non-OK status is not an exception here, because
            callers usually want to write a placeholder instead.

        Raises:
            APSASConnectionError: could not reach the proxy at all.
        """
        if not self.session:
            raise APSASSeriousException("Messenger is not started")
        try:
            return self.session.get(
                self.proxy + FileProxyPath,
                params={"url": url},
                timeout=self.default_timeout,
            )
        except requests.RequestException as err:
            raise APSASConnectionError(f"Cannot reach file proxy: {err}") from None


__all__ = ["Messenger", "FileProxyPath"]
