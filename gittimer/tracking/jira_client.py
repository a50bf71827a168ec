"""Async Jira REST client for issue lookup and worklog creation."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from gittimer.core.config import JiraCredentials
from gittimer.tracking.errors import (
    AuthenticationError,
    NetworkError,
    TicketNotFoundError,
    TrackerAPIError,
)
from gittimer.tracking.models import TicketInfo

logger = logging.getLogger(__name__)

API_PREFIX = "/rest/api/3"


def to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text in the Atlassian document format required by API v3."""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": text}]}
        ],
    }


class JiraClient:
    """Thin async wrapper around the two Jira endpoints gittimer needs."""

    def __init__(
        self,
        credentials: JiraCredentials,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=f"{credentials.base_url}{API_PREFIX}",
            auth=(credentials.email, credentials.api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> JiraClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def get_issue(self, ticket_key: str) -> TicketInfo:
        """Fetch summary, status and project of an issue.

        Raises:
            TicketNotFoundError: The issue does not exist (404)
            AuthenticationError: Credentials were rejected (401)
            NetworkError: Jira could not be reached
            TrackerAPIError: Any other error status
        """
        response = await self._request(
            "GET",
            f"/issue/{ticket_key}",
            ticket_key=ticket_key,
            params={"fields": "summary,status,project"},
        )
        data = response.json()
        fields = data.get("fields") or {}
        project = fields.get("project") or {}
        status = fields.get("status") or {}
        key = data.get("key", ticket_key)
        return TicketInfo(
            ticket_id=key,
            project_key=project.get("key") or key.split("-", 1)[0],
            summary=fields.get("summary") or "",
            status=status.get("name") or "",
        )

    async def add_worklog(self, ticket_key: str, minutes: int, comment: str) -> dict[str, Any]:
        """Create a worklog on an issue and return Jira's JSON response."""
        payload = {"timeSpentSeconds": minutes * 60, "comment": to_adf(comment)}
        response = await self._request(
            "POST", f"/issue/{ticket_key}/worklog", ticket_key=ticket_key, json=payload
        )
        logger.info(f"Jira worklog created for {ticket_key}: {minutes}m")
        return response.json() if response.content else {}

    async def _request(
        self, method: str, path: str, ticket_key: Optional[str] = None, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Jira request failed: {method} {path}: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("Jira rejected the configured credentials (401)")
        if response.status_code == 404 and ticket_key:
            raise TicketNotFoundError(ticket_key)
        if response.is_error:
            raise TrackerAPIError(
                f"Jira {method} {path} failed with {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response
