"""Async Productive (JSON:API) client for people, projects, services and time entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import httpx

from gittimer.core.config import ProductiveCredentials
from gittimer.tracking.errors import AuthenticationError, NetworkError, TrackerAPIError

logger = logging.getLogger(__name__)

JSON_API = "application/vnd.api+json"
HISTORY_PAGE_SIZE = 50


@dataclass(frozen=True)
class ProductivePerson:
    id: str
    name: str
    email: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class ProductiveProject:
    id: str
    name: str


@dataclass(frozen=True)
class ProductiveService:
    id: str
    name: str


def _person_from_resource(resource: dict[str, Any]) -> ProductivePerson:
    attributes = resource.get("attributes") or {}
    name = attributes.get("name") or " ".join(
        part for part in (attributes.get("first_name"), attributes.get("last_name")) if part
    )
    return ProductivePerson(
        id=str(resource["id"]),
        name=name or "Unknown",
        email=attributes.get("email"),
        active=attributes.get("deactivated_at") is None,
    )


def _named(resource: dict[str, Any]) -> tuple[str, str]:
    attributes = resource.get("attributes") or {}
    return str(resource["id"]), attributes.get("name") or f"#{resource['id']}"


class ProductiveClient:
    """Thin async wrapper around the Productive REST API."""

    def __init__(
        self,
        credentials: ProductiveCredentials,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=credentials.base_url,
            headers={
                "Content-Type": JSON_API,
                "Accept": JSON_API,
                "X-Auth-Token": credentials.api_token,
                "X-Organization-Id": credentials.organization_id,
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ProductiveClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def get_person(self, person_id: str) -> ProductivePerson:
        data = await self._get(f"/people/{person_id}")
        return _person_from_resource(data["data"])

    async def list_people(self) -> list[ProductivePerson]:
        data = await self._get("/people")
        return [_person_from_resource(item) for item in data.get("data", [])]

    async def get_authenticated_person(self, person_id: Optional[str] = None) -> ProductivePerson:
        """Return the configured person, or the first active person in the organization.

        Raises:
            TrackerAPIError: If the organization has no active people
        """
        if person_id:
            return await self.get_person(person_id)

        active = [person for person in await self.list_people() if person.active]
        if not active:
            raise TrackerAPIError("No active people found in Productive organization")
        person = active[0]
        logger.info(
            f"No Productive person configured, using first active person "
            f"{person.name} ({person.id})"
        )
        return person

    async def list_projects(self) -> list[ProductiveProject]:
        data = await self._get("/projects")
        return [ProductiveProject(*_named(item)) for item in data.get("data", [])]

    async def list_services(self) -> list[ProductiveService]:
        data = await self._get("/services")
        return [ProductiveService(*_named(item)) for item in data.get("data", [])]

    async def get_service(self, service_id: str) -> ProductiveService:
        data = await self._get(f"/services/{service_id}")
        return ProductiveService(*_named(data["data"]))

    async def recent_services(
        self, person_id: Optional[str] = None, project_id: Optional[str] = None
    ) -> list[ProductiveService]:
        """Services used by recent time entries, one item per entry.

        Duplicates are kept so callers can rank services by frequency.
        """
        params: dict[str, Any] = {"page[size]": HISTORY_PAGE_SIZE, "include": "service"}
        if person_id:
            params["filter[person_id]"] = person_id
        if project_id:
            params["filter[project_id]"] = project_id
        data = await self._get("/time_entries", params=params)

        included = {
            str(item["id"]): ProductiveService(*_named(item))
            for item in data.get("included", [])
            if item.get("type") == "services"
        }
        services = []
        for entry in data.get("data", []):
            relation = ((entry.get("relationships") or {}).get("service") or {}).get("data")
            if not relation:
                continue
            service_id = str(relation["id"])
            services.append(included.get(service_id, ProductiveService(service_id, f"#{service_id}")))
        return services

    async def create_time_entry(
        self,
        person_id: str,
        project_id: str,
        service_id: str,
        minutes: int,
        entry_date: date,
        note: str,
        jira_issue_id: Optional[str] = None,
        jira_organization: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create a time entry and return the created resource."""
        attributes: dict[str, Any] = {
            "date": entry_date.isoformat(),
            "time": minutes,
            "note": note,
            "track_method_id": 1,
            "overhead": False,
        }
        if jira_issue_id:
            attributes["jira_issue_id"] = jira_issue_id
            attributes["jira_organization"] = jira_organization
        payload = {
            "data": {
                "type": "time_entries",
                "attributes": attributes,
                "relationships": {
                    "person": {"data": {"type": "people", "id": person_id}},
                    "project": {"data": {"type": "projects", "id": project_id}},
                    "service": {"data": {"type": "services", "id": service_id}},
                    "organization": {
                        "data": {
                            "type": "organizations",
                            "id": self.credentials.organization_id,
                        }
                    },
                },
            }
        }
        data = await self._request("POST", "/time_entries", json=payload)
        entry = data.get("data") or {}
        logger.info(
            f"Productive time entry {entry.get('id')} created: {minutes}m "
            f"(project {project_id}, service {service_id})"
        )
        return entry

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Productive request failed: {method} {path}: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Productive rejected the configured credentials ({response.status_code})"
            )
        if response.is_error:
            raise TrackerAPIError(
                f"Productive {method} {path} failed with {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json() if response.content else {}
