"""Okta REST client: groups and group members with lazy async pagination."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Generic, Optional, TypeVar

import requests

logger = logging.getLogger("catalog_sync.okta")

T = TypeVar("T")

MAX_RATE_LIMIT_ATTEMPTS = 5
MAX_RATE_LIMIT_WAIT_S = 300


class OktaApiError(RuntimeError):
    """Okta returned something that is not a usable page of records."""


@dataclass
class OktaUser:
    id: str
    profile: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class OktaGroup:
    id: str
    profile: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)
    _client: Optional["OktaClient"] = field(default=None, repr=False, compare=False)

    def list_users(self) -> "OktaCollection[OktaUser]":
        if self._client is None:
            raise RuntimeError(f"Group {self.id} is not bound to a client")
        return self._client.list_group_users(self.id)


class OktaCollection(Generic[T]):
    """Async iterable over every record of a paginated list endpoint.

    Pages are requested one at a time, only once the previous page has been
    consumed, following the ``Link: <...>; rel="next"`` header. Each
    ``async for`` restarts from the first page.
    """

    def __init__(
        self,
        client: "OktaClient",
        path: str,
        params: Optional[dict[str, Any]],
        factory: Callable[[dict], T],
    ) -> None:
        self._client = client
        self._path = path
        self._params = dict(params or {})
        self._factory = factory

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        url: Optional[str] = self._client.url(self._path)
        params: Optional[dict[str, Any]] = dict(self._params)
        params.setdefault("limit", self._client.page_limit)

        while url:
            items, url = await asyncio.to_thread(self._client.get_page, url, params)
            # The next link already carries the query string
            params = None
            for item in items:
                yield self._factory(item)


class OktaClient:
    """Thin wrapper around a requests.Session authenticated with an API token."""

    def __init__(
        self,
        org_url: str,
        token: str,
        page_limit: int = 200,
        timeout: float = 30.0,
    ) -> None:
        self.org_url = org_url.rstrip("/")
        self.page_limit = page_limit
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"SSWS {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def close(self) -> None:
        self._session.close()

    def url(self, path: str) -> str:
        return f"{self.org_url}/api/v1/{path.lstrip('/')}"

    def list_groups(
        self, query_parameters: Optional[dict[str, Any]] = None
    ) -> OktaCollection[OktaGroup]:
        """List groups; ``{"q": name}`` narrows the query to groups whose name
        starts with ``name`` (Okta matches ``q`` as a prefix, not exactly).
        """
        return OktaCollection(self, "groups", query_parameters, self._group_from_json)

    def list_group_users(self, group_id: str) -> OktaCollection[OktaUser]:
        return OktaCollection(self, f"groups/{group_id}/users", None, _user_from_json)

    def get_page(
        self, url: str, params: Optional[dict[str, Any]] = None
    ) -> tuple[list[dict], Optional[str]]:
        """Fetch one page. Returns (records, next page url or None)."""
        attempt = 0
        while True:
            resp = self._session.get(url, params=params, timeout=self.timeout)
            if resp.status_code != 429:
                break
            attempt += 1
            if attempt > MAX_RATE_LIMIT_ATTEMPTS:
                raise OktaApiError(f"Okta rate limit exceeded after retries: {url}")
            reset = int(resp.headers.get("X-Rate-Limit-Reset", "0"))
            wait = min(max(reset - int(time.time()), 1), MAX_RATE_LIMIT_WAIT_S)
            logger.warning("Okta rate limit hit, waiting %ds (attempt %d)", wait, attempt)
            time.sleep(wait)

        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise OktaApiError(
                f"Expected a list from {url}, got {type(data).__name__}"
            )
        for item in data:
            if not isinstance(item, dict) or "id" not in item:
                raise OktaApiError(f"Record without an id in page from {url}")

        next_url = resp.links.get("next", {}).get("url")
        return data, next_url

    def _group_from_json(self, data: dict) -> OktaGroup:
        return OktaGroup(
            id=data["id"],
            profile=data.get("profile") or {},
            raw=data,
            _client=self,
        )


def _user_from_json(data: dict) -> OktaUser:
    return OktaUser(id=data["id"], profile=data.get("profile") or {}, raw=data)
