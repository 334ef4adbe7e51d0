from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from catalog_sync.config import OktaConfig


class FakeCollection:
    """Async iterable standing in for a paginated Okta collection."""

    def __init__(self, items: list[Any], fail_after: Optional[int] = None) -> None:
        self.items = items
        self.fail_after = fail_after

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, item in enumerate(self.items):
            if self.fail_after is not None and index >= self.fail_after:
                raise ConnectionError("connection reset by peer")
            yield item


@dataclass
class FakeUser:
    id: str
    profile: dict[str, Any] = field(default_factory=dict)


@dataclass
class FakeGroup:
    id: str
    profile: dict[str, Any] = field(default_factory=dict)
    users: list[FakeUser] = field(default_factory=list)
    fail_users_after: Optional[int] = None

    def list_users(self) -> FakeCollection:
        return FakeCollection(self.users, fail_after=self.fail_users_after)


class FakeOktaClient:
    """Answers list_groups like Okta: ``q`` is a case-insensitive name prefix."""

    def __init__(self, groups: list[FakeGroup]) -> None:
        self.groups = groups
        self.queries: list[dict] = []
        self.closed = False

    def list_groups(self, query_parameters: Optional[dict] = None) -> FakeCollection:
        query_parameters = dict(query_parameters or {})
        self.queries.append(query_parameters)
        q = query_parameters.get("q")
        if q is None:
            return FakeCollection(self.groups)
        return FakeCollection([
            g for g in self.groups
            if (g.profile.get("name") or "").lower().startswith(q.lower())
        ])

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def okta_config() -> OktaConfig:
    return OktaConfig(org_url="https://okta", token="secret")


@pytest.fixture
def everyone_group() -> FakeGroup:
    return FakeGroup(
        id="asdfwefwefwef",
        profile={
            "name": "Everyone@the-company",
            "description": "Everyone in the company",
        },
        users=[FakeUser(id="asdfwefwefwef", profile={"email": "fname@domain.com"})],
    )
