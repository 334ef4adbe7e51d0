"""Okta group provider: groups and their members as catalog Group entities."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from catalog_sync import naming
from catalog_sync.base_provider import BaseEntityProvider
from catalog_sync.config import ConfigurationError, OktaConfig
from catalog_sync.entities import build_group_entity, full_mutation
from catalog_sync.okta_client import OktaClient
from catalog_sync.providers.okta_common import build_client, build_default_annotations

logger = logging.getLogger("catalog_sync.okta_group")


class OktaGroupEntityProvider(BaseEntityProvider):
    """Provides Group entities from Okta.

    Each run() lists the configured groups (one ``q=<name>`` query per entry,
    in configured order) or every group when no filter is set, pages through
    each group's members and submits everything as one full mutation.
    Nothing is submitted when any page fails.

    Runs must not overlap on the same instance.
    """

    PROVIDER_NAME = "okta_group"

    @classmethod
    def from_config(
        cls,
        config: Union[OktaConfig, Mapping[str, Any]],
        naming_strategy: Optional[str] = None,
        user_naming_strategy: Optional[str] = None,
        groups: Optional[Sequence[str]] = None,
        client_factory: Callable[[OktaConfig], OktaClient] = build_client,
    ) -> "OktaGroupEntityProvider":
        if not isinstance(config, OktaConfig):
            config = OktaConfig.from_mapping(config)
        return cls(
            config,
            naming_strategy=naming_strategy or config.naming_strategy,
            user_naming_strategy=user_naming_strategy or config.user_naming_strategy,
            groups=groups,
            client_factory=client_factory,
        )

    def __init__(
        self,
        config: OktaConfig,
        naming_strategy: Optional[str] = None,
        user_naming_strategy: Optional[str] = None,
        groups: Optional[Sequence[str]] = None,
        client_factory: Callable[[OktaConfig], OktaClient] = build_client,
    ) -> None:
        if isinstance(groups, str):
            raise ConfigurationError("groups must be a list of group names")
        super().__init__()
        self.config = config
        self.org_url = config.org_url
        # An explicit list, even an empty one, overrides the configured filter
        self.groups = tuple(groups) if groups is not None else config.groups
        self._naming_strategy = naming.group_naming_strategy(naming_strategy)
        self._user_naming_strategy = naming.user_naming_strategy(user_naming_strategy)
        self._client_factory = client_factory

    def get_provider_name(self) -> str:
        return f"okta-group-{self.org_url}"

    async def run(self) -> int:
        connection = self._require_connection()
        location_key = self.get_provider_name()
        logger.info(
            "Providing okta group resources from okta: %s",
            self.org_url,
            extra={"provider": self.PROVIDER_NAME, "location_key": location_key},
        )

        client = self._client_factory(self.config)
        annotations = build_default_annotations(self.config)

        entities: list[dict[str, Any]] = []
        try:
            if self.groups is not None:
                for name in self.groups:
                    await self._list_groups(client, annotations, entities, {"q": name})
            else:
                await self._list_groups(client, annotations, entities)
        finally:
            client.close()

        self._warn_on_name_collisions(entities)

        await connection.apply_mutation(full_mutation(entities, location_key))
        logger.info(
            "Submitted %d group entities",
            len(entities),
            extra={
                "provider": self.PROVIDER_NAME,
                "location_key": location_key,
                "entities": len(entities),
            },
        )
        return len(entities)

    async def _list_groups(
        self,
        client: OktaClient,
        annotations: dict[str, str],
        entities: list[dict[str, Any]],
        query_parameters: Optional[dict[str, str]] = None,
    ) -> None:
        logger.debug("Listing okta groups with %s", query_parameters or "no filter")
        async for group in client.list_groups(query_parameters or {}):
            members: list[str] = []
            async for user in group.list_users():
                members.append(self._user_naming_strategy(user))

            profile = group.profile or {}
            entities.append(
                build_group_entity(
                    name=self._naming_strategy(group),
                    members=members,
                    title=profile.get("name"),
                    description=profile.get("description"),
                    annotations=annotations,
                )
            )

    @staticmethod
    def _warn_on_name_collisions(entities: list[dict[str, Any]]) -> None:
        counts = Counter(entity["metadata"]["name"] for entity in entities)
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            logger.warning(
                "Group naming produced duplicate entity names: %s",
                ", ".join(duplicates),
            )
