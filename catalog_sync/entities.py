"""Catalog entity shapes produced by providers and consumed by sinks.

Entities are plain dicts in the catalog's ``apiVersion/kind/metadata/spec``
layout so they serialise unchanged into the database and onto stdout.

A full mutation looks like::

    {"type": "full",
     "entities": [{"entity": {...}, "locationKey": "okta-group-https://..."}]}
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

API_VERSION = "backstage.io/v1alpha1"
DEFAULT_NAMESPACE = "default"

ANNOTATION_LOCATION = "backstage.io/managed-by-location"
ANNOTATION_ORIGIN_LOCATION = "backstage.io/managed-by-origin-location"


def build_group_entity(
    name: str,
    members: list[str],
    title: Optional[str] = None,
    description: Optional[str] = None,
    annotations: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """A Group entity with flat membership; nesting is not computed."""
    metadata: dict[str, Any] = {
        "annotations": dict(annotations or {}),
        "name": name,
    }
    if title is not None:
        metadata["title"] = title
    if description is not None:
        metadata["description"] = description

    return {
        "apiVersion": API_VERSION,
        "kind": "Group",
        "metadata": metadata,
        "spec": {
            "type": "group",
            "members": list(members),
            "children": [],
        },
    }


def entity_ref(entity: dict[str, Any]) -> str:
    """``kind:namespace/name``, lowercased as the catalog compares refs."""
    metadata = entity["metadata"]
    namespace = metadata.get("namespace", DEFAULT_NAMESPACE)
    return f"{entity['kind']}:{namespace}/{metadata['name']}".lower()


def full_mutation(entities: Iterable[dict[str, Any]], location_key: str) -> dict[str, Any]:
    return {
        "type": "full",
        "entities": [
            {"entity": entity, "locationKey": location_key} for entity in entities
        ],
    }
