"""Naming strategies: choose the catalog entity name for an Okta record.

Strategies are picked by name once, when a provider is built, and stored as
plain functions. Every strategy is pure and total over the records the Okta
API returns.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Callable, Optional

from catalog_sync.config import ConfigurationError

GroupNamingStrategy = Callable[[Any], str]
UserNamingStrategy = Callable[[Any], str]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def kebab_case(value: str) -> str:
    """Accents folded to ASCII, lowercased, runs of non-alphanumerics become
    one hyphen, edges trimmed.
    """
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")


def _profile(record: Any) -> dict:
    return getattr(record, "profile", None) or {}


def group_id_name(group: Any) -> str:
    return group.id


def group_kebab_case_name(group: Any) -> str:
    # Groups without a usable display name keep their id
    return kebab_case(_profile(group).get("name") or "") or group.id


def user_id_name(user: Any) -> str:
    return user.id


def user_strip_domain_email(user: Any) -> str:
    email = _profile(user).get("email")
    if not email:
        return user.id
    return email.split("@", 1)[0]


GROUP_NAMING_STRATEGIES: dict[str, GroupNamingStrategy] = {
    "default": group_id_name,
    "kebab-case-name": group_kebab_case_name,
}

USER_NAMING_STRATEGIES: dict[str, UserNamingStrategy] = {
    "default": user_id_name,
    "strip-domain-email": user_strip_domain_email,
}


def group_naming_strategy(name: Optional[str] = None) -> GroupNamingStrategy:
    """Resolve a group naming strategy; unset means ``default`` (raw id)."""
    return _resolve(GROUP_NAMING_STRATEGIES, name, "group")


def user_naming_strategy(name: Optional[str] = None) -> UserNamingStrategy:
    """Resolve a user naming strategy; unset means ``default`` (raw id)."""
    return _resolve(USER_NAMING_STRATEGIES, name, "user")


def _resolve(strategies: dict[str, Callable[[Any], str]], name: Optional[str], kind: str):
    if name is None:
        return strategies["default"]
    if not isinstance(name, str):
        raise ConfigurationError(
            f"{kind.capitalize()} naming strategy must be a string, got {type(name).__name__}"
        )
    try:
        return strategies[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown {kind} naming strategy {name!r}, "
            f"expected one of: {', '.join(sorted(strategies))}"
        ) from None
