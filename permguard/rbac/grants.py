"""
Permission grant keys.

Grant keys are the only persisted artifact of the engine. Administrators
author them when defining roles, so the format is kept small and stable:

    <module>:<action>              e.g. vendor:read, po:approve
    <module>:<resource>:<action>   e.g. vendor:purchaseOrders:approve
    *                              wildcard (every module, every action)

Keys are parsed once, when a role is authored, into ``PermissionGrant``
values. A three-part key whose resource equals its module
(``vendor:vendor:read``) is the same grant as ``vendor:read``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

WILDCARD = "*"

_SEGMENT_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


class GrantParseError(ValueError):
    """Raised when a grant key does not match the documented format."""


@dataclass(frozen=True)
class PermissionGrant:
    """A single ``(module, resource, action)`` grant."""

    module: str
    action: str
    resource: str | None = None

    @property
    def action_key(self) -> str:
        """Key used inside a module's entry of a ``PermissionMap``."""
        return action_key(self.action, self.resource)

    @property
    def key(self) -> str:
        return f"{self.module}:{self.action_key}"

    def __str__(self) -> str:
        return self.key


def action_key(action: str, resource: str | None = None) -> str:
    if resource:
        return f"{resource}:{action}"
    return action


def normalize_resource(module: str, resource: str | None) -> str | None:
    """Collapse ``resource == module`` (and empty resources) to ``None``."""
    if not resource or resource == module:
        return None
    return resource


def parse_grant(key: str) -> PermissionGrant:
    """
    Parse a non-wildcard grant key.

    Raises GrantParseError for anything other than two or three identifier
    segments separated by colons. The wildcard is not a grant triple; callers
    check for ``WILDCARD`` before parsing.
    """

    if not isinstance(key, str):
        raise GrantParseError(f"grant key must be a string, got {type(key).__name__}")

    raw = key.strip()
    if raw == WILDCARD:
        raise GrantParseError("wildcard grant '*' is not a (module, action) pair")

    parts = raw.split(":")
    if len(parts) not in (2, 3):
        raise GrantParseError(f"grant {key!r} must be 'module:action' or 'module:resource:action'")
    for part in parts:
        if not _SEGMENT_RE.match(part):
            raise GrantParseError(f"grant {key!r} has an invalid segment {part!r}")

    if len(parts) == 2:
        module, action = parts
        return PermissionGrant(module=module, action=action)

    module, resource, action = parts
    return PermissionGrant(module=module, action=action, resource=normalize_resource(module, resource))


def is_wildcard(key: str) -> bool:
    return isinstance(key, str) and key.strip() == WILDCARD


def validate_grant_keys(keys: Iterable[str]) -> frozenset[str]:
    """
    Authoring-time validation: every key must be the wildcard or parse.

    Returns the normalized key set (whitespace stripped, ``m:m:a`` folded to
    ``m:a``). Raises GrantParseError on the first malformed key.
    """

    normalized: set[str] = set()
    for key in keys:
        if is_wildcard(key):
            normalized.add(WILDCARD)
            continue
        normalized.add(parse_grant(key).key)
    return frozenset(normalized)
