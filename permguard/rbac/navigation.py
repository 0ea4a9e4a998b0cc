"""
Permission-based filtering of a declarative menu tree.

This is a UI convenience, not a security boundary: hiding a menu entry does
not forbid the action behind it. Every operation a menu entry leads to must
also be checked server-side by the permission guard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Sequence

from .grants import GrantParseError, parse_grant
from .permission_map import PermissionMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavItem:
    label: str
    href: str
    permission: str
    children: tuple[NavItem, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "href": self.href,
            "permission": self.permission,
            "children": [child.to_dict() for child in self.children],
        }


def _item_allowed(item: NavItem, permissions: PermissionMap) -> bool:
    try:
        grant = parse_grant(item.permission)
    except GrantParseError:
        logger.warning("Hiding nav item %r with malformed permission %r", item.label, item.permission)
        return False
    return permissions.is_allowed(grant.module, grant.action, grant.resource)


def filter_nav_items(items: Sequence[NavItem], permissions: PermissionMap | None) -> list[NavItem]:
    """
    Return the items the caller may see, in their original order.

    - ``permissions is None`` (unauthenticated): nothing.
    - all-allowed map: every item, unchanged.
    - otherwise: items whose permission is granted; children are filtered the
      same way, and a hidden parent hides its whole subtree.
    """

    if permissions is None:
        return []
    if permissions.all_allowed:
        return list(items)

    visible: list[NavItem] = []
    for item in items:
        if not _item_allowed(item, permissions):
            continue
        if item.children:
            item = replace(item, children=tuple(filter_nav_items(item.children, permissions)))
        visible.append(item)
    return visible
