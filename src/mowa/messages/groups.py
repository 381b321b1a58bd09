"""Expansion of configured recipient groups."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import structlog

log = structlog.get_logger(__name__)


def expand_groups(recipients: Iterable[str], groups: Mapping[str, Sequence[str]]) -> list[str]:
    """Replace group names with their members, keeping order; other entries pass through."""
    expanded: list[str] = []
    for recipient in recipients:
        members = groups.get(recipient)
        if members is None:
            expanded.append(recipient)
            continue
        expanded.extend(members)
        log.info("messages.group_expanded", group=recipient, recipients=len(members))
    return expanded
