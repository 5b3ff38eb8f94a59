"""
Action naming helpers.
"""

from __future__ import annotations

import re

from pipeline_compiler.graph.arena import GraphArena

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9.@\-_]")


def sanitize_name(name: str) -> str:
    return _INVALID_NAME_CHARS.sub("_", name)


def action_name(arena: GraphArena, key: str, shared_parent: str) -> str:
    """
    Name of the action for `key`: the ids on the path below `shared_parent`,
    each sanitized, joined by dots.
    """

    names = [arena.get(k).id for k in arena.ancestor_path(key, shared_parent)]
    return ".".join(sanitize_name(name) for name in names)
