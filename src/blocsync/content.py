"""Durable-state stamping on serialized node content.

A serialized top-level node (the ``content`` of a bloc) carries its
durable identity in a ``"$"`` state dict::

    {"type": "paragraph", "children": [...],
     "$": {"id": "5b0c...", "position": "a1", "updateAt": "1700000000000"}}

The helpers below read and write that dict.  Setters raise on a missing
content dict; getters return an empty value instead.
"""

from __future__ import annotations

from typing import Any

STATE_KEY = "$"


def _state(content: dict[str, Any] | None) -> dict[str, Any]:
    if content is None:
        raise ValueError("Content cannot be None")
    state = content.get(STATE_KEY)
    if not isinstance(state, dict):
        state = {}
        content[STATE_KEY] = state
    return state


def set_id_state(content: dict[str, Any] | None, value: str) -> None:
    _state(content)["id"] = value


def get_id_state(content: dict[str, Any] | None) -> str:
    if not content or not isinstance(content.get(STATE_KEY), dict):
        return ""
    value = content[STATE_KEY].get("id")
    return str(value) if value else ""


def set_position_state(content: dict[str, Any] | None, value: str) -> None:
    _state(content)["position"] = value


def get_position_state(content: dict[str, Any] | None) -> str | None:
    """Return the stamped position, or ``None`` when there is none."""
    if not content or not isinstance(content.get(STATE_KEY), dict):
        return None
    value = content[STATE_KEY].get("position")
    return str(value) if value else None


def set_update_time_state(content: dict[str, Any] | None, value: int) -> None:
    _state(content)["updateAt"] = str(value)


def remove_update_time_state(content: dict[str, Any]) -> None:
    state = content.get(STATE_KEY)
    if isinstance(state, dict):
        state.pop("updateAt", None)


def stamp(content: dict[str, Any], bloc_id: str, position: str) -> dict[str, Any]:
    """Write *bloc_id* and *position* into *content* and return it."""
    set_id_state(content, bloc_id)
    set_position_state(content, position)
    return content
