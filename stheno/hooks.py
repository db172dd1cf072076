"""Lifecycle hooks for Stheno.

Hooks are callbacks registered against an owner and an event, for example
``("site", "post_read")`` or ``("documents", "post_render")``. Each Site
owns its own HookRegistry; nothing is registered globally.

Site events receive the Site (plus the payload for pre/post render),
document and page events receive the item, ``("clean", "on_obsolete")``
receives the list of paths about to be removed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

OWNERS = ("site", "documents", "pages", "clean")
EVENTS = (
    "after_init",
    "after_reset",
    "post_read",
    "pre_render",
    "post_render",
    "post_write",
    "on_obsolete",
)

PRIORITY_LOW = 10
PRIORITY_NORMAL = 20
PRIORITY_HIGH = 30


@dataclass(order=True)
class _Hook:
    sort_key: tuple[int, int]
    callback: Callable[..., Any] = field(compare=False)


class HookRegistry:
    """Ordered callback lists keyed by (owner, event)."""

    def __init__(self) -> None:
        self._hooks: dict[tuple[str, str], list[_Hook]] = {}
        self._counter = 0

    def register(
        self,
        owner: str,
        event: str,
        callback: Callable[..., Any],
        priority: int = PRIORITY_NORMAL,
    ) -> Callable[..., Any]:
        """Register ``callback`` for ``owner``/``event``.

        Higher priorities run first; equal priorities run in registration
        order.

        Raises:
            ValueError: If the owner or event is unknown.
        """
        if owner not in OWNERS:
            raise ValueError(f"Unknown hook owner: {owner}")
        if event not in EVENTS:
            raise ValueError(f"Unknown hook event: {event}")
        self._counter += 1
        hooks = self._hooks.setdefault((owner, event), [])
        hooks.append(_Hook((-priority, self._counter), callback))
        hooks.sort()
        return callback

    def trigger(self, owner: str, event: str, *args: Any) -> None:
        """Invoke every callback registered for ``owner``/``event``."""
        for hook in list(self._hooks.get((owner, event), [])):
            hook.callback(*args)

    def callbacks(self, owner: str, event: str) -> list[Callable[..., Any]]:
        return [hook.callback for hook in self._hooks.get((owner, event), [])]

    def extend(self, other: HookRegistry) -> None:
        """Copy every callback of ``other`` into this registry, keeping order."""
        for (owner, event), hooks in other._hooks.items():
            for hook in hooks:
                self.register(owner, event, hook.callback, -hook.sort_key[0])
