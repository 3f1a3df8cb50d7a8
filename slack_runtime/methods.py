"""
Web API method table.

The call surface is built once from a flat list of dotted method names
into a fixed tree of :class:`MethodGroup` nodes. Each leaf is an
:class:`ApiMethod` that forwards to a single ``invoke(name, args)``
coroutine, so ``table.chat.postMessage(channel="C1", text="hi")`` and
``table.call("chat.postMessage", {"channel": "C1", "text": "hi"})`` end up
in the same place.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping

from slack_runtime.errors import MethodTableError

logger = logging.getLogger(__name__)

Invoke = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]
Override = Callable[..., Awaitable[dict[str, Any]]]


DEFAULT_METHODS: tuple[str, ...] = (
    "api.test",
    "auth.revoke",
    "auth.test",
    "bots.info",
    "channels.archive",
    "channels.create",
    "channels.history",
    "channels.info",
    "channels.invite",
    "channels.join",
    "channels.kick",
    "channels.leave",
    "channels.list",
    "channels.mark",
    "channels.rename",
    "channels.setPurpose",
    "channels.setTopic",
    "channels.unarchive",
    "chat.delete",
    "chat.meMessage",
    "chat.postEphemeral",
    "chat.postMessage",
    "chat.update",
    "dnd.info",
    "emoji.list",
    "files.delete",
    "files.info",
    "files.list",
    "files.upload",
    "groups.archive",
    "groups.create",
    "groups.history",
    "groups.info",
    "groups.invite",
    "groups.kick",
    "groups.leave",
    "groups.list",
    "groups.mark",
    "groups.open",
    "groups.rename",
    "groups.setPurpose",
    "groups.setTopic",
    "groups.unarchive",
    "im.close",
    "im.history",
    "im.list",
    "im.mark",
    "im.open",
    "mpim.close",
    "mpim.history",
    "mpim.list",
    "mpim.mark",
    "mpim.open",
    "pins.add",
    "pins.list",
    "pins.remove",
    "reactions.add",
    "reactions.get",
    "reactions.list",
    "reactions.remove",
    "search.all",
    "search.messages",
    "team.info",
    "users.getPresence",
    "users.info",
    "users.list",
    "users.setActive",
    "users.setPresence",
)


def merge_args(args: Mapping[str, Any] | None, kwargs: Mapping[str, Any]) -> dict[str, Any]:
    """Combine a positional args mapping and keyword args into a fresh dict."""
    merged: dict[str, Any] = dict(args) if args else {}
    merged.update(kwargs)
    return merged


class ApiMethod:
    """A single callable leaf of the method table."""

    __slots__ = ("name", "_invoke")

    def __init__(self, name: str, invoke: Invoke) -> None:
        self.name = name
        self._invoke = invoke

    def __call__(
        self, args: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Awaitable[dict[str, Any]]:
        return self._invoke(self.name, merge_args(args, kwargs))

    def __repr__(self) -> str:
        return f"<ApiMethod {self.name}>"


class MethodGroup:
    """An intermediate path segment, e.g. ``chat`` in ``chat.postMessage``.

    Children are fixed when the table is built; attribute assignment on a
    finished group raises :class:`AttributeError`.
    """

    def __init__(self, path: str) -> None:
        object.__setattr__(self, "_path", path)
        object.__setattr__(self, "_children", {})

    def __getattr__(self, name: str) -> Any:
        children = object.__getattribute__(self, "_children")
        try:
            return children[name]
        except KeyError:
            path = object.__getattribute__(self, "_path")
            dotted = f"{path}.{name}" if path else name
            raise AttributeError(f"Unknown API method or group: {dotted}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Method table is read-only")

    def __dir__(self) -> list[str]:
        return sorted(self._children)

    def __contains__(self, name: str) -> bool:
        return name in self._children

    def __repr__(self) -> str:
        return f"<MethodGroup {self._path or '<root>'}: {', '.join(sorted(self._children))}>"

    def _child(self, segment: str, dotted: str) -> MethodGroup:
        node = self._children.get(segment)
        if node is None:
            path = f"{self._path}.{segment}" if self._path else segment
            node = MethodGroup(path)
            self._children[segment] = node
        elif not isinstance(node, MethodGroup):
            raise MethodTableError(f"{dotted!r} needs {segment!r} to be a group, but it is a method")
        return node

    def _leaf(self, segment: str, method: Any, dotted: str) -> None:
        existing = self._children.get(segment)
        if isinstance(existing, MethodGroup):
            raise MethodTableError(f"{dotted!r} collides with the method group of the same name")
        if existing is not None:
            raise MethodTableError(f"Duplicate API method {dotted!r}")
        self._children[segment] = method


class MethodTable(MethodGroup):
    """Root of the call surface.

    Args:
        names: Dotted Web API method names, e.g. ``"users.info"``.
        invoke: Coroutine function ``(name, args) -> body`` every generic
            leaf delegates to.
        overrides: Bespoke bodies for specific names. They replace the
            generic leaf at the same path and are called with the same
            ``(args=None, **kwargs)`` shape.
    """

    def __init__(
        self,
        names: Iterable[str],
        invoke: Invoke,
        overrides: Mapping[str, Override] | None = None,
    ) -> None:
        super().__init__("")
        overrides = dict(overrides or {})
        flat: dict[str, Any] = {}

        for dotted in names:
            segments = dotted.split(".")
            if not all(segments):
                raise MethodTableError(f"Invalid API method name {dotted!r}")

            node: MethodGroup = self
            for segment in segments[:-1]:
                node = node._child(segment, dotted)

            leaf = overrides.pop(dotted, None) or ApiMethod(dotted, invoke)
            node._leaf(segments[-1], leaf, dotted)
            flat[dotted] = leaf

        if overrides:
            raise MethodTableError(
                f"Overrides for unconfigured methods: {', '.join(sorted(overrides))}"
            )

        object.__setattr__(self, "_flat", flat)
        object.__setattr__(self, "_invoke", invoke)
        logger.debug("Built method table with %d methods", len(flat))

    @property
    def names(self) -> list[str]:
        return list(self._flat)

    def get(self, name: str) -> Any:
        """Look up a leaf by its full dotted name."""
        try:
            return self._flat[name]
        except KeyError:
            raise AttributeError(f"Unknown API method: {name}") from None

    def call(
        self, name: str, args: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Awaitable[dict[str, Any]]:
        """Call ``name`` by its dotted name.

        Configured names (including overridden ones) go through their leaf;
        anything else is sent as-is, so methods missing from the table are
        still reachable.
        """
        leaf = self._flat.get(name)
        if leaf is not None:
            return leaf(args, **kwargs)
        return self._invoke(name, merge_args(args, kwargs))
