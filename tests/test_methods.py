"""Unit tests for the method table."""

from __future__ import annotations

from typing import Any

import pytest

from slack_runtime.errors import MethodTableError
from slack_runtime.methods import DEFAULT_METHODS, ApiMethod, MethodGroup, MethodTable


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((name, args))
        return {"ok": True, "method": name}


@pytest.mark.asyncio
async def test_leaves_call_invoke_with_their_name() -> None:
    invoke = Recorder()
    table = MethodTable(["users.info", "chat.postMessage", "api.test"], invoke)

    result = await table.users.info({"user": "U1"})

    assert result == {"ok": True, "method": "users.info"}
    assert invoke.calls == [("users.info", {"user": "U1"})]


@pytest.mark.asyncio
async def test_call_shapes() -> None:
    invoke = Recorder()
    table = MethodTable(["users.info", "users.list"], invoke)

    await table.users.list()
    await table.users.info(user="U1")
    await table.users.info({"user": "U1", "include_locale": True}, user="U2")

    assert invoke.calls == [
        ("users.list", {}),
        ("users.info", {"user": "U1"}),
        ("users.info", {"user": "U2", "include_locale": True}),
    ]


@pytest.mark.asyncio
async def test_caller_args_are_not_mutated() -> None:
    async def invoke(name: str, args: dict[str, Any]) -> dict[str, Any]:
        args["token"] = "secret"
        return {}

    table = MethodTable(["users.info"], invoke)
    args = {"user": "U1"}
    await table.users.info(args)

    assert args == {"user": "U1"}


def test_nested_groups() -> None:
    table = MethodTable(["admin.users.session.reset", "admin.users.list"], Recorder())

    assert isinstance(table.admin, MethodGroup)
    assert isinstance(table.admin.users.session, MethodGroup)
    assert isinstance(table.admin.users.session.reset, ApiMethod)
    assert table.admin.users.session.reset.name == "admin.users.session.reset"
    assert "list" in table.admin.users


def test_unknown_method_raises_attribute_error() -> None:
    table = MethodTable(["users.info"], Recorder())

    with pytest.raises(AttributeError, match="users.nope"):
        table.users.nope
    with pytest.raises(AttributeError):
        table.get("users.nope")


def test_table_is_read_only() -> None:
    table = MethodTable(["users.info"], Recorder())

    with pytest.raises(AttributeError):
        table.users = None
    with pytest.raises(AttributeError):
        table.users.info = None


@pytest.mark.parametrize(
    "names",
    [
        ["users", "users.info"],
        ["users.info", "users"],
        ["users.info", "users.info.extra"],
        ["users.info", "users.info"],
        ["users..info"],
        [""],
    ],
)
def test_invalid_tables(names: list[str]) -> None:
    with pytest.raises(MethodTableError):
        MethodTable(names, Recorder())


def test_override_for_unconfigured_method() -> None:
    async def body(args: Any = None, **kwargs: Any) -> dict[str, Any]:
        return {}

    with pytest.raises(MethodTableError, match="chat.postMessage"):
        MethodTable(["users.info"], Recorder(), overrides={"chat.postMessage": body})


@pytest.mark.asyncio
async def test_override_replaces_leaf() -> None:
    invoke = Recorder()
    seen: list[dict[str, Any]] = []

    async def auth_test(args: Any = None, **kwargs: Any) -> dict[str, Any]:
        seen.append(dict(args or {}, **kwargs))
        return {"ok": True, "user": "bot"}

    table = MethodTable(["auth.test", "users.info"], invoke, overrides={"auth.test": auth_test})

    assert table.auth.test is auth_test
    assert await table.call("auth.test", {"x": 1}) == {"ok": True, "user": "bot"}
    assert seen == [{"x": 1}]
    assert invoke.calls == []


@pytest.mark.asyncio
async def test_generic_call() -> None:
    invoke = Recorder()
    table = MethodTable(["users.info"], invoke)

    await table.call("users.info", {"user": "U1"})
    await table.call("conversations.info", channel="C1")

    assert invoke.calls == [
        ("users.info", {"user": "U1"}),
        ("conversations.info", {"channel": "C1"}),
    ]


def test_default_methods_build() -> None:
    table = MethodTable(DEFAULT_METHODS, Recorder())

    assert table.names == list(DEFAULT_METHODS)
    assert isinstance(table.chat.postMessage, ApiMethod)
    assert isinstance(table.users.info, ApiMethod)
