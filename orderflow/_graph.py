"""
Graph runner over nodnod.

Nodes declare their inputs in `__compose__`; the agent resolves and runs
them, independent branches concurrently.

    result = await compose(QuoteNode, spec)
"""

from __future__ import annotations

from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value, scalar_node

node = scalar_node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """Scope with typed push/get."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# compose
# ═══════════════════════════════════════════════════════════════════════════════


async def compose[T](target: type[T], *inputs: object, detail: str = "compose") -> T:
    """
    Build the graph reachable from `target`, inject inputs by runtime type, run.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    async with TypedScope(detail=detail) as scope:
        for value in inputs:
            scope.inject(cast(type[Any], type(value)), value)
        await agent.run(scope.inner, {})
        return scope.get(target)


__all__ = ("node", "TypedScope", "compose")
