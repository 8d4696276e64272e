"""
JSON documents for aggregates, via pydantic TypeAdapter.
"""

from __future__ import annotations

from pydantic import TypeAdapter


class Codec[T]:
    """
    Dataclass ⇄ JSON text. Decimals round-trip as strings.

    Example:
        orders = Codec(Order)
        assert orders.load(orders.dump(order)) == order
    """

    __slots__ = ("_adapter",)

    def __init__(self, typ: type[T]) -> None:
        self._adapter: TypeAdapter[T] = TypeAdapter(typ)

    def dump(self, value: T) -> str:
        return self._adapter.dump_json(value).decode()

    def load(self, text: str) -> T:
        return self._adapter.validate_json(text)


__all__ = ("Codec",)
