"""JSON conversion for the dataclass records kept in the key-value store."""

from functools import lru_cache
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(cls: Type[T]) -> TypeAdapter:
    return TypeAdapter(cls)


def to_jsonable(obj: Any) -> Any:
    """Dump a dataclass (or list of them) to JSON-compatible python values."""
    return _adapter(type(obj)).dump_python(obj, mode="json")


def from_jsonable(cls: Type[T], data: Any) -> T:
    """Rebuild a record of type ``cls`` from values produced by ``to_jsonable``."""
    return _adapter(cls).validate_python(data)
