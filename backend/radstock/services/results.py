# Overview: Variant return types for directory lookups.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import EntityNotFound


@dataclass(frozen=True)
class Found:
    value: Any

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    entity: str
    key: Any

    def __bool__(self) -> bool:
        return False


Lookup = Union[Found, NotFound]


def unwrap(lookup: Lookup):
    """Return the found value or raise EntityNotFound for a NotFound."""
    if isinstance(lookup, NotFound):
        raise EntityNotFound(lookup.entity, lookup.key)
    return lookup.value
