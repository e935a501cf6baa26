"""Commonly used typing helpers."""

from __future__ import annotations

from typing import Literal, TypeAlias, TypeVar, Union

from .exceptions import Error

T = TypeVar("T")

# Result type: either a value of type ``T`` or an ``Error`` instance.
Result: TypeAlias = Union[T, Error]

# How an entity reference displays its entity
TextType: TypeAlias = Literal["primary", "alias"]

# Choice made for a conflicting record during import
Resolution: TypeAlias = Literal["keep_original", "overwrite"]


def is_error(value: object) -> bool:
    return isinstance(value, Error)


__all__ = ["Result", "Error", "TextType", "Resolution", "is_error"]
