"""
Member reference metadata.

Attributes describe what an instruction refers to: the owner class, the
member name, its descriptor and the kind of member. They travel through
the tree IR as a single pipe-delimited string:

    owner=App|name=bar|descriptor=()I|kind=method
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class Kind(Enum):
    """What an attribute set denotes."""
    FIELD = "field"
    STATIC = "static"
    METHOD = "method"
    INTERFACE = "interface"
    DYNAMIC = "dynamic"
    INSTANCE = "instance"
    LOCAL = "local"


_KEYS = ("owner", "name", "descriptor", "kind")


@dataclass(frozen=True)
class Attributes:
    owner: Optional[str] = None
    name: Optional[str] = None
    descriptor: Optional[str] = None
    kind: Optional[Kind] = None

    @classmethod
    def parse(cls, text: str) -> Attributes:
        """Parse the 'key=value|key=value' form."""
        values: dict = {}
        if not text:
            return cls()
        for pair in text.split("|"):
            key, sep, value = pair.partition("=")
            if not sep:
                raise ValueError(f"Attribute {pair!r} in {text!r} has no value")
            if key not in _KEYS:
                raise ValueError(f"Unknown attribute {key!r} in {text!r}")
            if key == "kind":
                try:
                    values[key] = Kind(value)
                except ValueError:
                    raise ValueError(
                        f"Unknown member kind {value!r} in {text!r}"
                    ) from None
            else:
                values[key] = value
        return cls(**values)

    def __str__(self) -> str:
        pairs = []
        for key in _KEYS:
            value = getattr(self, key)
            if value is None:
                continue
            if isinstance(value, Kind):
                value = value.value
            pairs.append(f"{key}={value}")
        return "|".join(pairs)

    def with_owner(self, owner: str) -> Attributes:
        return replace(self, owner=owner)

    def with_name(self, name: str) -> Attributes:
        return replace(self, name=name)

    def with_descriptor(self, descriptor: str) -> Attributes:
        return replace(self, descriptor=descriptor)

    def with_kind(self, kind: Kind) -> Attributes:
        return replace(self, kind=kind)

    def require(self, key: str) -> str:
        """
        Value of a mandatory attribute.

        Raises ValueError naming the missing key, so that a callable or a
        typed storage location never silently falls back to a default.
        """
        value = getattr(self, key)
        if value is None:
            raise ValueError(f"Attribute {key!r} is missing in '{self}'")
        return value

    @classmethod
    def member(
        cls, owner: str, name: str, descriptor: str, kind: Kind = Kind.METHOD
    ) -> Attributes:
        return cls(owner=owner, name=name, descriptor=descriptor, kind=kind)
