"""
Sextant utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the completion, arguments and commands layers.

Overview
- UnsetType / Unset
  • Sentinel for “value not provided”, distinct from None.
  • Falsey, printable as "Unset"; copying or pickling it yields Unset again, so
    fault options carrying it survive copy.replace().

- coalesce(value, default=None)
  • Replace Unset with a concrete default; None, 0 and "" pass through untouched.

- @rename("name")
  • Assign stable __name__/__qualname__ to generated accessors.

- mirror("attr")
  • Read-only property over a private backing field (self._attr); containers are
    handed out as frozen snapshots (tuple, frozenset, mapping proxy).

Stability and contract
- Names listed in __all__ are re-exported by the layers that need them; anything
  else may change without notice.
"""
import builtins
import functools
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Used where None is a legitimate user value (a cardinal default, an
    identifier) and the API still has to tell “omitted” from “given as None”.
    """
    __slots__ = ()

    def __new__(cls):
        if (instance := globals().get("Unset")) is not None:
            return instance
        return super().__new__(cls)

    def __or__(self, other, /):
        """
        Support PEP 604 unions in isinstance checks (e.g., str | Unset).
        """
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __reduce__(self):
        return "Unset"

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return default if object is Unset else object


def rename(name, /):
    """
    Return a decorator giving a callable the stable __name__/__qualname__ 'name'.
    """
    if not isinstance(name, str):
        raise TypeError("@rename() argument must be a string")

    def decorator(callable):
        if not builtins.callable(callable):
            raise TypeError("@rename() must be applied to a callable")
        try:
            callable.__name__ = callable.__qualname__ = name
        except (AttributeError, TypeError):
            raise TypeError("@rename() must be applied to an updatable callable") from None
        return callable

    return decorator


@functools.singledispatch
def _snapshot(object):
    return object


@_snapshot.register
def _(object: str | bytes):
    return object


@_snapshot.register
def _(object: Sequence):
    return tuple(map(_snapshot, object))


@_snapshot.register
def _(object: Mapping):
    return MappingProxyType({key: _snapshot(value) for key, value in object.items()})


@_snapshot.register
def _(object: Set):
    return frozenset(map(_snapshot, object))


def mirror(name, /):
    """
    Define a read-only property that mirrors the backing attribute "_{name}".

    Example
    - Given self._cardinals, declare cardinals = mirror("cardinals").
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _snapshot(getattr(self, "_" + name))

    return property(getter)


Unset = UnsetType()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
