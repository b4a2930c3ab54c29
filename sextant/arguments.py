r"""
Sextant argument specifications and token stream.

Overview
- Cardinal[_T]: positional, value-bearing parameter of a command. Besides its
  converter and default it may carry a completion descriptor telling the command
  which completer suggests values for it.
- Arguments: cursor over the raw tokens of one invocation; the command pulls
  tokens from it while binding cardinals and inspects what is left afterwards.

Metadata (sanitized on construction)
- metavar: Unset | str (label in messages), non-empty when provided.
- type: Callable (converter applied to the raw token).
- default: any value; Unset makes the cardinal required.
- descr: Unset | str | Text, non-empty when provided.
- completion: Unset | Completion | kind. A bare kind is wrapped as Completion(kind);
  the kind itself cannot be None or an empty string, and the id must be a string.

Quick example:
    >>> from sextant.arguments import Cardinal
    >>> from sextant.completion import Completion
    >>> Cardinal("COLOR", completion=Completion(ColorCompleter, shared=True))
"""
import functools
import operator
import re
from collections.abc import Iterable

from rich.text import Text

from .completion import Completion
from .faults import MissingArgumentError
from .utils import *


_WORDS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def _ordinal(number):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are spelled out ("first"…"tenth"); past that "11th", "22nd", "103rd".
    """
    if 0 < number <= len(_WORDS):
        return _WORDS[number - 1]
    suffix = "th" if number % 100 in (11, 12, 13) else {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


class ArgumentType(type):
    """
    Metaclass that gives specs a typename, read-only properties and a stable repr.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name in __introspectable__ becomes a property mirroring "_{name}".
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_completion(cls, completion, /):
    """
    Internal: turn the 'completion' metadata into a Completion (or None).

    A completion is attached here, so this is where it is checked: a None or
    empty kind and a non-string id are rejected; any other kind is opaque.
    """
    if completion is Unset:
        return None
    if not (hasattr(completion, "__completion__") and callable(completion.__completion__)):
        completion = Completion(completion)
    completion = completion.__completion__()
    if completion.kind is None:
        raise TypeError(f"{cls.__typename__} 'completion' kind cannot be None")
    if isinstance(completion.kind, str) and not completion.kind.strip():
        raise ValueError(f"{cls.__typename__} 'completion' kind cannot be empty")
    if not isinstance(completion.id, str):
        raise TypeError(f"{cls.__typename__} 'completion' id must be a string")
    return completion


class Cardinal[_T](metaclass=ArgumentType):
    """
    Positional, value-bearing parameter specification.

    Cardinal[_T] declares how one positional token is converted and which
    completer, if any, suggests values for it. Cardinals bind in declaration
    order, one token each; an exhausted optional cardinal takes its default.

    Properties
    - metavar, type, default, descr, completion (read-only).
    - required: True when no default was given.
    """

    __introspectable__ = (
        "metavar",
        "type",
        "default",
        "descr",
        "completion",
    )

    def __init__(self, metavar=Unset, /, type=str, default=Unset, descr=Unset, *, completion=Unset):
        if not isinstance(metavar, str | Unset):
            raise TypeError(f"{self.__typename__} 'metavar' must be a string")
        elif isinstance(metavar, str) and not (metavar := metavar.strip()):
            raise ValueError(f"{self.__typename__} 'metavar' cannot be empty")

        if not callable(type):
            raise TypeError(f"{self.__typename__} 'type' must be callable")

        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{self.__typename__} 'descr' must be a string")
        elif isinstance(descr, str) and not (descr := descr.strip()):
            raise ValueError(f"{self.__typename__} 'descr' cannot be empty")

        self._metavar = coalesce(metavar)
        self._type = type
        self._default = default
        self._descr = coalesce(descr)
        self._completion = _sanitize_completion(self, completion)

    @property
    def required(self):
        return self._default is Unset

    def __cardinal__(self):
        """
        Introspection hook: identify this argument as a Cardinal.
        """
        return self


class Arguments:
    """
    Cursor over the tokens of one invocation.

    Positions are 1-based ordinals used in user-facing messages; the starting
    position can be moved with 'index' when a prefix (e.g. the command name) was
    already consumed elsewhere.
    """

    def __init__(self, tokens, /, index=1):
        if isinstance(tokens, str) or not isinstance(tokens, Iterable):
            raise TypeError("arguments tokens must be an iterable of strings")
        self._tokens = tuple(tokens)
        if not all(isinstance(token, str) for token in self._tokens):
            raise TypeError("arguments tokens must be strings")
        self._start = index
        self._cursor = 0

    @property
    def position(self):
        """
        Ordinal position of the next token.
        """
        return self._start + self._cursor

    @property
    def consumed(self):
        return self._tokens[:self._cursor]

    def remaining(self):
        """
        Return the unconsumed tokens in order, without consuming them.
        """
        return self._tokens[self._cursor:]

    def peek(self, default=Unset, /):
        try:
            return self._tokens[self._cursor]
        except IndexError:
            if default is Unset:
                raise MissingArgumentError(
                    "missing argument at %s position" % _ordinal(self.position)
                ) from None
            return default

    def next(self, label=Unset, /):
        """
        Consume and return the next token.

        Raises
        - MissingArgumentError: when no token is left; 'label' names the
          expected argument in the message.
        """
        try:
            token = self._tokens[self._cursor]
        except IndexError:
            raise MissingArgumentError(
                "missing argument%s at %s position" % (
                    " %s" % label if label else "", _ordinal(self.position)
                ),
                index=self.position,
            ) from None
        self._cursor += 1
        return token

    def __bool__(self):
        return self._cursor < len(self._tokens)

    def __len__(self):
        return len(self._tokens) - self._cursor

    def __repr__(self):
        return "arguments(consumed=%r, remaining=%r)" % (self.consumed, self.remaining())


__all__ = (
    "Cardinal",
    "Arguments",
)

# Remove the internal metaclass from the module namespace; it is not part of the public API.
del ArgumentType
