"""
Sextant faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves with rich.
- UnusedArgumentsError: trailing tokens the command did not consume; keeps the tail
  both as a joined string and, when known, as the individual tokens.
- CompleterConstructionError: a completer kind could not be built by the registry.
- trigger(): central entry point to surface any fault.

Behavior
- Outside shell mode exceptions are raised and warnings go through warnings.warn.
- In shell mode both are printed to the stderr console and control returns to the
  caller; a fault ends the current invocation, never the process.

Host configuration (read from __main__ when present)
- __prog__: program name shown in the header.
- __styles__: style overrides merged over the defaults below.
- __codes__: mapping FaultCode (or member name) -> label, see FaultCode.normalize().
"""
import copy
import inspect
import warnings
from collections import defaultdict
from collections.abc import Iterable
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - bases: COMMAND_ERROR, COMMAND_WARNING (faults without a more specific code)
    - binding (112xx): MISSING_ARGUMENT, INVALID_ARGUMENT, UNUSED_ARGUMENTS
    - completion (113xx): COMPLETER_CONSTRUCTION
    - warnings (123xx): COMPLETION_UNAVAILABLE
    """
    # --- bases ---
    COMMAND_ERROR               = 11200
    COMMAND_WARNING             = 12300

    # --- binding errors ---
    MISSING_ARGUMENT            = 11201
    INVALID_ARGUMENT            = 11202
    UNUSED_ARGUMENTS            = 11203

    # --- completion errors ---
    COMPLETER_CONSTRUCTION      = 11301

    # --- warnings ---
    COMPLETION_UNAVAILABLE      = 12301

    def normalize(self):
        """
        return the host label for this code.

        __main__.__codes__ may key labels by member (or its number) or by member
        name; a code without a label renders as its number.
        """
        codes = getattr(__import__("__main__"), "__codes__", {})
        return str(codes.get(self, codes.get(self.name, self.value)))


def _render(fault, palette, title):
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = fault.options.get("colorful", False)
    fancy = fault.options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    tool = fault.options.get("tool")
    prog = getattr(main, "__prog__", getattr(tool, "name", "sextant"))

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(fault.code.normalize(), "code"),
        " | ",
        text(title.title(), "title"),
        " ]"
    )
    message = text(fault.message, "message")
    hint = fault.options.get("hint")
    body = [message]
    if hint:
        body.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

    if fancy:
        return Panel(Group(*body), title=header, title_align="left")
    return Group(header, *body)


class CommandException(Exception):
    """
    base of every user-facing error.

    class attributes
    - code: FaultCode shown in the header.
    - title: short title shown in the header.

    options are free-form context merged by trigger(); the renderer reads
    tool, hint, shell, fancy and colorful.
    """
    code = FaultCode.COMMAND_ERROR
    title = "command error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Text | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }, self.title)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self
        console.print(self)

    def __replace__(self, /, **overrides):
        clone = type(self).__new__(type(self), *self.args)
        clone.__dict__.update(self.__dict__)
        clone.__cause__ = self.__cause__
        clone.options = MappingProxyType({**self.options, **overrides})
        return clone


class MissingArgumentError(CommandException):
    code = FaultCode.MISSING_ARGUMENT
    title = "missing argument"


class InvalidArgumentError(CommandException):
    code = FaultCode.INVALID_ARGUMENT
    title = "invalid argument"


class UnusedArgumentsError(CommandException):
    """
    raised when the user supplied more tokens than the command consumes.

    attributes
    - unconsumed: the unconsumed tail joined by single spaces.
    - arguments: the unconsumed tokens in order, or None when the error was
      built from an already joined string.
    """
    code = FaultCode.UNUSED_ARGUMENTS
    title = "unused arguments"

    def __init__(self, unconsumed, /, **options):
        if isinstance(unconsumed, str):
            arguments = None
        elif isinstance(unconsumed, Iterable):
            arguments = tuple(unconsumed)
            if not all(isinstance(argument, str) for argument in arguments):
                raise TypeError("UnusedArgumentsError() tokens must be strings")
            unconsumed = " ".join(arguments)
        else:
            raise TypeError("UnusedArgumentsError() argument must be a string or an iterable of strings")
        super().__init__("unconsumed arguments: %s" % unconsumed, **options)
        self.unconsumed = unconsumed
        self.arguments = arguments


class CompleterConstructionError(CommandException):
    """
    raised when the registry cannot produce a completer for a kind.

    the original failure, if any, is chained as __cause__.
    """
    code = FaultCode.COMPLETER_CONSTRUCTION
    title = "completer construction failed"

    def __init__(self, kind, /, message=Unset, **options):
        super().__init__(coalesce(message, "unable to construct completer %s" % _qualify(kind)), **options)
        self.kind = kind


def _qualify(kind):
    return getattr(kind, "__qualname__", None) or repr(kind)


class CommandWarning(Warning):
    """
    base of every user-facing warning (soft feedback, never stops the run).
    """
    code = FaultCode.COMMAND_WARNING
    title = "command warning"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Text | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }, self.title)

    def __trigger__(self):
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, /, **overrides):
        clone = type(self).__new__(type(self), *self.args)
        clone.__dict__.update(self.__dict__)
        clone.options = MappingProxyType({**self.options, **overrides})
        return clone


class CompletionUnavailableWarning(CommandWarning):
    code = FaultCode.COMPLETION_UNAVAILABLE
    title = "completion unavailable"


def _ensure_triggerable(fault, caller, /):
    if not all(callable(getattr(fault, name, None)) for name in ("__trigger__", "__replace__")):
        raise TypeError(f"{caller}() argument must have a __trigger__ and __replace__ methods")
    return fault


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into a copy of the fault via copy.replace() before triggering;
      the original fault is left untouched.

    returns
    - the surfaced copy, when it was printed or warned instead of raised.
    """
    fault = copy.replace(_ensure_triggerable(fault, "trigger"), **options)
    fault.__trigger__()
    return fault


__all__ = (
    "FaultCode",
    "CommandException",
    "MissingArgumentError",
    "InvalidArgumentError",
    "UnusedArgumentsError",
    "CompleterConstructionError",
    "CommandWarning",
    "CompletionUnavailableWarning",
    "trigger",
)
