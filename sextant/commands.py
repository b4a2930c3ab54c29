"""
Sextant command layer: bind tokens to parameters, dispatch, and complete.

What this module provides
- Command: wraps a Python callable whose parameters default to Cardinal specs.
  • parse(prompt): bind tokens to cardinals in order; trailing tokens are an
    UnusedArgumentsError.
  • __invoke__(prompt): parse and run; user-input faults are caught here and
    surfaced through trigger() so they end this invocation only.
  • complete(prompt): suggestions for the token under the cursor, produced by the
    completer attached to the matching cardinal.
- command(...): build a Command or return a decorator that builds one.
- invoke(object, prompt): convenience runner for commands or plain callables.

Quick start
    from sextant import command, invoke, Cardinal, Completion

    @command(shell=True, colorful=True)
    def go(
        direction=Cardinal("DIRECTION", completion=Completion(DirectionCompleter, shared=True)),
        speed=Cardinal("SPEED", default="normal"),
    ):
        ...

    invoke(go, "north fast")
    go.complete("no")   # -> ("north",) with a suitable DirectionCompleter

Completers
- Each command owns (or shares, via 'registry') a CompleterRegistry; completers are
  resolved from it on demand and never at construction time.
"""
import copy
import inspect
import shlex
import sys
from collections.abc import Iterable
from inspect import Parameter

from rich.text import Text

from .arguments import Cardinal, Arguments, _ordinal
from .completion import CompleterRegistry
from .faults import *
from .faults import _ensure_triggerable
from .utils import *


def _process_source(cls, metadata):
    """
    Introspect the command callback and collect its cardinals.

    Rules
    - every parameter is positional and defaults to a Cardinal (or an object whose
      __cardinal__() returns one).
    - a required cardinal cannot follow an optional one.

    Errors
    - TypeError on non-callable callbacks, keyword-only or variadic parameters,
      missing or foreign defaults, and ordering violations.
    """
    cardinals = metadata["cardinals"] = {}

    try:
        signature = inspect.signature(metadata["callback"])
    except TypeError:
        raise TypeError(f"{cls.__typename__} 'callback' must be callable") from None
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'callback' must be an inspectable callable") from None

    optional = None
    for name, parameter in signature.parameters.items():
        if parameter.kind not in (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} must be positional")
        if parameter.default is Parameter.empty:
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} must have a default")

        default = parameter.default
        if not (hasattr(default, "__cardinal__") and callable(default.__cardinal__)):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} default must be a cardinal")
        if not isinstance(cardinal := default.__cardinal__(), Cardinal):
            raise TypeError("__cardinal__() non-cardinal returned")

        if cardinal.required and optional:
            raise TypeError(
                f"{cls.__typename__} 'callback' required cardinal at parameter {name!r} cannot follow "
                f"the optional one at parameter {optional!r}"
            )
        if not cardinal.required:
            optional = optional or name
        cardinals[name] = cardinal


def _process_strings(cls, metadata):
    for name in ("name", "descr"):
        if not isinstance(object := metadata[name], str | Text | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)


def _tokenize(prompt):
    """
    Normalize a prompt into a list of tokens.

    - Unset: sys.argv[1:].
    - str: shell-like split (shlex).
    - Iterable[str]: items trimmed, empty ones dropped.
    """
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = []
        for item in prompt:
            if not isinstance(item, str):
                raise TypeError("prompt must be a string or an iterable of strings")
            if item := item.strip():
                tokens.append(item)
        return tokens
    raise TypeError("prompt must be a string or an iterable of strings")


class Command:
    """
    Command object wrapping a Python callable.

    Responsibilities
    - Binding: turns raw tokens into converted values following the cardinals
      declared as the callback defaults.
    - Dispatch: runs the callback and converts user-input faults into messages
      (shell mode), fallback calls, or raised exceptions.
    - Completion: resolves the completer declared on a cardinal through the
      command registry and asks it for suggestions.

    Properties (read-only)
    - name, descr, cardinals, registry, shell, fancy, colorful.
    """

    __typename__ = "command"
    __introspectable__ = (
        "name",
        "descr",
        "cardinals",
        "registry",
        "shell",
        "fancy",
        "colorful",
    )

    name = mirror("name")
    descr = mirror("descr")
    cardinals = mirror("cardinals")
    registry = mirror("registry")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(
            self,
            callback,
            /,
            name=Unset,
            descr=Unset,
            *,
            registry=Unset,
            shell=False,
            fancy=False,
            colorful=False
    ):
        """
        Build a command from a callback.

        Parameters
        - callback: callable whose parameters all default to Cardinal specs.
        - name, descr: str | Text | Unset
          Defaults: the callback __name__ and its docstring.
        - registry: CompleterRegistry | Unset
          Registry used to resolve completers; a private one is created when Unset,
          pass a shared one to let several commands reuse shared completers.
        - shell, fancy, colorful: bool
          Runtime rendering flags forwarded to every triggered fault.

        Raises
        - TypeError/ValueError on an invalid callback, metadata or registry.
        """
        if not isinstance(registry, CompleterRegistry | Unset):
            raise TypeError(f"{self.__typename__} 'registry' must be a completer registry")

        metadata = {
            "callback": callback,
            "name": coalesce(name, getattr(callback, "__name__", Unset)),
            "descr": coalesce(descr, inspect.getdoc(callback) or Unset),
            "registry": CompleterRegistry() if registry is Unset else registry,
            "shell": bool(shell),
            "fancy": bool(fancy),
            "colorful": bool(colorful),
        }
        _process_source(self, metadata)
        _process_strings(self, metadata)

        self._callback = metadata.pop("callback")
        self._fallback = Unset
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def __call__(self, *args, **kwargs):
        return self._callback(*args, **kwargs)

    def fallback(self, fallback, /):
        """
        Register a one-time handler receiving every fault raised while invoking.

        Rules
        - Must be callable.
        - Can be set only once per command.

        Returns
        - The same callable, enabling decorator-style usage: @cmd.fallback
        """
        if not callable(fallback):
            raise TypeError(f"{self.__typename__} fallback must be callable")
        if self._fallback is not Unset:
            raise TypeError(f"{self.__typename__} fallback cannot be overridden")
        self._fallback = fallback
        return fallback

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this command's rendering flags merged in.

        Exceptions go to the fallback handler when one is registered; warnings
        are always triggered directly.
        """
        _ensure_triggerable(fault, "trigger")
        options = {"tool": self, "shell": self.shell, "fancy": self.fancy, "colorful": self.colorful} | options
        if self._fallback and isinstance(fault, CommandException):
            return self._fallback(copy.replace(fault, **options))
        return trigger(fault, **options)

    def parse(self, prompt=Unset, /):
        """
        Bind a prompt to the cardinals and return the converted values in order.

        Behavior
        - each cardinal consumes one token and converts it with its type.
        - an optional cardinal with no token left takes its default.
        - tokens left after the last cardinal raise UnusedArgumentsError.

        Raises
        - MissingArgumentError: a required cardinal had no token.
        - InvalidArgumentError: a converter rejected its token.
        - UnusedArgumentsError: trailing tokens were not consumed.
        """
        arguments = prompt if isinstance(prompt, Arguments) else Arguments(_tokenize(prompt))
        values = []

        for name, cardinal in self._cardinals.items():
            if not arguments and not cardinal.required:
                values.append(cardinal.default)
                continue
            index = arguments.position
            token = arguments.next(coalesce(cardinal.metavar, name.upper()))
            try:
                values.append(cardinal.type(token))
            except (TypeError, ValueError) as exception:
                raise InvalidArgumentError(
                    "invalid value %r for %s at %s position" % (
                        token, coalesce(cardinal.metavar, name.upper()), _ordinal(index)
                    ),
                    index=index,
                    hint="run '%s' with a valid %s" % (self.name, coalesce(cardinal.metavar, name.upper())),
                ) from exception

        if arguments:
            raise UnusedArgumentsError(
                arguments.remaining(),
                index=arguments.position,
                hint="remove the extra inputs from %s position" % _ordinal(arguments.position),
            )

        return tuple(values)

    def __invoke__(self, prompt=Unset):
        """
        Parse a prompt and run the callback with the bound values.

        Faults raised while parsing are routed through trigger(): the fallback
        handler receives them when registered; otherwise they are printed in shell
        mode or raised outside it. Either way only this invocation is affected.

        Returns
        - The callback result, or None when parsing failed.
        """
        try:
            values = self.parse(prompt)
        except CommandException as exception:
            self.trigger(exception)
            return None
        return self._callback(*values)

    def completer(self, name, /):
        """
        Return the completer declared on the cardinal bound to parameter 'name'.

        Returns
        - the completer, or None when the cardinal declares no completion.

        Raises
        - KeyError: when the command has no such cardinal.
        - CompleterConstructionError: when the registry cannot build the completer.
        """
        cardinal = self._cardinals[name]
        if cardinal.completion is None:
            return None
        return self.registry.resolve(cardinal.completion)

    def complete(self, prompt, /):
        """
        Return suggestions for the token under the cursor at the end of prompt.

        Behavior
        - A prompt ending in whitespace (or empty) completes a new, empty token.
        - The token position selects the cardinal; no cardinal or no completion
          yields an empty tuple.
        - The completer receives the partial token and, as context, this command,
          the 0-based index of the cardinal and the preceding tokens.
        - When the completer cannot be built a CompletionUnavailableWarning is
          triggered and an empty tuple is returned.
        """
        if not isinstance(prompt, str):
            raise TypeError("complete() argument must be a string")
        try:
            tokens = shlex.split(prompt)
        except ValueError:
            # unterminated quote: the user is still typing it
            tokens = prompt.split()
        if not prompt or prompt[-1].isspace():
            tokens.append("")

        index = len(tokens) - 1
        try:
            name = tuple(self._cardinals)[index]
        except IndexError:
            return ()

        try:
            completer = self.completer(name)
        except CompleterConstructionError as exception:
            self.trigger(CompletionUnavailableWarning(
                "no suggestions for %s at %s position" % (
                    coalesce(self._cardinals[name].metavar, name.upper()), _ordinal(index + 1)
                ),
                hint=exception.message,
                exception=exception,
            ))
            return ()
        if completer is None:
            return ()

        return tuple(completer.__complete__(
            tokens[-1], command=self, index=index, arguments=tuple(tokens[:-1])
        ))

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)

    def __repr__(self):
        return f"{self.__typename__}({", ".join("%s=%r" % pair for pair in self.__rich_repr__())})"


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct:    cmd = command(func, name="x")
    - Decorator: @command(name="x") / @command
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands or callables.

    Behavior
    - If 'object' implements __invoke__, call it with prompt and return its result.
    - If 'object' is a plain callable, wrap it as a Command and then invoke.
    - Otherwise, raise TypeError.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    if callable(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Command",
    "command",
    "invoke",
)
