"""
Commands module behavioral tests (binding, dispatch, completion).

Scope
- Validate cardinal binding: conversion, defaults, missing and invalid tokens.
- Validate unused trailing tokens surface as UnusedArgumentsError.
- Validate shell mode, fallback handlers and the invoke() runner.
- Validate completion through the command registry, shared across commands.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (command, invoke, Cardinal, Completion).
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase, mock

from rich.console import Console

from sextant import (
    Command,
    command,
    invoke,
    Cardinal,
    Completion,
    CompleterRegistry,
    MissingArgumentError,
    InvalidArgumentError,
    UnusedArgumentsError,
    CompletionUnavailableWarning,
)


class DirectionCompleter:
    built = 0

    def __init__(self):
        type(self).built += 1

    def __complete__(self, prefix, /, **context):
        return (name for name in ("north", "south", "east", "west") if name.startswith(prefix))


class RecordingCompleter:
    def __init__(self):
        self.calls = []

    def __complete__(self, prefix, /, **context):
        self.calls.append((prefix, context))
        return [prefix + "!"]


class BrokenCompleter:
    def __init__(self):
        raise RuntimeError("no backend")

    def __complete__(self, prefix, /, **context):
        return []


def _capture():
    return Console(file=io.StringIO(), color_system=None, width=120, legacy_windows=False)


class TestBinding(TestCase):
    """Behavioral tests for binding tokens to cardinals."""

    def testBindsInOrder(self):
        @command
        def go(direction=Cardinal("DIRECTION"), speed=Cardinal("SPEED", default="normal")):
            return direction, speed

        self.assertEqual(invoke(go, "north fast"), ("north", "fast"))
        self.assertEqual(invoke(go, ["south"]), ("south", "normal"))

    def testConverterApplied(self):
        @command
        def repeat(times=Cardinal("TIMES", type=int)):
            return times

        self.assertEqual(invoke(repeat, "3"), 3)

    def testInvalidTokenRaises(self):
        @command
        def repeat(times=Cardinal("TIMES", type=int)):
            pass

        with self.assertRaises(InvalidArgumentError) as context:
            invoke(repeat, "three")
        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertIn("TIMES", context.exception.message)

    def testMissingTokenRaises(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            pass

        with self.assertRaises(MissingArgumentError) as context:
            invoke(go, "")
        self.assertIn("DIRECTION", context.exception.message)

    def testMetavarDefaultsToParameterName(self):
        @command
        def go(direction=Cardinal()):
            pass

        with self.assertRaises(MissingArgumentError) as context:
            invoke(go, [])
        self.assertIn("DIRECTION", context.exception.message)

    def testUnusedTrailingTokens(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            pass

        with self.assertRaises(UnusedArgumentsError) as context:
            go.parse(["north", "fast"])
        self.assertEqual(context.exception.unconsumed, "fast")
        self.assertEqual(context.exception.arguments, ("fast",))
        self.assertEqual(context.exception.options["index"], 2)

    def testUnusedTokenAfterEveryCardinalBound(self):
        @command
        def move(verb=Cardinal("VERB"), direction=Cardinal("DIRECTION")):
            pass

        with self.assertRaises(UnusedArgumentsError) as context:
            move.parse(["go", "north", "fast"])
        self.assertEqual(context.exception.unconsumed, "fast")
        self.assertEqual(context.exception.arguments, ("fast",))
        self.assertEqual(context.exception.options["index"], 3)

    def testUnusedTailKeepsOrder(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            pass

        with self.assertRaises(UnusedArgumentsError) as context:
            invoke(go, ["go", "north", "fast"])
        self.assertEqual(context.exception.unconsumed, "north fast")
        self.assertEqual(context.exception.arguments, ("north", "fast"))

    def testNoCardinalsRejectsAnyToken(self):
        @command
        def ping():
            return "pong"

        self.assertEqual(invoke(ping, []), "pong")
        with self.assertRaises(UnusedArgumentsError):
            invoke(ping, "extra")

    def testQuotedTokens(self):
        @command
        def say(text=Cardinal("TEXT")):
            return text

        self.assertEqual(invoke(say, '"hello world"'), "hello world")

    def testIterablePromptTrimsTokens(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            return direction

        self.assertEqual(invoke(go, ["  north ", "", " "]), "north")

    def testReadsArgvByDefault(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            return direction

        with mock.patch("sys.argv", ["prog", "east"]):
            self.assertEqual(invoke(go), "east")


class TestDeclaration(TestCase):
    """Behavioral tests for command declaration errors."""

    def testParameterWithoutCardinal(self):
        with self.assertRaises(TypeError):
            @command
            def go(direction):
                pass

    def testParameterWithForeignDefault(self):
        with self.assertRaises(TypeError):
            @command
            def go(direction="north"):
                pass

    def testKeywordOnlyParameter(self):
        with self.assertRaises(TypeError):
            @command
            def go(*, direction=Cardinal()):
                pass

    def testRequiredAfterOptional(self):
        with self.assertRaises(TypeError):
            @command
            def go(speed=Cardinal(default="normal"), direction=Cardinal()):
                pass

    def testRegistryMustBeRegistry(self):
        with self.assertRaises(TypeError):
            Command(lambda: None, registry={})

    def testNameAndDescrFromCallback(self):
        @command
        def go(direction=Cardinal()):
            """Move somewhere."""

        self.assertEqual(go.name, "go")
        self.assertEqual(go.descr, "Move somewhere.")
        self.assertEqual(tuple(go.cardinals), ("direction",))

    def testCommandStaysCallable(self):
        @command(name="walk")
        def go(direction=Cardinal()):
            return direction

        self.assertEqual(go.name, "walk")
        self.assertEqual(go("west"), "west")

    def testInvokeRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            invoke(42)


class TestDispatch(TestCase):
    """Behavioral tests for shell mode and fallback handlers."""

    def testShellModePrintsAndContinues(self):
        @command(shell=True)
        def go(direction=Cardinal("DIRECTION")):
            return direction

        capture = _capture()
        with mock.patch("sextant.faults.console", capture):
            self.assertIsNone(invoke(go, "north fast"))
            self.assertEqual(invoke(go, "north"), "north")
        output = capture.file.getvalue()
        self.assertIn("unconsumed arguments: fast", output)
        self.assertIn("go", output)

    def testFallbackReceivesFault(self):
        received = []

        @command
        def go(direction=Cardinal("DIRECTION")):
            return direction

        @go.fallback
        def handler(fault):
            received.append(fault)

        self.assertIsNone(invoke(go, "north fast"))
        self.assertEqual(len(received), 1)
        self.assertIsInstance(received[0], UnusedArgumentsError)
        self.assertEqual(received[0].arguments, ("fast",))
        self.assertIs(received[0].options["tool"], go)
        self.assertFalse(received[0].options["shell"])

    def testFallbackCannotBeOverridden(self):
        @command
        def go():
            pass

        go.fallback(print)
        with self.assertRaises(TypeError):
            go.fallback(print)

    def testFallbackMustBeCallable(self):
        @command
        def go():
            pass

        with self.assertRaises(TypeError):
            go.fallback("handler")

    def testPlainCallableIsWrapped(self):
        def go(direction=Cardinal()):
            return direction

        self.assertEqual(invoke(go, "up"), "up")


class TestCompletion(TestCase):
    """Behavioral tests for completion through the command registry."""

    def setUp(self):
        DirectionCompleter.built = 0

    def testCompletesFirstCardinal(self):
        @command
        def go(direction=Cardinal("DIRECTION", completion=DirectionCompleter)):
            pass

        self.assertEqual(go.complete("no"), ("north",))
        self.assertEqual(go.complete(""), ("north", "south", "east", "west"))

    def testCursorAfterWhitespaceSelectsNextCardinal(self):
        @command
        def go(
                direction=Cardinal("DIRECTION"),
                speed=Cardinal("SPEED", completion=RecordingCompleter),
        ):
            pass

        self.assertEqual(go.complete("north "), ("!",))
        self.assertEqual(go.complete("north fa"), ("fa!",))

    def testContextIsForwarded(self):
        completer = RecordingCompleter()
        registry = CompleterRegistry()
        registry.register(RecordingCompleter, completer)

        @command(registry=registry)
        def go(
                direction=Cardinal("DIRECTION"),
                speed=Cardinal("SPEED", completion=Completion(RecordingCompleter, shared=True)),
        ):
            pass

        go.complete("north f")
        prefix, context = completer.calls[-1]
        self.assertEqual(prefix, "f")
        self.assertIs(context["command"], go)
        self.assertEqual(context["index"], 1)
        self.assertEqual(context["arguments"], ("north",))

    def testBeyondLastCardinal(self):
        @command
        def go(direction=Cardinal("DIRECTION", completion=DirectionCompleter)):
            pass

        self.assertEqual(go.complete("north "), ())

    def testNoCompletionDeclared(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            pass

        self.assertEqual(go.complete("n"), ())
        self.assertIsNone(go.completer("direction"))

    def testUnterminatedQuote(self):
        @command
        def say(text=Cardinal("TEXT", completion=RecordingCompleter)):
            pass

        self.assertEqual(len(say.complete('"hel')), 1)

    def testFreshCompleterPerCall(self):
        @command
        def go(direction=Cardinal("DIRECTION", completion=DirectionCompleter)):
            pass

        self.assertIsNot(go.completer("direction"), go.completer("direction"))
        self.assertEqual(DirectionCompleter.built, 2)

    def testSharedRegistryAcrossCommands(self):
        registry = CompleterRegistry()
        completion = Completion(DirectionCompleter, "Compass", shared=True)

        @command(registry=registry)
        def go(direction=Cardinal("DIRECTION", completion=completion)):
            pass

        @command(registry=registry)
        def look(direction=Cardinal("DIRECTION", completion=Completion(DirectionCompleter, " compass ", True))):
            pass

        go.complete("n")
        look.complete("s")
        self.assertIs(go.completer("direction"), look.completer("direction"))
        self.assertEqual(DirectionCompleter.built, 1)
        self.assertEqual(set(registry.shared(DirectionCompleter)), {"compass"})

    def testClearRebuildsShared(self):
        @command
        def go(direction=Cardinal("DIRECTION", completion=Completion(DirectionCompleter, shared=True))):
            pass

        before = go.completer("direction")
        go.registry.clear()
        self.assertIsNot(go.completer("direction"), before)

    def testConstructionFailureWarns(self):
        @command
        def go(direction=Cardinal("DIRECTION", completion=BrokenCompleter)):
            pass

        with self.assertWarns(CompletionUnavailableWarning):
            self.assertEqual(go.complete("n"), ())

    def testConstructionFailureInShell(self):
        @command(shell=True)
        def go(direction=Cardinal("DIRECTION", completion=BrokenCompleter)):
            pass

        capture = _capture()
        with mock.patch("sextant.faults.console", capture):
            self.assertEqual(go.complete("n"), ())
        self.assertIn("no suggestions for DIRECTION", capture.file.getvalue())

    def testUnknownParameter(self):
        @command
        def go(direction=Cardinal("DIRECTION")):
            pass

        with self.assertRaises(KeyError):
            go.completer("speed")


if __name__ == "__main__":
    unittest.main()
