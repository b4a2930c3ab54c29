"""
Sextant completion layer: completion descriptors and the completer registry.

What this module provides
- Completion: immutable declaration attached to a command parameter stating which
  completer kind to use, an optional identifier distinguishing configurations of the
  same kind, and whether the instance is shared.
- normalize(id): the single identifier rule used by every registry key.
- CompleterRegistry: lookup/cache keyed by (kind, identifier) that builds a fresh
  completer per call or hands out a cached shared one.

Completers
- A completer is any object with a callable __complete__(prefix, /, **context)
  returning an iterable of suggestion strings. The registry never calls it; it only
  locates, builds and caches completers.
- A kind is usually the completer class itself. Kinds without a no-argument
  constructor get an explicit factory through CompleterRegistry.provide().

Quick example
    >>> registry = CompleterRegistry()
    >>> completion = Completion(ColorCompleter, id="web", shared=True)
    >>> registry.resolve(completion) is registry.resolve(completion)
    True
"""
import functools
import operator
import threading
from types import MappingProxyType

from .faults import CompleterConstructionError
from .utils import *

DEFAULT_ID = "default"


def normalize(id=Unset, /):
    """
    Return the canonical form of a completer identifier.

    Rules
    - Unset or None stands for the default identifier.
    - Surrounding whitespace is trimmed; an empty result becomes "default".
    - The result is lower-cased, so " Web ", "web" and "WEB" share one slot.

    The rule is idempotent: normalize(normalize(x)) == normalize(x).

    Raises
    - TypeError: when id is neither a string, None nor Unset.
    """
    if id is Unset or id is None:
        return DEFAULT_ID
    if not isinstance(id, str):
        raise TypeError("normalize() argument must be a string")
    return (id.strip() or DEFAULT_ID).lower()


def _completes(instance):
    return hasattr(instance, "__complete__") and callable(instance.__complete__)


class Completion:
    """
    Immutable completion descriptor: (kind, id, shared).

    Properties
    - kind: the completer kind (a class or any hashable factory handle).
    - id: the raw identifier as declared; normalization happens at lookup time,
      so an empty id means “use the default identifier”.
    - shared: when True the registry caches one instance per (kind, id).

    Descriptors compare and hash by their three fields and reject mutation.
    """
    __slots__ = ("_kind", "_id", "_shared")
    __introspectable__ = ("kind", "id", "shared")

    kind = mirror("kind")
    id = mirror("id")
    shared = mirror("shared")

    def __init__(self, kind, /, id="", shared=False):
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_id", id)
        object.__setattr__(self, "_shared", bool(shared))

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__name__!r} object is immutable")

    def __delattr__(self, name, /):
        raise AttributeError(f"{type(self).__name__!r} object is immutable")

    def __eq__(self, other, /):
        if not isinstance(other, Completion):
            return NotImplemented
        return (self.kind, self.id, self.shared) == (other.kind, other.id, other.shared)

    def __hash__(self):
        return hash((self.kind, self.id, self.shared))

    def __reduce__(self):
        return type(self), (self.kind, self.id, self.shared)

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)

    def __repr__(self):
        return f"completion({", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))})"

    def __completion__(self):
        """
        Introspection hook: identify this object as a completion descriptor.
        """
        return self


class CompleterRegistry:
    """
    Registry of completer instances keyed by (kind, canonical identifier).

    State
    - shared instances: kind -> {identifier -> completer}; at most one completer per
      canonical identifier of a kind. Inner maps are created on first store and
      dropped once empty.
    - factories: kind -> callable used to build completers of that kind.

    Lifecycle
    - Build one registry per framework instance; call clear() on reload/shutdown.
    - Entries stored by register() or by shared resolution persist until they are
      unregistered or the registry is cleared.

    Thread safety
    - All map access happens under one lock.
    - First-time shared resolution of a key is serialized by a per-key lock, so the
      factory of a shared key runs once even when callers race on it; callers of
      other keys are not blocked while it runs.
    """

    def __init__(self):
        self._instances = {}
        self._factories = {}
        self._guards = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    def clear(self):
        """
        Drop every shared completer of every kind.

        Factories registered through provide() are configuration and are kept.
        """
        with self._lock:
            self._instances.clear()

    def register(self, kind, instance, id=Unset, /):
        """
        Store instance as the shared completer of (kind, normalize(id)).

        Any completer previously stored at that exact slot is replaced; other
        identifiers of the same kind are untouched.

        Raises
        - TypeError: when instance does not implement __complete__ (None included).
        """
        if not _completes(instance):
            raise TypeError("register() instance must implement __complete__ method")
        id = normalize(id)
        with self._lock:
            self._instances.setdefault(kind, {})[id] = instance

    def share(self, instance, id=Unset, /):
        """
        Register instance under its own type as the kind.
        """
        self.register(type(instance), instance, id)

    def unregister(self, kind, id=Unset, /):
        """
        Remove the shared completer at (kind, normalize(id)); absent slots are ignored.
        """
        id = normalize(id)
        with self._lock:
            instances = self._instances.get(kind, {})
            instances.pop(id, None)
            if not instances:
                self._instances.pop(kind, None)

    def provide(self, kind, factory, /):
        """
        Use factory (a no-argument callable) to build completers of kind.

        Returns
        - factory, unchanged.
        """
        if not callable(factory):
            raise TypeError("provide() factory must be callable")
        with self._lock:
            self._factories[kind] = factory
        return factory

    def shared(self, kind, /):
        """
        Return a read-only snapshot of the shared completers of kind by identifier.
        """
        with self._lock:
            return MappingProxyType(dict(self._instances.get(kind, {})))

    def resolve(self, completion, /):
        """
        Return a completer for a completion descriptor, building it when needed.

        Behavior
        - Not shared: build a fresh completer and hand it over; nothing is kept.
        - Shared: return the completer cached at (kind, normalize(id)) unchanged, or
          build one, cache it and return it.

        Raises
        - TypeError: when completion is not a completion descriptor.
        - CompleterConstructionError: when the kind cannot be built; the original
          exception is chained and the cache is left as it was. A factory that
          resolves its own shared (kind, id) fails the same way instead of
          waiting on itself.
        """
        if not hasattr(completion, "__completion__") or not callable(completion.__completion__):
            raise TypeError("resolve() argument must be a completion")
        completion = completion.__completion__()
        kind = completion.kind

        if not completion.shared:
            return self._construct(kind)

        id = normalize(completion.id)
        with self._lock:
            try:
                return self._instances[kind][id]
            except KeyError:
                guard = self._guards.setdefault((kind, id), threading.Lock())

        constructing = self._constructing()
        if (kind, id) in constructing:
            raise CompleterConstructionError(
                kind, "completer kind %r resolved its own shared identifier %r while being constructed" % (kind, id)
            )

        with guard:
            # another caller may have built it while we were waiting
            with self._lock:
                try:
                    return self._instances[kind][id]
                except KeyError:
                    pass
            constructing.add((kind, id))
            try:
                instance = self._construct(kind)
                with self._lock:
                    return self._instances.setdefault(kind, {}).setdefault(id, instance)
            finally:
                constructing.discard((kind, id))
                with self._lock:
                    if self._guards.get((kind, id)) is guard:
                        del self._guards[kind, id]

    def _constructing(self):
        # shared keys whose factory is running on the calling thread
        try:
            return self._local.constructing
        except AttributeError:
            constructing = self._local.constructing = set()
            return constructing

    def _construct(self, kind):
        with self._lock:
            factory = self._factories.get(kind, kind)

        if not callable(factory):
            raise CompleterConstructionError(kind, "completer kind %r is not constructible" % (kind,))
        try:
            instance = factory()
        except Exception as exception:
            raise CompleterConstructionError(kind) from exception
        if not _completes(instance):
            raise CompleterConstructionError(
                kind, "completer kind %r produced an object without a __complete__ method" % (kind,)
            )
        return instance

    def __rich_repr__(self):
        with self._lock:
            snapshot = {kind: tuple(instances) for kind, instances in self._instances.items()}
        yield "shared", snapshot

    def __repr__(self):
        return f"completer-registry({", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))})"


__all__ = (
    "DEFAULT_ID",
    "normalize",
    "Completion",
    "CompleterRegistry",
)
