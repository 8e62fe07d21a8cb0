# src/tablemapper/core/hooks.py
"""Lifecycle hook dispatch for mapper operations.

External listeners are pluggy plugins implementing the hook specifications
below. Every public mapper operation triggers one BEFORE and one AFTER
event; listeners mutate event.args / event.result in place.

Usage (implementing a listener):
    from tablemapper.core.hooks import hookimpl

    class AuditListener:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def tablemapper_after_operation(self, event):
            if event.kind is OperationKind.CREATE:
                log_created(event.result)

    dispatcher = PluggyHookDispatcher()
    dispatcher.register(AuditListener())
    mapper = DataMapper("articles", db=db, dispatcher=dispatcher)
"""

from typing import Protocol

import pluggy

from tablemapper.contracts.enums import HookPhase
from tablemapper.contracts.events import MapperEvent

# Project name for pluggy
PROJECT_NAME = "tablemapper"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class MapperHookSpec:
    """Hook specifications for mapper lifecycle listeners."""

    @hookspec
    def tablemapper_before_operation(self, event: MapperEvent) -> None:
        """Called before an operation runs.

        Listeners may rewrite event.args (conditions, order, start, limit,
        dataset, ...) and may call event.stop() to suppress handlers
        registered directly on the mapper.
        """

    @hookspec
    def tablemapper_after_operation(self, event: MapperEvent) -> None:
        """Called after an operation completed.

        Listeners may replace event.result.
        """


class HookDispatcherProtocol(Protocol):
    """Protocol for hook dispatchers.

    Allows both PluggyHookDispatcher and NullHookDispatcher to satisfy the
    interface without inheritance.
    """

    def trigger(self, event: MapperEvent) -> MapperEvent:
        """Deliver an event to all listeners and return it."""
        ...


class PluggyHookDispatcher:
    """Dispatches mapper events to pluggy-registered listeners.

    Listeners are called synchronously in pluggy's order (last registered
    first). Listener exceptions propagate to the mapper caller.
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(MapperHookSpec)

    def register(self, listener: object, name: str | None = None) -> None:
        """Register a listener object carrying @hookimpl methods.

        Raises:
            ValueError: If the listener (or name) is already registered
        """
        self._pm.register(listener, name=name)

    def unregister(self, listener: object) -> None:
        self._pm.unregister(listener)

    def is_registered(self, listener: object) -> bool:
        return self._pm.is_registered(listener)

    def trigger(self, event: MapperEvent) -> MapperEvent:
        if event.phase is HookPhase.BEFORE:
            self._pm.hook.tablemapper_before_operation(event=event)
        else:
            self._pm.hook.tablemapper_after_operation(event=event)
        return event


class NullHookDispatcher:
    """No-op dispatcher used when a mapper has no listeners attached.

    Does NOT inherit from PluggyHookDispatcher: there is no register(), so
    code that expects listeners to be called fails loudly instead of being
    silently ignored.
    """

    def trigger(self, event: MapperEvent) -> MapperEvent:
        return event
