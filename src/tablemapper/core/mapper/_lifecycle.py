"""Before/after event emission for DataMapper operations."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Self

from tablemapper.contracts.enums import HookPhase, OperationKind
from tablemapper.contracts.events import MapperEvent

if TYPE_CHECKING:
    from tablemapper.core.hooks import HookDispatcherProtocol

EventHandler = Callable[[MapperEvent], None]


class LifecycleMixin:
    """Event triggering and mapper-local handlers. Mixed into DataMapper."""

    # Shared state annotations (set by DataMapper.__init__)
    _dispatcher: HookDispatcherProtocol
    _handlers: dict[tuple[OperationKind, HookPhase], list[EventHandler]]

    def add_handler(self, kind: OperationKind, phase: HookPhase, handler: EventHandler) -> Self:
        """Register a handler run after external listeners, unless the event is stopped.

        Handlers for the same (kind, phase) run in registration order.
        """
        self._handlers.setdefault((OperationKind(kind), HookPhase(phase)), []).append(handler)
        return self

    def remove_handler(self, kind: OperationKind, phase: HookPhase, handler: EventHandler) -> Self:
        handlers = self._handlers.get((OperationKind(kind), HookPhase(phase)), [])
        if handler in handlers:
            handlers.remove(handler)
        return self

    def trigger_event(self, kind: OperationKind, phase: HookPhase, args: dict[str, Any] | None = None, result: Any = None) -> MapperEvent:
        event = MapperEvent(kind=kind, phase=phase, mapper=self, args=args if args is not None else {}, result=result)  # type: ignore[arg-type]
        event = self._dispatcher.trigger(event)
        if not event.stopped:
            for handler in list(self._handlers.get((kind, phase), ())):
                handler(event)
        return event

    def _before(self, kind: OperationKind, **args: Any) -> dict[str, Any]:
        """Emit BEFORE and return the (possibly rewritten) arguments."""
        return self.trigger_event(kind, HookPhase.BEFORE, args).args

    def _after(self, kind: OperationKind, result: Any) -> Any:
        """Emit AFTER and return the (possibly substituted) result."""
        return self.trigger_event(kind, HookPhase.AFTER, result=result).result
