"""Lifecycle event contract passed to hook listeners."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tablemapper.contracts.enums import HookPhase, OperationKind

if TYPE_CHECKING:
    from tablemapper.core.mapper.mapper import DataMapper


@dataclass
class MapperEvent:
    """A before/after notification around one public mapper operation.

    `args` is deliberately mutable: BEFORE listeners may rewrite
    conditions, ordering or limits and the mapper reads them back.
    AFTER listeners may replace `result`.

    Example:
        class SoftDelete:
            @hookimpl
            def tablemapper_before_operation(self, event):
                if event.kind is OperationKind.FIND:
                    event.args["conditions"]["deleted"] = 0
    """

    kind: OperationKind
    phase: HookPhase
    mapper: "DataMapper"
    args: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    stopped: bool = False

    @property
    def name(self) -> str:
        """Event name in onBeforeFind / onAfterCreate form."""
        return f"on{self.phase.value}{self.kind.value}"

    def stop(self) -> None:
        """Prevent handlers registered on the mapper from running."""
        self.stopped = True
