# tests/unit/core/mapper/test_lifecycle.py
"""Tests for before/after events around mapper operations."""

from typing import Any

import pytest
from sqlalchemy.exc import IntegrityError

from tablemapper.contracts.enums import HookPhase, OperationKind
from tablemapper.contracts.events import MapperEvent
from tablemapper.core.database import MapperDatabase
from tablemapper.core.hooks import PluggyHookDispatcher, hookimpl
from tablemapper.core.mapper import DataMapper


class EventLog:
    """Listener recording every event name it sees."""

    def __init__(self) -> None:
        self.names: list[str] = []

    @hookimpl
    def tablemapper_before_operation(self, event: MapperEvent) -> None:
        self.names.append(event.name)

    @hookimpl
    def tablemapper_after_operation(self, event: MapperEvent) -> None:
        self.names.append(event.name)


class Stopper:
    @hookimpl
    def tablemapper_before_operation(self, event: MapperEvent) -> None:
        event.stop()


@pytest.fixture
def log() -> EventLog:
    return EventLog()


@pytest.fixture
def mapper(db: MapperDatabase, log: EventLog) -> DataMapper:
    dispatcher = PluggyHookDispatcher()
    dispatcher.register(log)
    mapper = DataMapper("articles", db=db, dispatcher=dispatcher)
    mapper.create([{"title": "a", "catid": 1}, {"title": "b", "catid": 2}])
    log.names.clear()
    return mapper


class TestEventPairs:
    def test_create_one_wraps_create(self, mapper: DataMapper, log: EventLog) -> None:
        mapper.create_one({"title": "c", "catid": 1})

        assert log.names == ["onBeforeCreateOne", "onBeforeCreate", "onAfterCreate", "onAfterCreateOne"]

    def test_find_one_wraps_find(self, mapper: DataMapper, log: EventLog) -> None:
        mapper.find_one({"id": 1})

        assert log.names == ["onBeforeFindOne", "onBeforeFind", "onAfterFind", "onAfterFindOne"]

    def test_flush_emits_nested_delete_and_create(self, mapper: DataMapper, log: EventLog) -> None:
        mapper.flush([{"title": "z", "catid": 9}], {"catid": 9})

        assert log.names == ["onBeforeFlush", "onBeforeDelete", "onAfterDelete", "onBeforeCreate", "onAfterCreate", "onAfterFlush"]

    def test_find_iterate_fires_eagerly(self, mapper: DataMapper, log: EventLog) -> None:
        rows = mapper.find_iterate()

        assert log.names == ["onBeforeFindIterate", "onAfterFindIterate"]
        assert len(list(rows)) == 2

    def test_failed_operation_emits_no_after_event(self, mapper: DataMapper, log: EventLog) -> None:
        with pytest.raises(IntegrityError):
            mapper.create([{"id": 1, "title": "dup", "catid": 1}])

        assert "onAfterCreate" not in log.names


class TestArgumentRewrite:
    def test_before_handler_rewrites_conditions(self, mapper: DataMapper) -> None:
        def only_category_two(event: MapperEvent) -> None:
            event.args["conditions"]["catid"] = 2

        mapper.add_handler(OperationKind.FIND, HookPhase.BEFORE, only_category_two)

        assert mapper.find().column("title") == ["b"]

    def test_before_handler_rewrites_limit(self, mapper: DataMapper) -> None:
        mapper.add_handler(OperationKind.FIND, HookPhase.BEFORE, lambda event: event.args.update(limit=1))

        assert len(mapper.find()) == 1

    def test_before_handler_rewrites_dataset(self, mapper: DataMapper) -> None:
        def stamp(event: MapperEvent) -> None:
            event.args["dataset"] = [{**row, "status": "imported"} for row in event.args["dataset"]]

        mapper.add_handler(OperationKind.CREATE, HookPhase.BEFORE, stamp)
        mapper.create([{"title": "c", "catid": 3}])

        assert mapper.find_one({"catid": 3})["status"] == "imported"  # type: ignore[index]

    def test_after_handler_substitutes_result(self, mapper: DataMapper) -> None:
        mapper.add_handler(OperationKind.COUNT, HookPhase.AFTER, lambda event: setattr(event, "result", 42))

        assert mapper.count() == 42


class TestHandlerOrdering:
    def test_local_handlers_run_after_listeners_in_registration_order(self, mapper: DataMapper, log: EventLog) -> None:
        def first(event: MapperEvent) -> None:
            log.names.append("first")

        def second(event: MapperEvent) -> None:
            log.names.append("second")

        mapper.add_handler(OperationKind.COUNT, HookPhase.BEFORE, first)
        mapper.add_handler(OperationKind.COUNT, HookPhase.BEFORE, second)
        mapper.count()

        assert log.names == ["onBeforeCount", "first", "second", "onAfterCount"]

    def test_stop_suppresses_local_handlers(self, mapper: DataMapper) -> None:
        calls: list[Any] = []
        mapper.dispatcher.register(Stopper())  # type: ignore[attr-defined]
        mapper.add_handler(OperationKind.FIND, HookPhase.BEFORE, calls.append)

        mapper.find()

        assert calls == []

    def test_remove_handler(self, mapper: DataMapper) -> None:
        calls: list[Any] = []
        mapper.add_handler(OperationKind.FIND, HookPhase.BEFORE, calls.append)
        mapper.remove_handler(OperationKind.FIND, HookPhase.BEFORE, calls.append)

        mapper.find()

        assert calls == []

    def test_trigger_event_directly(self, mapper: DataMapper) -> None:
        event = mapper.trigger_event(OperationKind.SYNC, HookPhase.AFTER, result="done")

        assert event.mapper is mapper
        assert event.result == "done"
