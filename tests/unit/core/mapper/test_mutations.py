# tests/unit/core/mapper/test_mutations.py
"""Tests for transactional create/update/delete/flush."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy.exc import IntegrityError

from tablemapper.contracts.enums import CastType, HookPhase, OperationKind
from tablemapper.contracts.errors import FlushError, InputShapeError, MapperConfigurationError
from tablemapper.contracts.events import MapperEvent
from tablemapper.contracts.records import Record, RecordShape
from tablemapper.core.database import MapperDatabase
from tablemapper.core.mapper import DataMapper
from tablemapper.core.mapper._mutations import is_empty_key

FetchRows = Callable[[str], list[dict[str, Any]]]


class Article(Record):
    casts = {"params": CastType.JSON}


def _fail_on_call(mapper: DataMapper, monkeypatch: pytest.MonkeyPatch, method: str, call: int, error: BaseException) -> None:
    """Make mapper._ops.<method> raise `error` on its n-th call."""
    original = getattr(mapper._ops, method)
    calls: list[int] = []

    def wrapper(*args: Any, **kwargs: Any) -> Any:
        calls.append(1)
        if len(calls) == call:
            raise error
        return original(*args, **kwargs)

    monkeypatch.setattr(mapper._ops, method, wrapper)


class TestIsEmptyKey:
    @pytest.mark.parametrize("value", [None, "", 0, 0.0])
    def test_empty(self, value: Any) -> None:
        assert is_empty_key(value)

    @pytest.mark.parametrize("value", [1, "0", "abc", -1])
    def test_not_empty(self, value: Any) -> None:
        assert not is_empty_key(value)


class TestCreate:
    def test_generated_keys_written_back(self, articles: DataMapper) -> None:
        created = articles.create([{"title": "a", "catid": 1}, {"title": "b", "catid": 1}])

        assert created.column("id") == [1, 2]

    def test_caller_records_are_updated_in_place(self, articles: DataMapper) -> None:
        record = Record({"title": "a", "catid": 1})

        articles.create([record])

        assert record["id"] == 1

    def test_empty_key_is_left_to_the_database(self, articles: DataMapper) -> None:
        assert articles.create_one({"id": 0, "title": "a", "catid": 1})["id"] == 1

    def test_explicit_key_kept(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"id": 40, "title": "a", "catid": 1})

        assert fetch_rows("SELECT id FROM articles") == [{"id": 40}]

    def test_none_on_not_null_column_takes_declared_default(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "a", "catid": 1, "status": None})

        assert fetch_rows("SELECT status, hits, note FROM articles") == [{"status": "new", "hits": 0, "note": None}]

    def test_missing_not_null_columns_get_type_defaults(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"note": "only a note"})

        assert fetch_rows("SELECT title, catid FROM articles") == [{"title": "", "catid": 0}]

    def test_missing_nullable_columns_keep_their_defaults(self, counters: DataMapper, fetch_rows: FetchRows) -> None:
        created = counters.create_one({})

        rows = fetch_rows("SELECT id, hits, created, label FROM counters")
        assert created["id"] == 1
        assert rows[0]["hits"] == 7
        assert rows[0]["created"] is not None
        assert rows[0]["label"] is None

    def test_explicit_none_on_nullable_column_is_stored(self, counters: DataMapper, fetch_rows: FetchRows) -> None:
        counters.create_one({"hits": None, "created": None, "label": "x"})

        assert fetch_rows("SELECT hits, created, label FROM counters") == [{"hits": None, "created": None, "label": "x"}]

    def test_rich_values_and_unknown_keys(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "a", "catid": "3", "created": datetime(2024, 1, 2, 3, 4, 5), "params": {"x": 1}, "bogus": 1})

        assert fetch_rows("SELECT catid, created, params FROM articles") == [
            {"catid": 3, "created": "2024-01-02 03:04:05", "params": None}
        ]

    def test_casts_applied_before_normalization(self, db: MapperDatabase, fetch_rows: FetchRows) -> None:
        mapper = DataMapper("articles", db=db, shape=RecordShape(record_factory=Article))

        mapper.create_one({"title": "a", "catid": 1, "params": {"x": 1}})

        assert fetch_rows("SELECT params FROM articles") == [{"params": '{"x": 1}'}]

    def test_failure_rolls_back_whole_dataset(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        with pytest.raises(IntegrityError):
            articles.create([{"id": 10, "title": "a", "catid": 1}, {"id": 10, "title": "b", "catid": 1}])

        assert fetch_rows("SELECT id FROM articles") == []
        assert not articles.db.in_transaction

    def test_original_exception_propagates(self, articles: DataMapper, monkeypatch: pytest.MonkeyPatch, fetch_rows: FetchRows) -> None:
        error = RuntimeError("disk full")
        _fail_on_call(articles, monkeypatch, "insert_one", 2, error)

        with pytest.raises(RuntimeError) as exc_info:
            articles.create([{"title": "a", "catid": 1}, {"title": "b", "catid": 1}])

        assert exc_info.value is error
        assert fetch_rows("SELECT id FROM articles") == []

    def test_without_transaction_earlier_rows_persist(self, db: MapperDatabase, monkeypatch: pytest.MonkeyPatch, fetch_rows: FetchRows) -> None:
        mapper = DataMapper("articles", db=db, use_transaction=False)
        _fail_on_call(mapper, monkeypatch, "insert_one", 2, RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            mapper.create([{"title": "a", "catid": 1}, {"title": "b", "catid": 1}])

        assert fetch_rows("SELECT title FROM articles") == [{"title": "a"}]

    def test_composite_key_table(self, tag_maps: DataMapper, fetch_rows: FetchRows) -> None:
        tag_maps.create([{"article_id": 1, "tag_id": 2}])

        assert fetch_rows("SELECT article_id, tag_id, ordering FROM tag_maps") == [{"article_id": 1, "tag_id": 2, "ordering": 0}]

    @pytest.mark.parametrize("dataset", [{"title": "a"}, "title", 5])
    def test_rejects_non_dataset(self, articles: DataMapper, dataset: Any) -> None:
        with pytest.raises(InputShapeError):
            articles.create(dataset)

    def test_no_table_raises(self, db: MapperDatabase) -> None:
        with pytest.raises(MapperConfigurationError):
            DataMapper(db=db).create([{"title": "a"}])


class TestUpdate:
    @pytest.fixture(autouse=True)
    def _row(self, articles: DataMapper) -> None:
        articles.create_one({"title": "a", "catid": 1, "note": "keep", "hits": 2})

    def test_none_left_untouched_by_default(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.update_one({"id": 1, "note": None, "hits": 3})

        assert fetch_rows("SELECT note, hits FROM articles") == [{"note": "keep", "hits": 3}]

    def test_update_nulls_writes_defaults(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.update_one({"id": 1, "note": None, "title": None}, update_nulls=True)

        assert fetch_rows("SELECT note, title FROM articles") == [{"note": None, "title": ""}]

    def test_absent_fields_not_touched(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.update_one({"id": 1, "title": "b"}, update_nulls=True)

        assert fetch_rows("SELECT title, note, hits FROM articles") == [{"title": "b", "note": "keep", "hits": 2}]

    def test_custom_condition_fields(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "c", "catid": 2})

        articles.update([{"catid": 1, "status": "published"}], cond_fields="catid")

        assert fetch_rows("SELECT status FROM articles ORDER BY id") == [{"status": "published"}, {"status": "new"}]

    def test_update_batch(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "b", "catid": 1})

        assert articles.update_batch({"status": "archived", "bogus": 1}, {"catid": 1}) is True

        assert fetch_rows("SELECT status FROM articles") == [{"status": "archived"}, {"status": "archived"}]

    def test_update_batch_scalar_targets_primary_key(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "b", "catid": 1})

        articles.update_batch({"hits": 10}, 2)

        assert fetch_rows("SELECT hits FROM articles ORDER BY id") == [{"hits": 2}, {"hits": 10}]


class TestSave:
    def test_creates_new_and_updates_existing(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "a", "catid": 1})

        saved = articles.save([{"title": "new", "catid": 2}, {"id": 1, "title": "renamed"}])

        assert saved.column("id") == [2, 1]
        assert fetch_rows("SELECT id, title FROM articles ORDER BY id") == [{"id": 1, "title": "renamed"}, {"id": 2, "title": "new"}]

    def test_save_one_creates(self, articles: DataMapper) -> None:
        assert articles.save_one({"title": "a", "catid": 1})["id"] == 1

    def test_save_is_atomic(self, articles: DataMapper, monkeypatch: pytest.MonkeyPatch, fetch_rows: FetchRows) -> None:
        articles.create_one({"title": "a", "catid": 1})
        _fail_on_call(articles, monkeypatch, "update_one", 1, RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            articles.save([{"title": "new", "catid": 2}, {"id": 1, "title": "renamed"}])

        assert fetch_rows("SELECT id, title FROM articles") == [{"id": 1, "title": "a"}]


class TestDelete:
    @pytest.fixture(autouse=True)
    def _rows(self, articles: DataMapper) -> None:
        articles.create([{"title": t, "catid": 1} for t in "abc"])

    def test_scalar_deletes_by_primary_key(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        assert articles.delete(2) is True

        assert fetch_rows("SELECT id FROM articles") == [{"id": 1}, {"id": 3}]

    def test_list_of_keys(self, articles: DataMapper, fetch_rows: FetchRows) -> None:
        articles.delete([1, 3])

        assert fetch_rows("SELECT id FROM articles") == [{"id": 2}]

    def test_zero_matches_is_success(self, articles: DataMapper) -> None:
        assert articles.delete({"catid": 99}) is True

    def test_scalar_on_composite_key_raises(self, tag_maps: DataMapper) -> None:
        with pytest.raises(MapperConfigurationError, match="multiple primary keys"):
            tag_maps.delete(1)


class TestFlush:
    @pytest.fixture(autouse=True)
    def _rows(self, tag_maps: DataMapper) -> None:
        tag_maps.create(
            [
                {"article_id": 1, "tag_id": 1},
                {"article_id": 1, "tag_id": 5},
                {"article_id": 2, "tag_id": 1},
            ]
        )

    def test_replaces_matching_rows(self, tag_maps: DataMapper, fetch_rows: FetchRows) -> None:
        created = tag_maps.flush([{"article_id": 1, "tag_id": 2}, {"article_id": 1, "tag_id": 3}], {"article_id": 1})

        assert len(created) == 2
        assert fetch_rows("SELECT article_id, tag_id FROM tag_maps ORDER BY article_id, tag_id") == [
            {"article_id": 1, "tag_id": 2},
            {"article_id": 1, "tag_id": 3},
            {"article_id": 2, "tag_id": 1},
        ]

    def test_reported_delete_failure_raises_and_rolls_back(self, tag_maps: DataMapper, fetch_rows: FetchRows) -> None:
        def report_failure(event: MapperEvent) -> None:
            event.result = False

        tag_maps.add_handler(OperationKind.DELETE, HookPhase.AFTER, report_failure)

        with pytest.raises(FlushError, match="Delete row fail when updating relations table: tag_maps") as exc_info:
            tag_maps.flush([{"article_id": 1, "tag_id": 2}], {"article_id": 1})

        assert exc_info.value.stage == "delete"
        assert len(fetch_rows("SELECT * FROM tag_maps")) == 3

    def test_reported_insert_failure(self, tag_maps: DataMapper, fetch_rows: FetchRows) -> None:
        def report_failure(event: MapperEvent) -> None:
            event.result = None

        tag_maps.add_handler(OperationKind.CREATE, HookPhase.AFTER, report_failure)

        with pytest.raises(FlushError) as exc_info:
            tag_maps.flush([{"article_id": 1, "tag_id": 2}], {"article_id": 1})

        assert exc_info.value.stage == "insert"
        assert len(fetch_rows("SELECT * FROM tag_maps")) == 3

    def test_empty_dataset_only_deletes(self, tag_maps: DataMapper, fetch_rows: FetchRows) -> None:
        assert len(tag_maps.flush([], {"article_id": 1})) == 0

        assert fetch_rows("SELECT article_id FROM tag_maps") == [{"article_id": 2}]
