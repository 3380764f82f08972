"""
Tests for the generic entity repository.

Tests verify:
- add/update/delete and the audit record each one appends
- partial-update merge semantics
- dynamic search, ordering and pagination
- audit failure handling in warning and raising modes
"""

import json
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from recordkeeper.config.constants import DatabaseEntityStatus, SearchOperator, SearchOrder
from recordkeeper.models import TableColumns
from recordkeeper.repositories import BaseDatabaseRepository, ObjectVersioningRepository
from recordkeeper.schemas import SearchParameter, SearchParameterRequest
from recordkeeper.utils.exceptions import (
    AuditWriteError,
    AuditWriteWarning,
    InvalidArgumentError,
    InvalidFilterValueError,
    InvalidStatusTransitionError,
    NotFoundError,
    StoreError,
)
from tests.entities import Widget


def _widget(**kwargs) -> Widget:
    kwargs.setdefault("created_by", "tester")
    return Widget(**kwargs)


def _request(*parameters, page=1, page_size=20, include_not_active=False) -> SearchParameterRequest:
    return SearchParameterRequest(
        page=page,
        page_size=page_size,
        search_parameters=list(parameters),
        include_not_active=include_not_active,
    )


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_assigns_fresh_ids(self, widget_repo):
        first = await widget_repo.add(_widget(some_property="A"))
        second = await widget_repo.add(_widget(some_property="B"))

        assert first != second
        assert first.int != 0
        assert second.int != 0

    @pytest.mark.asyncio
    async def test_add_sets_creation_fields(self, widget_repo):
        widget = _widget(some_property="A")
        widget_id = await widget_repo.add(widget)

        stored = await widget_repo.get_by_id(widget_id)
        assert stored.created_at is not None
        assert stored.status == DatabaseEntityStatus.ACTIVE
        assert stored.updated_at is None

    @pytest.mark.asyncio
    async def test_add_keeps_explicit_status(self, widget_repo):
        widget_id = await widget_repo.add(_widget(status=DatabaseEntityStatus.DRAFT))

        stored = await widget_repo.get_by_id(widget_id)
        assert stored.status == DatabaseEntityStatus.DRAFT

    @pytest.mark.asyncio
    async def test_add_writes_one_version_without_before_value(self, widget_repo, versioning):
        widget_id = await widget_repo.add(_widget(some_property="A"))

        versions = await versioning.get_by_object_id(widget_id)
        assert len(versions) == 1
        version = versions[0]
        assert version.before_value is None
        assert version.object_type == "Widget"
        assert version.updated_by == "tester"
        # No tenant: filed under the entity's own id
        assert version.object_tenant == widget_id
        assert json.loads(version.after_value)["some_property"] == "A"

    @pytest.mark.asyncio
    async def test_add_files_version_under_tenant(self, widget_repo, versioning):
        tenant_id = uuid.uuid4()
        widget_id = await widget_repo.add(_widget(tenant_id=tenant_id))

        versions = await versioning.get_by_object("Widget", tenant_id, widget_id)
        assert len(versions) == 1

    @pytest.mark.asyncio
    async def test_add_none_raises(self, widget_repo):
        with pytest.raises(InvalidArgumentError):
            await widget_repo.add(None)

    @pytest.mark.asyncio
    async def test_add_rejected_by_store_raises_store_error(self, widget_repo, versioning):
        # created_by is NOT NULL
        with pytest.raises(StoreError):
            await widget_repo.add(Widget(some_property="A"))

        assert await versioning.get_all() == []


class TestUpdate:
    @pytest.mark.asyncio
    async def test_unset_field_keeps_stored_value(self, widget_repo):
        widget_id = await widget_repo.add(_widget(some_property="A", quantity=3))

        updated = await widget_repo.update(Widget(id=widget_id, quantity=5))

        assert updated.some_property == "A"
        assert updated.quantity == 5

    @pytest.mark.asyncio
    async def test_provided_field_overwrites(self, widget_repo):
        widget_id = await widget_repo.add(_widget(some_property="A"))

        updated = await widget_repo.update(Widget(id=widget_id, some_property="B"))

        assert updated.some_property == "B"

    @pytest.mark.asyncio
    async def test_zero_false_and_empty_string_overwrite(self, widget_repo):
        widget_id = await widget_repo.add(
            _widget(some_property="A", quantity=3, is_featured=True)
        )

        updated = await widget_repo.update(
            Widget(id=widget_id, some_property="", quantity=0, is_featured=False)
        )

        assert updated.some_property == ""
        assert updated.quantity == 0
        assert updated.is_featured is False

    @pytest.mark.asyncio
    async def test_update_never_changes_creation_fields(self, widget_repo):
        widget = _widget(some_property="A")
        widget_id = await widget_repo.add(widget)
        created_at = widget.created_at

        updated = await widget_repo.update(
            Widget(
                id=widget_id,
                created_at=datetime(2001, 1, 1, tzinfo=timezone.utc),
                created_by="someone-else",
            )
        )

        assert updated.id == widget_id
        assert updated.created_at == created_at
        # created_by is not protected, only id and timestamps are
        assert updated.created_by == "someone-else"
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found_without_audit(self, widget_repo, versioning):
        with pytest.raises(NotFoundError):
            await widget_repo.update(Widget(id=uuid.uuid4(), some_property="B"))

        assert await versioning.get_all() == []

    @pytest.mark.asyncio
    async def test_update_none_raises(self, widget_repo):
        with pytest.raises(InvalidArgumentError):
            await widget_repo.update(None)

    @pytest.mark.asyncio
    async def test_update_writes_before_and_after(self, widget_repo, versioning):
        widget_id = await widget_repo.add(_widget(some_property="A"))

        await widget_repo.update(Widget(id=widget_id, some_property="B", updated_by="editor"))

        versions = await versioning.get_by_object_id(widget_id)
        assert len(versions) == 2
        latest = versions[0]
        assert json.loads(latest.before_value)["some_property"] == "A"
        assert json.loads(latest.after_value)["some_property"] == "B"
        assert latest.updated_by == "editor"

    @pytest.mark.asyncio
    async def test_update_by_falls_back_to_created_by(self, widget_repo, versioning):
        widget_id = await widget_repo.add(_widget(some_property="A"))

        await widget_repo.update(Widget(id=widget_id, some_property="B"))

        latest = (await versioning.get_by_object_id(widget_id))[0]
        assert latest.updated_by == "tester"

    @pytest.mark.asyncio
    async def test_update_stored_instance_in_place(self, widget_repo, versioning):
        widget_id = await widget_repo.add(_widget(some_property="A"))
        stored = await widget_repo.get_by_id(widget_id)

        stored.some_property = "C"
        updated = await widget_repo.update(stored)

        assert updated.some_property == "C"
        latest = (await versioning.get_by_object_id(widget_id))[0]
        assert json.loads(latest.before_value)["some_property"] == "A"
        assert json.loads(latest.after_value)["some_property"] == "C"

    @pytest.mark.asyncio
    async def test_deleted_cannot_come_back(self, widget_repo):
        widget_id = await widget_repo.add(_widget(some_property="A"))
        await widget_repo.delete(widget_id)

        with pytest.raises(InvalidStatusTransitionError):
            await widget_repo.update(Widget(id=widget_id, status=DatabaseEntityStatus.ACTIVE))

    @pytest.mark.asyncio
    async def test_deleted_can_still_be_edited(self, widget_repo):
        widget_id = await widget_repo.add(_widget(some_property="A"))
        await widget_repo.delete(widget_id)

        updated = await widget_repo.update(Widget(id=widget_id, some_property="B"))

        assert updated.some_property == "B"
        assert updated.status == DatabaseEntityStatus.DELETED


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_missing_returns_false_without_audit(self, widget_repo, versioning):
        assert await widget_repo.delete(uuid.uuid4()) is False
        assert await versioning.get_all() == []

    @pytest.mark.asyncio
    async def test_delete_soft_deletes_and_audits_once(self, widget_repo, versioning):
        widget_id = await widget_repo.add(_widget(some_property="A"))

        assert await widget_repo.delete(widget_id, deleted_by="remover") is True

        stored = await widget_repo.get_by_id(widget_id)
        assert stored is not None
        assert stored.status == DatabaseEntityStatus.DELETED

        versions = await versioning.get_by_object_id(widget_id)
        assert len(versions) == 2
        latest = versions[0]
        assert json.loads(latest.before_value)["status"] == "Active"
        assert json.loads(latest.after_value)["status"] == "Deleted"
        assert latest.updated_by == "remover"

    @pytest.mark.asyncio
    async def test_deleted_rows_leave_active_reads(self, widget_repo):
        keep = await widget_repo.add(_widget(some_property="keep"))
        gone = await widget_repo.add(_widget(some_property="gone"))
        await widget_repo.delete(gone)

        active_ids = [w.id for w in await widget_repo.get_all_active()]
        all_ids = [w.id for w in await widget_repo.get_all()]

        assert active_ids == [keep]
        assert all_ids == [keep, gone]
        assert await widget_repo.count() == 2
        assert await widget_repo.count(include_not_active=False) == 1


class TestReads:
    @pytest.mark.asyncio
    async def test_get_by_id_missing_returns_none(self, widget_repo):
        assert await widget_repo.get_by_id(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_exists(self, widget_repo):
        widget_id = await widget_repo.add(_widget())

        assert await widget_repo.exists(widget_id) is True
        assert await widget_repo.exists(uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_get_history_most_recent_first(self, widget_repo):
        widget_id = await widget_repo.add(_widget(some_property="A"))
        await widget_repo.update(Widget(id=widget_id, some_property="B"))

        history = await widget_repo.get_history(widget_id)

        assert len(history) == 2
        assert history[0].before_value is not None
        assert history[1].before_value is None

    @pytest.mark.asyncio
    async def test_get_table_columns_defaults_to_class_name(self, widget_repo, db_session):
        db_session.add(TableColumns(table_name="Widget", json='[{"ColumnName": "id", "Type": "uuid"}]'))
        await db_session.commit()

        row = await widget_repo.get_table_columns()

        assert row is not None
        assert row.columns[0].column_name == "id"
        assert await widget_repo.get_table_columns("Missing") is None


class TestSearch:
    @pytest.mark.asyncio
    async def test_greater_than_casts_text_to_integer(self, widget_repo):
        await widget_repo.add(_widget(some_property="5"))
        await widget_repo.add(_widget(some_property="10"))

        result = await widget_repo.search(
            _request(SearchParameter(key="SomeProperty", value="7", operator=SearchOperator.GREATER_THAN))
        )

        assert [w.some_property for w in result] == ["10"]

    @pytest.mark.asyncio
    async def test_less_than_casts_text_to_integer(self, widget_repo):
        await widget_repo.add(_widget(some_property="5"))
        await widget_repo.add(_widget(some_property="10"))

        result = await widget_repo.search(
            _request(SearchParameter(key="SomeProperty", value="7", operator=SearchOperator.LESS_THAN))
        )

        assert [w.some_property for w in result] == ["5"]

    @pytest.mark.asyncio
    async def test_integer_comparison_ignores_non_numeric_text(self, widget_repo):
        await widget_repo.add(_widget(some_property="5"))
        await widget_repo.add(_widget(some_property="abc"))
        await widget_repo.add(_widget(some_property="2024-01-01"))

        result = await widget_repo.search(
            _request(SearchParameter(key="SomeProperty", value="7", operator=SearchOperator.LESS_THAN))
        )

        assert [w.some_property for w in result] == ["5"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operator,expected",
        [
            (SearchOperator.GREATER_OR_EQUAL_THAN, ["2024-01-01"]),
            (SearchOperator.LESS_OR_EQUAL_THAN, ["2024-01-01"]),
            (SearchOperator.GREATER_THAN, []),
            (SearchOperator.LESS_THAN, []),
        ],
    )
    async def test_date_text_inclusive_bounds(self, widget_repo, operator, expected):
        await widget_repo.add(_widget(some_property="2024-01-01"))

        result = await widget_repo.search(
            _request(SearchParameter(key="SomeProperty", value="2024-01-01", operator=operator))
        )

        assert [w.some_property for w in result] == expected

    @pytest.mark.asyncio
    async def test_date_text_with_space_separator(self, widget_repo):
        await widget_repo.add(_widget(some_property="2024-01-01 10:00:00"))
        await widget_repo.add(_widget(some_property="2024-01-01 08:00:00"))

        result = await widget_repo.search(
            _request(
                SearchParameter(key="SomeProperty", value="2024-01-01T09:00:00", operator=SearchOperator.GREATER_THAN)
            )
        )

        assert [w.some_property for w in result] == ["2024-01-01 10:00:00"]

    @pytest.mark.asyncio
    async def test_date_comparison_ignores_non_date_text(self, widget_repo):
        await widget_repo.add(_widget(some_property="2023-06-01"))
        await widget_repo.add(_widget(some_property="10"))
        await widget_repo.add(_widget(some_property="soon"))

        result = await widget_repo.search(
            _request(SearchParameter(key="SomeProperty", value="2024-01-01", operator=SearchOperator.LESS_THAN))
        )

        assert [w.some_property for w in result] == ["2023-06-01"]

    @pytest.mark.asyncio
    async def test_ordering_on_number_field(self, widget_repo):
        for quantity in (1, 5, 9):
            await widget_repo.add(_widget(quantity=quantity))

        result = await widget_repo.search(
            _request(SearchParameter(key="quantity", value="5", operator=SearchOperator.GREATER_OR_EQUAL_THAN))
        )

        # Descending on the filtered field by default
        assert [w.quantity for w in result] == [9, 5]

    @pytest.mark.asyncio
    async def test_ordering_on_date_field(self, widget_repo):
        await widget_repo.add(_widget(some_property="old", released_at=datetime(2024, 1, 1)))
        await widget_repo.add(_widget(some_property="new", released_at=datetime(2024, 9, 1)))

        result = await widget_repo.search(
            _request(SearchParameter(key="ReleasedAt", value="2024-06-01", operator=SearchOperator.GREATER_THAN))
        )

        assert [w.some_property for w in result] == ["new"]

    @pytest.mark.asyncio
    async def test_unparsable_ordering_value_fails_search(self, widget_repo):
        await widget_repo.add(_widget(some_property="5"))

        with pytest.raises(InvalidFilterValueError):
            await widget_repo.search(
                _request(
                    SearchParameter(
                        key="SomeProperty",
                        value="not-a-number-or-date",
                        operator=SearchOperator.GREATER_THAN,
                    )
                )
            )

    @pytest.mark.asyncio
    async def test_unknown_field_is_skipped(self, widget_repo):
        await widget_repo.add(_widget(some_property="A"))
        await widget_repo.add(_widget(some_property="B"))

        result = await widget_repo.search(
            _request(SearchParameter(key="DoesNotExist", value="x", operator=SearchOperator.EQUALS))
        )

        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_contains_on_non_text_field_is_skipped(self, widget_repo):
        await widget_repo.add(_widget(quantity=1))
        await widget_repo.add(_widget(quantity=2))

        result = await widget_repo.search(
            _request(SearchParameter(key="quantity", value="1", operator=SearchOperator.CONTAINS))
        )

        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_contains_matches_substring(self, widget_repo):
        await widget_repo.add(_widget(some_property="blue widget"))
        await widget_repo.add(_widget(some_property="red gadget"))
        await widget_repo.add(_widget(some_property="100% widget"))

        result = await widget_repo.search(
            _request(SearchParameter(key="some_property", value="widget", operator=SearchOperator.CONTAINS))
        )
        percent = await widget_repo.search(
            _request(SearchParameter(key="some_property", value="%", operator=SearchOperator.CONTAINS))
        )

        assert sorted(w.some_property for w in result) == ["100% widget", "blue widget"]
        assert [w.some_property for w in percent] == ["100% widget"]

    @pytest.mark.asyncio
    async def test_equals_parses_field_types(self, widget_repo):
        await widget_repo.add(_widget(some_property="A", is_featured=True, quantity=3))
        await widget_repo.add(_widget(some_property="B", is_featured=False, quantity=4))

        featured = await widget_repo.search(
            _request(SearchParameter(key="IsFeatured", value="true", operator=SearchOperator.EQUALS))
        )
        by_quantity = await widget_repo.search(
            _request(SearchParameter(key="Quantity", value="4", operator=SearchOperator.EQUALS))
        )

        assert [w.some_property for w in featured] == ["A"]
        assert [w.some_property for w in by_quantity] == ["B"]

    @pytest.mark.asyncio
    async def test_equals_unparsable_boolean_raises(self, widget_repo):
        await widget_repo.add(_widget(is_featured=True))

        with pytest.raises(InvalidFilterValueError):
            await widget_repo.search(
                _request(SearchParameter(key="IsFeatured", value="maybe", operator=SearchOperator.EQUALS))
            )

    @pytest.mark.asyncio
    async def test_predicates_are_and_composed(self, widget_repo):
        await widget_repo.add(_widget(some_property="A", quantity=1))
        await widget_repo.add(_widget(some_property="A", quantity=2))
        await widget_repo.add(_widget(some_property="B", quantity=2))

        result = await widget_repo.search(
            _request(
                SearchParameter(key="SomeProperty", value="A"),
                SearchParameter(key="Quantity", value="2"),
            )
        )

        assert len(result) == 1
        assert (result[0].some_property, result[0].quantity) == ("A", 2)

    @pytest.mark.asyncio
    async def test_not_active_excluded_unless_requested(self, widget_repo):
        await widget_repo.add(_widget(some_property="A"))
        gone = await widget_repo.add(_widget(some_property="B"))
        await widget_repo.delete(gone)

        default = await widget_repo.search(_request())
        everything = await widget_repo.search(_request(include_not_active=True))

        assert [w.some_property for w in default] == ["A"]
        assert sorted(w.some_property for w in everything) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_parameter_order_sorts_results(self, widget_repo):
        for quantity in (2, 3, 1):
            await widget_repo.add(_widget(quantity=quantity))

        ascending = await widget_repo.search(
            _request(
                SearchParameter(
                    key="quantity",
                    value="0",
                    operator=SearchOperator.GREATER_THAN,
                    order=SearchOrder.ASCENDING,
                )
            )
        )

        assert [w.quantity for w in ascending] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_search_window(self, widget_repo):
        for i in range(5):
            await widget_repo.add(_widget(some_property=f"item-{i}"))

        result = await widget_repo.search(_request(page=2, page_size=2))

        assert [w.some_property for w in result] == ["item-2", "item-3"]


class TestPagination:
    @pytest.mark.asyncio
    async def test_second_page_of_five(self, widget_repo):
        for i in range(5):
            await widget_repo.add(_widget(some_property=f"item-{i}"))

        page = await widget_repo.get_paginated(2, 2)

        assert page.total_count == 5
        assert [w.some_property for w in page.data] == ["item-2", "item-3"]
        assert page.page == 2
        assert page.page_size == 2
        assert page.total_pages == 3
        assert page.has_next is True

    @pytest.mark.asyncio
    async def test_empty_set_echoes_request(self, widget_repo):
        page = await widget_repo.get_paginated(2, 2)

        assert page.total_count == 0
        assert page.data == []
        assert page.page == 2
        assert page.page_size == 2

    @pytest.mark.asyncio
    async def test_invalid_page_arguments(self, widget_repo):
        with pytest.raises(InvalidArgumentError):
            await widget_repo.get_paginated(0, 2)
        with pytest.raises(InvalidArgumentError):
            await widget_repo.get_paginated(1, 0)

    @pytest.mark.asyncio
    async def test_search_paginated_counts_filtered_set(self, widget_repo):
        for quantity in range(1, 6):
            await widget_repo.add(_widget(quantity=quantity))

        page = await widget_repo.search_paginated(
            _request(
                SearchParameter(key="quantity", value="2", operator=SearchOperator.GREATER_THAN),
                page=1,
                page_size=2,
            )
        )

        assert page.total_count == 3
        assert [w.quantity for w in page.data] == [5, 4]


class TestAuditFailure:
    @pytest.fixture
    def failing_versioning(self):
        versioning = AsyncMock(spec=ObjectVersioningRepository)
        versioning.add.side_effect = StoreError("object_version.add")
        return versioning

    @pytest.mark.asyncio
    async def test_warning_mode_keeps_row(self, db_session, failing_versioning):
        repo = BaseDatabaseRepository(Widget, db_session, failing_versioning, audit_failure_raises=False)

        with pytest.warns(AuditWriteWarning):
            widget_id = await repo.add(_widget(some_property="A"))

        assert await repo.get_by_id(widget_id) is not None
        failing_versioning.add.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_raising_mode_carries_result(self, db_session, failing_versioning):
        repo = BaseDatabaseRepository(Widget, db_session, failing_versioning, audit_failure_raises=True)

        with pytest.raises(AuditWriteError) as exc_info:
            await repo.add(_widget(some_property="A"))

        widget_id = exc_info.value.result
        assert isinstance(widget_id, uuid.UUID)
        assert await repo.exists(widget_id) is True

    @pytest.mark.asyncio
    async def test_update_returns_merged_entity_on_warning(self, db_session, versioning):
        repo = BaseDatabaseRepository(Widget, db_session, versioning, audit_failure_raises=False)
        widget_id = await repo.add(_widget(some_property="A"))

        versioning.add = AsyncMock(side_effect=StoreError("object_version.add"))
        with pytest.warns(AuditWriteWarning):
            updated = await repo.update(Widget(id=widget_id, some_property="B"))

        assert updated.some_property == "B"
