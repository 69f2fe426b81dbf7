"""Integration tests for CursorPaginator against SQLite."""
from __future__ import annotations

import base64
import logging
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import OperationalError

from keyset_paginator import (
    Base64CursorCodec,
    CursorPaginator,
    CursorValidationError,
    InvalidArgumentError,
    JsonCursorCodec,
    UnexpectedResultCountError,
    paginate,
)
from keyset_paginator.core.settings import PaginationSettings
from tests.models import Event, Priority, User, insert_users

pytestmark = pytest.mark.integration


def ids(page) -> list[int]:
    return [node.id for node in page.nodes]


class TestSingleOrder:
    """Six users ordered by id DESC, three per page."""

    @pytest.fixture
    def paginator(self) -> CursorPaginator[User]:
        return CursorPaginator(User, order_by={"id": "DESC"})

    async def test_no_limit_returns_everything(self, paginator, executor, six_users):
        page = await paginator.paginate(executor, select(User))

        assert page.total_count == 6
        assert ids(page) == [6, 5, 4, 3, 2, 1]
        assert page.has_prev_page is False
        assert page.has_next_page is False
        assert isinstance(page.prev_page_cursor, str)
        assert isinstance(page.next_page_cursor, str)

    async def test_walk_forward_and_back(self, paginator, executor, six_users):
        first = await paginator.paginate(executor, select(User), limit=3)
        assert first.total_count == 6
        assert ids(first) == [6, 5, 4]
        assert (first.has_prev_page, first.has_next_page) == (False, True)
        assert first.prev_page_cursor.startswith("prev:")
        assert first.next_page_cursor.startswith("next:")

        before_first = await paginator.paginate(
            executor, select(User), page_cursor=first.prev_page_cursor, limit=3
        )
        assert before_first.total_count == 6
        assert ids(before_first) == []
        assert (before_first.has_prev_page, before_first.has_next_page) == (False, True)
        assert before_first.prev_page_cursor is None
        assert before_first.next_page_cursor is None

        second = await paginator.paginate(
            executor, select(User), page_cursor=first.next_page_cursor, limit=3
        )
        assert ids(second) == [3, 2, 1]
        assert (second.has_prev_page, second.has_next_page) == (True, False)

        back = await paginator.paginate(
            executor, select(User), page_cursor=second.prev_page_cursor, limit=3
        )
        assert ids(back) == [6, 5, 4]
        assert (back.has_prev_page, back.has_next_page) == (False, True)

        past_end = await paginator.paginate(
            executor, select(User), page_cursor=second.next_page_cursor, limit=3
        )
        assert ids(past_end) == []
        assert (past_end.has_prev_page, past_end.has_next_page) == (True, False)
        assert past_end.prev_page_cursor is None
        assert past_end.next_page_cursor is None

    async def test_empty_result(self, paginator, executor):
        page = await paginator.paginate(executor, select(User), limit=3)

        assert page.total_count == 0
        assert page.nodes == []
        assert page.has_prev_page is False
        assert page.has_next_page is False
        assert page.prev_page_cursor is None
        assert page.next_page_cursor is None

    async def test_exact_fit_has_no_next_page(self, paginator, executor, six_users):
        page = await paginator.paginate(executor, select(User), limit=6)

        assert ids(page) == [6, 5, 4, 3, 2, 1]
        assert page.has_next_page is False

    async def test_total_count_respects_base_filters(self, paginator, executor, six_users):
        page = await paginator.paginate(executor, select(User).where(User.name != "a"), limit=2)

        assert page.total_count == 5
        assert ids(page) == [6, 5]

        rest = await paginator.paginate(
            executor,
            select(User).where(User.name != "a"),
            page_cursor=page.next_page_cursor,
        )
        assert rest.total_count == 5
        assert ids(rest) == [4, 3, 2]


class TestMultiOrder:
    """Names c, b, a, c, b, c ordered by name ASC then id DESC."""

    @pytest.fixture
    async def users(self, db_session):
        return await insert_users(
            db_session,
            [
                ("c", 1600000000),
                ("b", 1600000001),
                ("a", 1600000002),
                ("c", 1600000003),
                ("b", 1600000004),
                ("c", 1600000005),
            ],
        )

    @pytest.fixture
    def paginator(self) -> CursorPaginator[User]:
        return CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])

    async def test_secondary_key_breaks_ties(self, paginator, executor, users):
        page = await paginator.paginate(executor, select(User))

        assert ids(page) == [3, 5, 2, 6, 4, 1]

    async def test_walk_pages(self, paginator, executor, users):
        first = await paginator.paginate(executor, select(User), limit=2)
        assert ids(first) == [3, 5]
        assert (first.has_prev_page, first.has_next_page) == (False, True)

        second = await paginator.paginate(
            executor, select(User), limit=2, page_cursor=first.next_page_cursor
        )
        assert ids(second) == [2, 6]
        assert (second.has_prev_page, second.has_next_page) == (True, True)

        third = await paginator.paginate(
            executor, select(User), limit=2, page_cursor=second.next_page_cursor
        )
        assert ids(third) == [4, 1]
        assert (third.has_prev_page, third.has_next_page) == (True, False)

        back = await paginator.paginate(
            executor, select(User), limit=2, page_cursor=third.prev_page_cursor
        )
        assert ids(back) == [2, 6]
        assert (back.has_prev_page, back.has_next_page) == (True, True)

    @pytest.mark.parametrize("limit", [1, 2, 4, 5])
    async def test_following_cursors_reproduces_full_order(self, paginator, executor, users, limit):
        full = ids(await paginator.paginate(executor, select(User)))

        collected: list[int] = []
        page = await paginator.paginate(executor, select(User), limit=limit)
        collected += ids(page)
        while page.has_next_page:
            page = await paginator.paginate(
                executor, select(User), limit=limit, page_cursor=page.next_page_cursor
            )
            collected += ids(page)

        assert collected == full

        last_page = ids(page)
        backwards: list[int] = []
        while page.has_prev_page:
            page = await paginator.paginate(
                executor, select(User), limit=limit, page_cursor=page.prev_page_cursor
            )
            backwards = ids(page) + backwards
        assert backwards + last_page == full

    async def test_insertion_order_does_not_change_output(self, paginator, executor, db_session):
        await insert_users(db_session, [("b", 1), ("a", 2), ("b", 3), ("a", 4)])

        page = await paginator.paginate(executor, select(User))

        names = [node.name for node in page.nodes]
        assert names == ["a", "a", "b", "b"]
        assert ids(page) == [4, 2, 3, 1]


class TestTypeDecoratorColumn:
    """created_at is an int in Python and a DATETIME in the database."""

    @pytest.fixture
    async def users(self, db_session):
        return await insert_users(
            db_session,
            [
                ("a", 1600000000),
                ("b", 1600000003),
                ("b", 1600000005),
                ("c", 1600000002),
                ("c", 1600000004),
                ("c", 1600000001),
            ],
        )

    async def test_walk_pages(self, executor, users):
        paginator = CursorPaginator(User, order_by={"created_at": "DESC"})

        first = await paginator.paginate(executor, select(User), limit=3)
        assert ids(first) == [3, 5, 2]
        assert (first.has_prev_page, first.has_next_page) == (False, True)

        before_first = await paginator.paginate(
            executor, select(User), page_cursor=first.prev_page_cursor, limit=3
        )
        assert ids(before_first) == []
        assert (before_first.has_prev_page, before_first.has_next_page) == (False, True)

        second = await paginator.paginate(
            executor, select(User), page_cursor=first.next_page_cursor, limit=3
        )
        assert ids(second) == [4, 6, 1]
        assert (second.has_prev_page, second.has_next_page) == (True, False)

        back = await paginator.paginate(
            executor, select(User), page_cursor=second.prev_page_cursor, limit=3
        )
        assert ids(back) == [3, 5, 2]

    @pytest.mark.parametrize("created_at", ["abc", [1600000000]])
    async def test_unbindable_cursor_value_runs_no_query(self, created_at):
        paginator = CursorPaginator(User, order_by=[{"created_at": "DESC"}, {"id": "DESC"}])
        executor = AsyncMock()
        token = "next:" + Base64CursorCodec().stringify({"created_at": created_at, "id": 1})

        with pytest.raises(CursorValidationError, match="created_at"):
            await paginator.paginate(executor, select(User), page_cursor=token, limit=3)

        executor.fetch_page.assert_not_awaited()

    async def test_custom_value_codec(self, executor, users):
        class IsoTimestampCodec:
            def dump(self, value: int) -> str:
                return datetime.fromtimestamp(value, UTC).isoformat()

            def load(self, raw: str) -> int:
                return int(datetime.fromisoformat(raw).timestamp())

        paginator = CursorPaginator(
            User,
            order_by={"created_at": "ASC"},
            codec=JsonCursorCodec(),
            value_codecs={"created_at": IsoTimestampCodec()},
        )

        first = await paginator.paginate(executor, select(User), limit=2)
        assert ids(first) == [1, 6]
        assert first.next_page_cursor == 'next:{"created_at":"2020-09-13T12:26:41+00:00"}'

        second = await paginator.paginate(
            executor, select(User), limit=2, page_cursor=first.next_page_cursor
        )
        assert ids(second) == [4, 2]


class TestTypedColumns:
    async def test_datetime_uuid_and_decimal_keys(self, executor, db_session):
        start = datetime(2025, 1, 1, 12, 0)
        events = [
            Event(
                id=uuid.UUID(int=i),
                happened_at=start + timedelta(minutes=i // 2),
                amount=Decimal("1.50") * i,
                priority=Priority.LOW if i % 2 else Priority.HIGH,
            )
            for i in range(1, 8)
        ]
        db_session.add_all(events)
        await db_session.commit()

        paginator = CursorPaginator(Event, order_by=[{"happened_at": "DESC"}, {"id": "ASC"}])
        expected = [
            uuid.UUID(int=i) for i in sorted(range(1, 8), key=lambda i: (-(i // 2), i))
        ]

        collected = []
        page = await paginator.paginate(executor, select(Event), limit=3)
        collected += [e.id for e in page.nodes]
        while page.has_next_page:
            page = await paginator.paginate(
                executor, select(Event), limit=3, page_cursor=page.next_page_cursor
            )
            collected += [e.id for e in page.nodes]

        assert collected == expected

        by_amount = CursorPaginator(Event, order_by=[{"amount": "ASC"}], codec=JsonCursorCodec())
        first = await by_amount.paginate(executor, select(Event), limit=2)
        assert first.next_page_cursor == 'next:{"amount":"3.00"}'
        second = await by_amount.paginate(
            executor, select(Event), limit=2, page_cursor=first.next_page_cursor
        )
        assert [e.amount for e in second.nodes] == [Decimal("4.50"), Decimal("6.00")]


class TestConcurrentChanges:
    @pytest.fixture
    def paginator(self) -> CursorPaginator[User]:
        return CursorPaginator(User, order_by={"id": "DESC"})

    async def test_deleting_returned_rows_keeps_position(
        self, paginator, executor, db_session, six_users
    ):
        first = await paginator.paginate(executor, select(User), limit=3)
        assert ids(first) == [6, 5, 4]

        # 4 is the boundary row the next cursor points at
        await db_session.execute(delete(User).where(User.id.in_([6, 4])))
        await db_session.commit()

        second = await paginator.paginate(
            executor, select(User), page_cursor=first.next_page_cursor, limit=3
        )
        assert ids(second) == [3, 2, 1]
        assert second.total_count == 4

    async def test_rows_inserted_before_cursor_do_not_shift_page(
        self, paginator, executor, db_session, six_users
    ):
        first = await paginator.paginate(executor, select(User), limit=3)

        await insert_users(db_session, [("d", 1600000010)])

        second = await paginator.paginate(
            executor, select(User), page_cursor=first.next_page_cursor, limit=3
        )
        assert ids(second) == [3, 2, 1]
        assert second.total_count == 7

    @pytest.mark.xfail(
        strict=True,
        reason="has_prev_page is assumed from the cursor; checking it would cost another query",
    )
    async def test_has_prev_page_when_previous_rows_were_deleted(
        self, paginator, executor, db_session, six_users
    ):
        first = await paginator.paginate(executor, select(User), limit=3)

        await db_session.execute(delete(User).where(User.id.in_([6, 5, 4])))
        await db_session.commit()

        second = await paginator.paginate(
            executor, select(User), page_cursor=first.next_page_cursor, limit=3
        )
        assert ids(second) == [3, 2, 1]
        assert second.has_prev_page is False


class TestCursorValidation:
    @pytest.fixture
    def paginator(self) -> CursorPaginator[User]:
        return CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])

    @pytest.mark.parametrize("limit", [0, -1, True, 1.5, "3"])
    async def test_invalid_limit_runs_no_query(self, paginator, limit):
        executor = AsyncMock()

        with pytest.raises(InvalidArgumentError) as exc_info:
            await paginator.paginate(executor, select(User), limit=limit)

        assert exc_info.value.argument == "limit"
        executor.fetch_page.assert_not_awaited()

    @pytest.mark.parametrize(
        "page_cursor",
        [
            "garbage",
            "next:",
            "next:!!!!",
            "sideways:" + Base64CursorCodec().stringify({"name": "a", "id": 1}),
            "next:" + Base64CursorCodec().stringify({"id": 1}),
            "next:" + Base64CursorCodec().stringify({"name": "a", "id": 1, "email": "x"}),
            "next:" + Base64CursorCodec().stringify({"name": "a", "email": "x"}),
            "next:" + Base64CursorCodec().stringify({"name": "a", "id": "1"}),
            "prev:" + Base64CursorCodec().stringify({"name": 1, "id": 1}),
            "next:" + base64.urlsafe_b64encode(b"[" * 200_000).decode(),
        ],
    )
    async def test_invalid_cursor_runs_no_query(self, paginator, page_cursor):
        executor = AsyncMock()

        with pytest.raises(CursorValidationError):
            await paginator.paginate(executor, select(User), page_cursor=page_cursor, limit=2)

        executor.fetch_page.assert_not_awaited()

    async def test_cursor_from_other_ordering_is_rejected(self, executor, six_users):
        by_id = CursorPaginator(User, order_by={"id": "DESC"})
        by_name = CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])
        page = await by_id.paginate(executor, select(User), limit=2)

        with pytest.raises(CursorValidationError):
            await by_name.paginate(executor, select(User), page_cursor=page.next_page_cursor)

    async def test_injection_in_integer_key_is_rejected(self, executor, db_session, six_users):
        paginator = CursorPaginator(User, order_by={"id": "DESC"})
        token = "next:" + Base64CursorCodec().stringify({"id": ";;;;;;DROP TABLE Users;"})

        with pytest.raises(CursorValidationError):
            await paginator.paginate(executor, select(User), page_cursor=token, limit=3)

        count = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
        assert count == 6

    async def test_injection_in_string_key_is_an_inert_value(
        self, paginator, executor, db_session, six_users
    ):
        token = "next:" + Base64CursorCodec().stringify(
            {"name": "';;;;;;DROP TABLE users;--", "id": 1}
        )

        page = await paginator.paginate(executor, select(User), page_cursor=token, limit=10)

        # every name sorts after the payload's leading quote
        assert ids(page) == [1, 3, 2, 6, 5, 4]
        count = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
        assert count == 6


class TestRequestsAndShapes:
    @pytest.fixture
    def paginator(self) -> CursorPaginator[User]:
        return CursorPaginator(User, order_by={"id": "DESC"})

    def test_build_does_not_touch_statement(self, paginator):
        base = select(User).where(User.name != "z")
        before = str(base)

        request = paginator.build(base, limit=3)

        assert str(base) == before
        assert request.direction == "next"
        assert request.cursor_supplied is False
        assert "LIMIT" in str(request.rows_statement)
        assert "count(*)" in str(request.count_statement)

    async def test_build_then_resolve(self, paginator, executor, six_users):
        first = await paginator.paginate(executor, select(User), limit=2)
        request = paginator.build(select(User), page_cursor=first.prev_page_cursor, limit=2)

        assert request.direction == "prev"
        assert request.cursor_supplied is True

        page = await paginator.resolve(executor, request)
        assert ids(page) == []
        assert page.has_next_page is True

    async def test_lazy_paginate(self, paginator, executor, six_users):
        page = paginator.lazy_paginate(executor, select(User), limit=4)

        assert ids_of(await page.nodes) == [6, 5, 4, 3]
        assert await page.has_next_page is True
        assert await page.has_prev_page is False
        assert (await page.next_page_cursor).startswith("next:")
        assert await page.total_count == 6

        resolved = await page.resolve()
        assert ids(resolved) == [6, 5, 4, 3]

    def test_lazy_paginate_validates_immediately(self, paginator):
        with pytest.raises(InvalidArgumentError):
            paginator.lazy_paginate(AsyncMock(), select(User), limit=0)

    async def test_raw_rows(self, paginator, executor, six_users):
        statement = select(User.id, User.name)

        first = await paginator.paginate(executor, statement, limit=2, raw=True)
        assert [dict(row) for row in first.nodes] == [
            {"id": 6, "name": "c"},
            {"id": 5, "name": "c"},
        ]

        second = await paginator.paginate(
            executor, statement, limit=2, raw=True, page_cursor=first.next_page_cursor
        )
        assert [row["id"] for row in second.nodes] == [4, 3]

    async def test_raw_rows_of_entity_select(self, executor, six_users):
        paginator = CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])

        first = await paginator.paginate(executor, select(User), limit=2, raw=True)
        assert [dict(row) for row in first.nodes] == [
            {"id": 1, "name": "a", "created_at": 1600000000},
            {"id": 3, "name": "b", "created_at": 1600000002},
        ]
        assert first.total_count == 6

        second = await paginator.paginate(
            executor, select(User), limit=2, raw=True, page_cursor=first.next_page_cursor
        )
        assert [row["id"] for row in second.nodes] == [2, 6]

    async def test_cursor_for(self, paginator, executor, six_users):
        user = (await executor.fetch_rows(select(User).where(User.id == 3)))[0]

        page = await paginator.paginate(
            executor, select(User), page_cursor=paginator.cursor_for(user), limit=10
        )
        assert ids(page) == [2, 1]

        page = await paginator.paginate(
            executor, select(User), page_cursor=paginator.cursor_for(user, "prev"), limit=10
        )
        assert ids(page) == [6, 5, 4]

    async def test_codec_from_settings(self, executor, six_users):
        paginator = CursorPaginator(
            User, order_by={"id": "DESC"}, settings=PaginationSettings(cursor_codec="json")
        )

        page = await paginator.paginate(executor, select(User), limit=1)

        assert page.next_page_cursor == 'next:{"id":6}'
        assert page.prev_page_cursor == 'prev:{"id":6}'

    async def test_codec_from_environment(self, monkeypatch, executor, six_users):
        monkeypatch.setenv("PAGINATION_CURSOR_CODEC", "json")

        paginator = CursorPaginator(User, order_by={"id": "ASC"})

        assert isinstance(paginator.codec, JsonCursorCodec)

    async def test_page_fetch_is_logged_with_operation(self, paginator, executor, six_users, caplog):
        with caplog.at_level(logging.DEBUG, logger="keyset_paginator"):
            await paginator.paginate(executor, select(User), limit=2)

        records = [r for r in caplog.records if getattr(r, "operation", None) == "paginate.cursor"]
        assert len(records) == 1
        assert records[0].levelno == logging.DEBUG
        assert records[0].entity == "User"
        assert "2/6 rows" in records[0].getMessage()

    async def test_paginate_function(self, executor, six_users):
        page = await paginate(User, executor, select(User), order_by={"id": "DESC"}, limit=3)

        assert ids(page) == [6, 5, 4]
        assert page.has_next_page is True

    async def test_unexpected_result_count(self, paginator):
        executor = AsyncMock()
        executor.fetch_page.return_value = (
            [User(id=i, name="x", created_at=0) for i in range(5)],
            5,
        )

        with pytest.raises(UnexpectedResultCountError) as exc_info:
            await paginator.paginate(executor, select(User), limit=3)

        assert exc_info.value.count == 5

    async def test_database_errors_propagate(self, paginator, executor, db_session, six_users):
        await db_session.execute(text("DROP TABLE users"))
        await db_session.commit()

        with pytest.raises(OperationalError):
            await paginator.paginate(executor, select(User), limit=3)


class TestConstruction:
    def test_requires_an_order(self):
        with pytest.raises(InvalidArgumentError, match="at least one column"):
            CursorPaginator(User, order_by={"id": None})

    def test_unknown_order_key(self):
        with pytest.raises(InvalidArgumentError, match="no column attribute 'email'"):
            CursorPaginator(User, order_by={"email": "ASC"})

    def test_value_codec_for_unknown_key(self):
        with pytest.raises(InvalidArgumentError):
            CursorPaginator(User, order_by={"id": "ASC"}, value_codecs={"name": object()})

    def test_not_a_mapped_class(self):
        with pytest.raises(InvalidArgumentError):
            CursorPaginator(dict, order_by={"id": "ASC"})

    def test_orders(self):
        paginator = CursorPaginator(User, order_by=[{"name": "asc"}, {"id": False}])

        assert paginator.orders == [("name", True), ("id", False)]
        assert paginator.order_keys == ["name", "id"]


def ids_of(nodes) -> list[int]:
    return [node.id for node in nodes]
