import unittest
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import DateTime, ForeignKey, Integer, String, create_engine
from sqlalchemy import Uuid as PGUUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from app.schemas.pagination import PaginationParams, QueryArgs
from app.services.cursor_codec import decode_cursor, encode_cursor
from app.services.pagination import map_results, paginate
from app.services.queryable import SqlAlchemyCollection


class _Base(DeclarativeBase):
    pass


class _Song(_Base):
    __tablename__ = "_pagination_songs"

    id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    number: Mapped[int] = mapped_column(Integer)
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    lines = relationship("_Line", back_populates="song")


class _Line(_Base):
    __tablename__ = "_pagination_lines"

    id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    song_id: Mapped[uuid.UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("_pagination_songs.id"))
    text: Mapped[str] = mapped_column(String(200))

    song = relationship("_Song", back_populates="lines")


def _uid(n: int) -> uuid.UUID:
    return uuid.UUID(int=n)


def _titles(result) -> list:
    return [row.title for row in (result.page_items if hasattr(result, "page_items") else result.page_edges)]


class _DbCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _Base.metadata.create_all(self.engine)
        self.db = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)()
        self.base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def tearDown(self):
        self.db.close()
        _Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def seed(self, titles):
        for index, title in enumerate(titles, start=1):
            self.db.add(
                _Song(id=_uid(index), title=title, number=index, created_at=self.base_time + timedelta(minutes=index))
            )
        self.db.commit()

    def collection(self):
        return SqlAlchemyCollection(self.db, _Song)


class PagePaginationTests(_DbCase):
    def test_page_math(self):
        self.seed([f"Song {i:02d}" for i in range(1, 11)])
        params = PaginationParams(size=3, page=4, orderBy="number", direction="asc")
        result = paginate(self.collection(), QueryArgs(), params)
        self.assertEqual(result.page_meta.total_pages, 4)
        self.assertEqual(result.page_meta.total_items, 10)
        self.assertEqual(result.page_meta.item_count, 1)
        self.assertEqual(_titles(result), ["Song 10"])

    def test_second_page_of_twenty_five(self):
        self.seed([f"Song {i:02d}" for i in range(1, 26)])
        params = PaginationParams(size=10, page=2, orderBy="number", direction="asc")
        result = paginate(self.collection(), QueryArgs(), params)
        self.assertEqual([row.number for row in result.page_items], list(range(11, 21)))
        self.assertEqual(result.page_meta.current_page, 2)
        self.assertEqual(result.page_meta.total_pages, 3)

    def test_default_order_is_newest_first(self):
        self.seed(["Old", "Middle", "New"])
        result = paginate(self.collection(), QueryArgs(), PaginationParams())
        self.assertEqual(_titles(result), ["New", "Middle", "Old"])

    def test_disabled_pagination_returns_everything_without_meta(self):
        self.seed([f"Song {i}" for i in range(1, 8)])
        params = PaginationParams(size=2, isPaginated="false", paginationType="cursor", cursor="garbage")
        result = paginate(self.collection(), QueryArgs(), params)
        self.assertEqual(len(result.page_items), 7)
        self.assertIsNone(result.page_meta)
        self.assertNotIn("pageMeta", result.to_response())

    def test_where_tree_filters_rows(self):
        self.seed(["Amazing Grace", "Grace Alone", "Holy Night"])
        self.db.add(_Line(song_id=_uid(3), text="Silent and holy"))
        self.db.commit()
        where = {"OR": [{"title": {"contains": "grace", "mode": "insensitive"}}, {"lines": {"some": {"text": {"contains": "SILENT", "mode": "insensitive"}}}}]}
        params = PaginationParams(orderBy="number", direction="asc")
        result = paginate(self.collection(), QueryArgs(where=where), params)
        self.assertEqual(_titles(result), ["Amazing Grace", "Grace Alone", "Holy Night"])
        narrowed = paginate(self.collection(), QueryArgs(where={"number": {"gte": "2"}, "title": {"startsWith": "Grace"}}), params)
        self.assertEqual(_titles(narrowed), ["Grace Alone"])

    def test_mapper_threads_shared_state(self):
        self.seed(["A", "B", "C"])

        def _numbered(row, rows, shared):
            position = shared.get("position", 0) + 1
            return f"{position}/{len(rows)} {row.title}", {"position": position}

        params = PaginationParams(orderBy="number", direction="asc")
        result = paginate(self.collection(), QueryArgs(), params, _numbered)
        self.assertEqual(result.page_items, ["1/3 A", "2/3 B", "3/3 C"])

    def test_map_results_without_mapper(self):
        self.assertEqual(map_results([1, 2], None), [1, 2])


class CursorPaginationTests(_DbCase):
    def params(self, **kwargs):
        base = {"size": 2, "orderBy": "title", "direction": "asc", "paginationType": "cursor"}
        base.update(kwargs)
        return PaginationParams(**base)

    def test_duplicate_sort_keys_are_tie_broken_by_id(self):
        self.seed(["Grace", "Grace", "Grace"])
        first = paginate(self.collection(), QueryArgs(), self.params())
        self.assertEqual([row.id for row in first.page_edges], [_uid(1), _uid(2)])
        self.assertTrue(first.page_cursors.has_next)
        self.assertFalse(first.page_cursors.has_previous)
        self.assertFalse(first.page_cursors.previous)

        second = paginate(self.collection(), QueryArgs(), self.params(cursor=first.page_cursors.next.cursor))
        self.assertEqual([row.id for row in second.page_edges], [_uid(3)])
        self.assertFalse(second.page_cursors.has_next)
        self.assertTrue(second.page_cursors.has_previous)
        self.assertFalse(second.page_cursors.next)

        back = paginate(self.collection(), QueryArgs(), self.params(cursor=second.page_cursors.previous.cursor))
        self.assertEqual([row.id for row in back.page_edges], [_uid(1), _uid(2)])
        self.assertTrue(back.page_cursors.has_next)
        self.assertFalse(back.page_cursors.has_previous)

    def test_every_row_seen_once_walking_forward(self):
        self.seed(["B", "A", "C", "A", "B"])
        seen = []
        cursor = None
        for _ in range(5):
            result = paginate(self.collection(), QueryArgs(), self.params(cursor=cursor))
            seen.extend(row.id for row in result.page_edges)
            if not result.page_cursors.has_next:
                break
            cursor = result.page_cursors.next.cursor
        self.assertEqual(seen, [_uid(2), _uid(4), _uid(1), _uid(5), _uid(3)])

    def test_links_carry_direction(self):
        self.seed(["A", "B", "C", "D", "E"])
        page = paginate(self.collection(), QueryArgs(), self.params())
        self.assertEqual(decode_cursor(page.page_cursors.next.cursor).id, str(_uid(2)))
        last = decode_cursor(page.page_cursors.last.cursor)
        self.assertEqual((last.id, last.dir, last.last), (None, -1, True))
        self.assertEqual(page.total_count, 5)

    def test_last_cursor_returns_the_partial_tail(self):
        self.seed(["A", "B", "C", "D", "E"])
        token = encode_cursor(direction=-1, last=True)
        result = paginate(self.collection(), QueryArgs(), self.params(cursor=token))
        self.assertEqual(_titles(result), ["E"])
        self.assertFalse(result.page_cursors.has_next)
        self.assertTrue(result.page_cursors.has_previous)

        previous = paginate(self.collection(), QueryArgs(), self.params(cursor=result.page_cursors.previous.cursor))
        self.assertEqual(_titles(previous), ["C", "D"])
        self.assertTrue(previous.page_cursors.has_previous)
        self.assertTrue(previous.page_cursors.has_next)

    def test_first_cursor_restarts_from_the_top(self):
        self.seed(["A", "B", "C"])
        result = paginate(self.collection(), QueryArgs(), self.params(cursor=encode_cursor(direction=1)))
        self.assertEqual(_titles(result), ["A", "B"])
        self.assertFalse(result.page_cursors.has_previous)

    def test_size_larger_than_total(self):
        self.seed(["A", "B", "C"])
        result = paginate(self.collection(), QueryArgs(), self.params(size=10))
        self.assertEqual(_titles(result), ["A", "B", "C"])
        self.assertFalse(result.page_cursors.has_next)
        self.assertFalse(result.page_cursors.has_previous)
        self.assertFalse(result.page_cursors.first)
        self.assertFalse(result.page_cursors.last)

    def test_empty_result(self):
        result = paginate(self.collection(), QueryArgs(), self.params())
        self.assertEqual(result.page_edges, [])
        self.assertEqual(result.total_count, 0)
        self.assertFalse(result.page_cursors.has_next)
        self.assertEqual(result.to_response()["pageCursors"]["first"], False)

    def test_cursor_for_missing_row_returns_nothing(self):
        self.seed(["A"])
        result = paginate(self.collection(), QueryArgs(), self.params(cursor=encode_cursor(_uid(99), 1)))
        self.assertEqual(result.page_edges, [])

    def test_invalid_cursor_is_406(self):
        with self.assertRaises(HTTPException) as ctx:
            paginate(self.collection(), QueryArgs(), self.params(cursor="not-a-cursor"))
        self.assertEqual(ctx.exception.status_code, 406)

class NullableSortKeyTests(_DbCase):
    RANKS = [None, None, 1, 2, None, 3]

    def setUp(self):
        super().setUp()
        for index, rank in enumerate(self.RANKS, start=1):
            self.db.add(
                _Song(
                    id=_uid(index),
                    title=f"Song {index}",
                    number=index,
                    rank=rank,
                    created_at=self.base_time + timedelta(minutes=index),
                )
            )
        self.db.commit()

    def params(self, **kwargs):
        base = {"size": 2, "orderBy": "rank", "direction": "asc", "paginationType": "cursor"}
        base.update(kwargs)
        return PaginationParams(**base)

    def walk_forward(self, direction):
        seen = []
        cursor = None
        for _ in range(10):
            result = paginate(self.collection(), QueryArgs(), self.params(direction=direction, cursor=cursor))
            seen.extend(row.number for row in result.page_edges)
            if not result.page_cursors.has_next:
                break
            cursor = result.page_cursors.next.cursor
        return seen

    def test_ascending_walk_puts_nulls_first_and_sees_every_row(self):
        self.assertEqual(self.walk_forward("asc"), [1, 2, 5, 3, 4, 6])

    def test_descending_walk_puts_nulls_last_and_sees_every_row(self):
        self.assertEqual(self.walk_forward("desc"), [6, 4, 3, 5, 2, 1])

    def test_backward_walk_from_last_page_sees_every_row(self):
        pages = []
        cursor = encode_cursor(direction=-1, last=True)
        for _ in range(10):
            result = paginate(self.collection(), QueryArgs(), self.params(cursor=cursor))
            pages.insert(0, [row.number for row in result.page_edges])
            if not result.page_cursors.has_previous:
                break
            cursor = result.page_cursors.previous.cursor
        self.assertEqual(pages, [[1, 2], [5, 3], [4, 6]])


if __name__ == "__main__":
    unittest.main()
