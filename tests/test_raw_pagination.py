import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.schemas.pagination import PaginationParams
from app.services.pagination import simple_mapper
from app.services.raw_pagination import paginate_raw

BASE_QUERY = "SELECT id, name, hymn_count FROM _raw_categories WHERE archived = 0"


class RawPaginationTests(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    "CREATE TABLE _raw_categories (id INTEGER PRIMARY KEY, name TEXT, hymn_count INTEGER, "
                    "archived INTEGER, created_at TIMESTAMP)"
                )
            )
            start = datetime(2024, 1, 1, tzinfo=timezone.utc)
            for i in range(1, 8):
                conn.execute(
                    text("INSERT INTO _raw_categories VALUES (:id, :name, :count, :archived, :created)"),
                    {"id": i, "name": f"Cat {i}", "count": i * 2, "archived": 1 if i == 7 else 0, "created": (start + timedelta(days=i)).isoformat()},
                )
        self.db = sessionmaker(bind=self.engine)()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_page_slice_and_meta(self):
        params = PaginationParams(size=4, page=2, orderBy="id", direction="asc")
        result = paginate_raw(self.db, BASE_QUERY, params)
        self.assertEqual([row["id"] for row in result.page_items], [5, 6])
        self.assertEqual(result.page_meta.total_items, 6)
        self.assertEqual(result.page_meta.total_pages, 2)

    def test_where_fragment_wraps_base_query(self):
        params = PaginationParams(size=10, orderBy="hymn_count", direction="desc", where="hymn_count >= 8")
        result = paginate_raw(self.db, BASE_QUERY, params, simple_mapper(lambda row: row["name"]))
        self.assertEqual(result.page_items, ["Cat 6", "Cat 5", "Cat 4"])
        self.assertEqual(result.page_meta.total_items, 3)

    def test_bind_params_are_passed_through(self):
        query = "SELECT id, name FROM _raw_categories WHERE hymn_count < :limit_count"
        params = PaginationParams(size=10, orderBy="id", direction="asc")
        result = paginate_raw(self.db, query, params, bind_params={"limit_count": 5})
        self.assertEqual([row["id"] for row in result.page_items], [1, 2])

    def test_unsafe_sort_columns_are_ignored(self):
        params = PaginationParams(size=10, orderBy={"id; DROP TABLE x": "asc", "id": "desc"})
        result = paginate_raw(self.db, BASE_QUERY, params)
        self.assertEqual(result.page_items[0]["id"], 6)

    def test_tied_sort_values_are_split_by_the_tie_breaker(self):
        params = PaginationParams(size=4, page=1, orderBy="archived")
        first = paginate_raw(self.db, BASE_QUERY, params)
        second = paginate_raw(self.db, BASE_QUERY, params.model_copy(update={"page": 2}))
        self.assertEqual([row["id"] for row in first.page_items], [6, 5, 4, 3])
        self.assertEqual([row["id"] for row in second.page_items], [2, 1])

    def test_columns_outside_the_allowed_set_fall_back_to_default(self):
        params = PaginationParams(size=10, orderBy="created_at", direction="asc")
        result = paginate_raw(
            self.db,
            BASE_QUERY,
            params,
            allowed_columns={"id", "name", "hymn_count"},
            default_order_by="hymn_count",
        )
        self.assertEqual([row["id"] for row in result.page_items], [1, 2, 3, 4, 5, 6])

    def test_nulls_sort_first_ascending_and_last_descending(self):
        with self.engine.begin() as conn:
            conn.execute(text("UPDATE _raw_categories SET hymn_count = NULL WHERE id = 3"))
        ascending = paginate_raw(self.db, BASE_QUERY, PaginationParams(size=10, orderBy="hymn_count", direction="asc"))
        descending = paginate_raw(self.db, BASE_QUERY, PaginationParams(size=10, orderBy="hymn_count", direction="desc"))
        self.assertEqual([row["id"] for row in ascending.page_items], [3, 1, 2, 4, 5, 6])
        self.assertEqual([row["id"] for row in descending.page_items], [6, 5, 4, 2, 1, 3])

    def test_unpaginated_returns_all_rows(self):
        params = PaginationParams(isPaginated="false", orderBy="id", direction="asc", where="hymn_count > 2")
        result = paginate_raw(self.db, BASE_QUERY, params)
        self.assertEqual([row["id"] for row in result.page_items], [2, 3, 4, 5, 6])
        self.assertIsNone(result.page_meta)


if __name__ == "__main__":
    unittest.main()
