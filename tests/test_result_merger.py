import unittest

from fastapi import HTTPException

from app.schemas.pagination import PaginationParams
from app.services.result_merger import compare_rows, merge_and_paginate


VERSES = [
    {"id": "v1", "hymn_number": 2, "order": 1},
    {"id": "v2", "hymn_number": None, "order": 1},
    {"id": "v3", "hymn_number": 1, "order": 2},
]
CHORUSES = [
    {"id": "c1", "hymn_number": 1, "order": 1},
    {"id": "c2", "hymn_number": 2, "order": 1},
]


def _ids(result):
    return [row["id"] for row in result.page_items]


class ResultMergerTests(unittest.TestCase):
    def test_ascending_sort_puts_nulls_first_and_keeps_ties_stable(self):
        params = PaginationParams(orderBy=[{"hymn_number": "asc"}, {"order": "asc"}], size=10)
        result = merge_and_paginate([VERSES, CHORUSES], params)
        self.assertEqual(_ids(result), ["v2", "c1", "v3", "v1", "c2"])

    def test_descending_sort_puts_nulls_last(self):
        params = PaginationParams(orderBy="hymn_number", direction="desc", size=10)
        result = merge_and_paginate([VERSES, CHORUSES], params)
        self.assertEqual(_ids(result), ["v1", "c2", "v3", "c1", "v2"])

    def test_pages_are_sliced_after_sorting(self):
        params = PaginationParams(orderBy=[{"hymn_number": "asc"}, {"order": "asc"}], size=2, page=2)
        result = merge_and_paginate([VERSES, CHORUSES], params)
        self.assertEqual(_ids(result), ["v3", "v1"])
        self.assertEqual(result.page_meta.total_items, 5)
        self.assertEqual(result.page_meta.total_pages, 3)
        self.assertEqual(result.page_meta.current_page, 2)

    def test_without_order_sources_are_concatenated(self):
        result = merge_and_paginate([VERSES, CHORUSES], PaginationParams(size=10))
        self.assertEqual(_ids(result), ["v1", "v2", "v3", "c1", "c2"])

    def test_unpaginated_returns_single_page(self):
        params = PaginationParams(size=1, isPaginated="false")
        result = merge_and_paginate([VERSES, CHORUSES], params, lambda row, rows, shared: (row["id"], shared))
        self.assertEqual(result.page_items, ["v1", "v2", "v3", "c1", "c2"])
        self.assertEqual(result.page_meta.total_pages, 1)
        self.assertEqual(result.page_meta.total_items, 5)

    def test_cursor_pagination_is_rejected(self):
        with self.assertRaises(HTTPException) as ctx:
            merge_and_paginate([VERSES], PaginationParams(paginationType="cursor"))
        self.assertEqual(ctx.exception.status_code, 400)

    def test_compare_rows_uses_later_keys_for_ties(self):
        pairs = [("hymn_number", "asc"), ("order", "desc")]
        self.assertLess(compare_rows({"hymn_number": 1, "order": 2}, {"hymn_number": 1, "order": 1}, pairs), 0)
        self.assertEqual(compare_rows({"hymn_number": 1}, {"hymn_number": 1}, pairs), 0)


if __name__ == "__main__":
    unittest.main()
