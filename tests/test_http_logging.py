import os
import unittest

from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.http_logging import request_id_from_header
from app.main import app


class RequestLoggingTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_health_has_request_id(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertRegex(str(response.headers.get("x-request-id")), r"^[A-Za-z0-9._-]{1,128}$")

    def test_valid_request_id_is_preserved(self):
        response = self.client.get("/health", headers={"X-Request-ID": "release-check-2026_02_23"})
        self.assertEqual(response.headers.get("x-request-id"), "release-check-2026_02_23")

    def test_invalid_request_id_is_replaced(self):
        response = self.client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        self.assertNotEqual(response.headers.get("x-request-id"), "bad id with spaces")

    def test_access_line_is_logged(self):
        with self.assertLogs("app.http", level="INFO") as logs:
            self.client.get("/health", headers={"X-Request-ID": "abc"})
        self.assertTrue(any("GET /health status=200" in line and "request_id=abc" in line for line in logs.output))

    def test_error_responses_keep_request_id(self):
        response = self.client.get("/api/users")
        self.assertEqual(response.status_code, 401)
        self.assertTrue(bool(response.headers.get("x-request-id")))

    def test_request_id_helper(self):
        self.assertEqual(request_id_from_header(" abc "), "abc")
        self.assertEqual(len(request_id_from_header(None)), 32)


if __name__ == "__main__":
    unittest.main()
