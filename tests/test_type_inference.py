import unittest
from datetime import date, datetime, timezone

from app.services.type_inference import convert_value, infer_data_type, to_array, to_number


class InferDataTypeTests(unittest.TestCase):
    def test_numeric_strings_are_numbers_not_dates(self):
        self.assertEqual(infer_data_type("123"), "number")
        self.assertEqual(infer_data_type("-4.5"), "number")
        self.assertEqual(infer_data_type("2024"), "number")

    def test_boolean_strings(self):
        self.assertEqual(infer_data_type("true"), "boolean")
        self.assertEqual(infer_data_type("False"), "boolean")
        self.assertEqual(infer_data_type(True), "boolean")

    def test_iso_dates(self):
        self.assertEqual(infer_data_type("2024-01-01"), "date")
        self.assertEqual(infer_data_type("2024-01-01T10:20:30Z"), "date")
        self.assertEqual(infer_data_type(date(2024, 1, 1)), "date")
        self.assertEqual(infer_data_type("2024-13-45"), "string")

    def test_json_and_arrays(self):
        self.assertEqual(infer_data_type('{"a": 1}'), "json")
        self.assertEqual(infer_data_type("[1, 2]"), "array")
        self.assertEqual(infer_data_type(["a"]), "array")
        self.assertEqual(infer_data_type({"a": 1}), "json")

    def test_enum_match_wins(self):
        self.assertEqual(infer_data_type("admin", ("Admin", "User")), "enum")
        self.assertEqual(infer_data_type("guest", ("Admin", "User")), "string")

    def test_fallbacks(self):
        self.assertEqual(infer_data_type(None), "string")
        self.assertEqual(infer_data_type("Amazing grace"), "string")
        self.assertEqual(infer_data_type(7), "number")


class ConvertValueTests(unittest.TestCase):
    def test_numbers(self):
        self.assertEqual(to_number("12"), 12)
        self.assertEqual(to_number("3,5"), 3.5)
        with self.assertRaises(ValueError):
            to_number("twelve")
        with self.assertRaises(ValueError):
            to_number(True)

    def test_dates_become_aware_datetimes(self):
        self.assertEqual(convert_value("2024-01-01", "date"), datetime(2024, 1, 1, tzinfo=timezone.utc))
        with self.assertRaises(ValueError):
            convert_value("someday", "date")

    def test_enum_returns_canonical_value(self):
        self.assertEqual(convert_value("user", "enum", ("Admin", "User")), "User")
        self.assertEqual(convert_value("guest", "enum", ("Admin", "User")), "guest")

    def test_arrays_wrap_scalars(self):
        self.assertEqual(to_array("x"), ["x"])
        self.assertEqual(to_array('["x", "y"]'), ["x", "y"])
        self.assertEqual(to_array(None), [])

    def test_json_rejects_scalars(self):
        with self.assertRaises(ValueError):
            convert_value("12", "json")


if __name__ == "__main__":
    unittest.main()
