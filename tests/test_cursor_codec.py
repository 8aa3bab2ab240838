import unittest

from fastapi import HTTPException

from app.services.cursor_codec import decode, decode_cursor, encode, encode_cursor


class CursorCodecTests(unittest.TestCase):
    def test_round_trip_ascii_and_unicode(self):
        for value in ("", "abc", '{"id":"x","dir":1}', "Ɔdomankoma 🎵", "日本語のテキスト", "a" * 500):
            self.assertEqual(decode(encode(value)), value)

    def test_tokens_are_url_safe(self):
        token = encode("??>>??>>")
        self.assertNotIn("+", token)
        self.assertNotIn("/", token)

    def test_decode_restores_stripped_padding(self):
        self.assertEqual(decode(encode("ab").rstrip("=")), "ab")

    def test_cursor_payload(self):
        token = encode_cursor("row-1", -1)
        cursor = decode_cursor(token)
        self.assertEqual(cursor.id, "row-1")
        self.assertEqual(cursor.dir, -1)
        self.assertFalse(cursor.last)

        last = decode_cursor(encode_cursor(direction=-1, last=True))
        self.assertIsNone(last.id)
        self.assertTrue(last.last)

    def test_invalid_tokens_raise_406(self):
        for token in ("%%%", encode("not json"), encode("[1, 2]"), encode('{"dir": 2}'), encode('{"dir": 1, "id": 5}')):
            with self.assertRaises(HTTPException) as ctx:
                decode_cursor(token)
            self.assertEqual(ctx.exception.status_code, 406)


if __name__ == "__main__":
    unittest.main()
