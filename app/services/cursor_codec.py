"""Opaque pagination cursor tokens.

Tokens are urlsafe base64 over a JSON document. They are not signed: a forged
token can only move the page boundary, the where-clause stays server-side.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException


@dataclass(frozen=True)
class DecodedCursor:
    id: Optional[str] = None
    dir: int = 1
    last: bool = False

    @property
    def forward(self) -> bool:
        return self.dir == 1


def encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


def decode(token: str) -> str:
    padded = token + "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def encode_cursor(row_id=None, direction: int = 1, last: bool = False) -> str:
    payload: dict = {"dir": direction}
    if row_id is not None:
        payload["id"] = str(row_id)
    if last:
        payload["last"] = True
    return encode(json.dumps(payload, separators=(",", ":"), sort_keys=True))


def _invalid_cursor() -> HTTPException:
    return HTTPException(status_code=406, detail="Invalid cursor format")


def decode_cursor(token: str) -> DecodedCursor:
    try:
        payload = json.loads(decode(token.strip()))
    except (ValueError, UnicodeError, binascii.Error):
        raise _invalid_cursor()
    if not isinstance(payload, dict):
        raise _invalid_cursor()
    direction = payload.get("dir")
    if isinstance(direction, bool) or direction not in (1, -1):
        raise _invalid_cursor()
    row_id = payload.get("id")
    if row_id is not None and not isinstance(row_id, str):
        raise _invalid_cursor()
    return DecodedCursor(id=row_id or None, dir=direction, last=bool(payload.get("last")))
