"""Uniform success and failure envelopes for API replies."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class Code(IntEnum):
    """Reply codes."""

    SUCCESS = 0
    FAIL_UNKNOWN = 2


@dataclass
class Response:
    """A reply envelope; empty message and missing data are left out."""

    code: int
    message: str = ""
    data: Any = None

    def with_data(self, data: Any) -> Response:
        self.data = data
        return self

    def with_error(self, code: int, message: str) -> Response:
        self.code = code
        self.message = message
        return self

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": int(self.code)}
        if self.message:
            body["message"] = self.message
        if self.data is not None:
            body["data"] = self.data
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def success() -> Response:
    """A successful reply with no data."""
    return Response(code=Code.SUCCESS)


def fail() -> Response:
    """A failed reply with the generic error."""
    return Response(code=Code.FAIL_UNKNOWN, message="unknown error")