"""Shared fakes for upload protocol tests."""
from typing import Dict, List, Optional, Tuple, Union
from unittest.mock import AsyncMock

import httpx
import pytest

Scripted = Union[int, Tuple[int, Dict[str, str]], Exception]


class ScriptedTransport:
    """Chunk transport replaying a scripted sequence of responses."""

    def __init__(self, script: List[Scripted], default: Optional[int] = None):
        self._script = list(script)
        self._default = default
        self.calls: List[Dict] = []

    async def put(self, url, content, headers, timeout):
        self.calls.append({"url": url, "content": content, "headers": dict(headers), "timeout": timeout})
        if self._script:
            item = self._script.pop(0)
        elif self._default is not None:
            item = self._default
        else:
            raise AssertionError(f"unexpected extra request #{len(self.calls)}")
        if isinstance(item, Exception):
            raise item
        if isinstance(item, tuple):
            status, response_headers = item
            return httpx.Response(status, headers=response_headers)
        return httpx.Response(item)

    @property
    def ranges(self) -> List[str]:
        return [call["headers"]["Content-Range"] for call in self.calls]


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def scripted():
    return ScriptedTransport
