"""Scripted transport for offline testing.

FakeTransport implements the Transport protocol without any network
calls. It can be configured to:
- Return canned responses per ``Entity/action`` (a single response, or a
  queue consumed one call at a time)
- Compute responses from a handler function
- Raise specific errors
- Track calls for assertions
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .api4 import split_api4_path
from .base import TransportError


@dataclass
class FakeResponse:
    """Canned response for FakeTransport."""

    data: Any = None
    error: Optional[TransportError] = None


@dataclass
class RecordedCall:
    """One call seen by FakeTransport."""

    method: str
    path: str
    entity: str
    action: str
    params: Dict[str, Any]

    @property
    def key(self) -> str:
        return f"{self.entity}/{self.action}"


Handler = Callable[[RecordedCall], Any]


class FakeTransport:
    """Transport that answers from a script and records every call.

    Unscripted calls answer ``{"values": []}``.
    """

    def __init__(self, handler: Optional[Handler] = None):
        self._handler = handler
        self._responses: Dict[str, List[FakeResponse]] = {}
        self._calls: List[RecordedCall] = []

    def set_response(self, key: str, response: Any) -> None:
        """Answer every ``key`` call (``"Entity/action"``) with ``response``.

        ``response`` may be a FakeResponse or plain data.
        """
        self._responses[key] = [self._wrap(response)]

    def queue_responses(self, key: str, *responses: Any) -> None:
        """Answer successive ``key`` calls in order; the last one repeats."""
        self._responses[key] = [self._wrap(r) for r in responses]

    def set_error(self, key: str, error: TransportError) -> None:
        """Raise ``error`` on every ``key`` call."""
        self._responses[key] = [FakeResponse(error=error)]

    @staticmethod
    def _wrap(response: Any) -> FakeResponse:
        return response if isinstance(response, FakeResponse) else FakeResponse(data=response)

    def request(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Record the call, then answer it from the script."""
        entity, action = split_api4_path(path)
        call = RecordedCall(method=method, path=path, entity=entity, action=action, params=body)
        self._calls.append(call)

        queue = self._responses.get(call.key)
        if queue:
            response = queue.pop(0) if len(queue) > 1 else queue[0]
            if response.error is not None:
                raise response.error
            return response.data

        if self._handler is not None:
            result = self._handler(call)
            if result is not None:
                return result
        return {"values": []}

    @property
    def calls(self) -> List[RecordedCall]:
        """All calls seen so far, in order."""
        return list(self._calls)

    def call_keys(self) -> List[str]:
        """``Entity/action`` of every call, in order."""
        return [c.key for c in self._calls]

    def calls_for(self, key: str) -> List[RecordedCall]:
        """All calls made to ``key``."""
        return [c for c in self._calls if c.key == key]

    def was_called(self, key: str) -> bool:
        return any(c.key == key for c in self._calls)

    def call_count(self, key: Optional[str] = None) -> int:
        """Count calls to ``key``, or all calls when ``key`` is None."""
        if key is None:
            return len(self._calls)
        return len(self.calls_for(key))

    def clear_calls(self) -> None:
        self._calls.clear()
