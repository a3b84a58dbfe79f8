"""Models produced while sending: concrete requests, responses, history."""

import json
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from awsm_http.config.common import BodyType, HttpMethod, MessageType, TestStatus


def now_ms() -> int:
    return int(time.time() * 1000)


class TestResult(BaseModel):
    """Outcome of one ``awsm.test()`` call."""

    __test__ = False

    name: str
    status: TestStatus
    description: Optional[str] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED


class ConcreteRequest(BaseModel):
    """A fully resolved, dispatch-ready request."""

    method: HttpMethod
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body_type: BodyType = BodyType.NONE
    body: Optional[str] = None
    form: List[Tuple[str, str]] = Field(default_factory=list)
    files: List[Tuple[str, str]] = Field(default_factory=list)


class WireResponse(BaseModel):
    """What the transport hands back: unparsed payload plus metrics."""

    status: int
    status_text: str = Field(default="", alias="statusText")
    headers: Dict[str, str] = Field(default_factory=dict)
    raw_body: str = Field(default="", alias="rawBody")
    time: int = 0
    size: int = 0
    error: Optional[str] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def failure(cls, message: str) -> "WireResponse":
        """Synthetic response for a transport-level failure."""
        return cls(status=0, status_text="Error", raw_body=message, error=message)


def parse_body(raw_body: str) -> Any:
    """Parse a payload as JSON, falling back to the raw string."""
    try:
        return json.loads(raw_body)
    except (TypeError, ValueError):
        return raw_body


class ResponseEnvelope(BaseModel):
    """Normalized response, uniform across success and transport failure."""

    status: int
    status_text: str = Field(default="", alias="statusText")
    time: int = 0
    size: int = 0
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    raw_body: str = Field(default="", alias="rawBody")
    test_results: List[TestResult] = Field(default_factory=list, alias="testResults")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_wire(cls, wire: WireResponse) -> "ResponseEnvelope":
        if wire.error is not None:
            body: Any = {"error": wire.error}
        else:
            body = parse_body(wire.raw_body)
        return cls(
            status=wire.status,
            status_text=wire.status_text,
            time=wire.time,
            size=wire.size,
            headers=dict(wire.headers),
            body=body,
            raw_body=wire.raw_body,
        )

    @property
    def is_error(self) -> bool:
        return self.status == 0

    @property
    def passed_count(self) -> int:
        return sum(1 for t in self.test_results if t.status == TestStatus.PASSED)

    @property
    def failed_count(self) -> int:
        return sum(1 for t in self.test_results if t.status == TestStatus.FAILED)


class HistoryEntry(BaseModel):
    """Immutable record of a completed send."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request_id: Optional[str] = Field(default=None, alias="requestId")
    method: str
    url: str
    timestamp: int = Field(default_factory=now_ms)
    status: int
    status_text: str = Field(default="", alias="statusText")
    duration: int = 0
    size: int = 0
    response: Optional[ResponseEnvelope] = None

    model_config = {"populate_by_name": True, "frozen": True}


class WebSocketMessage(BaseModel):
    """One entry of a connection's ordered message log."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: MessageType
    data: str
    timestamp: int = Field(default_factory=now_ms)
