import asyncio
from typing import List, Optional

import pytest

from awsm_http.config import (
    ConcreteRequest,
    EngineSettings,
    NodeType,
    RequestDefinition,
    WireResponse,
)
from awsm_http.workspace import Workspace


class StubDispatcher:
    """Records concrete requests and answers with a canned wire response."""

    def __init__(self, response: Optional[WireResponse] = None):
        self.response = response or WireResponse(
            status=200, status_text="OK", headers={}, raw_body="[]", time=12, size=2,
        )
        self.requests: List[ConcreteRequest] = []

    async def dispatch(self, request: ConcreteRequest) -> WireResponse:
        self.requests.append(request)
        return self.response.model_copy()


class GatedDispatcher(StubDispatcher):
    """Holds the first dispatch until ``gate`` is set; later ones answer at once."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def dispatch(self, request: ConcreteRequest) -> WireResponse:
        self.requests.append(request)
        if len(self.requests) == 1:
            self.started.set()
            await self.gate.wait()
            return WireResponse(status=200, status_text="OK", raw_body="first", time=30, size=5)
        return WireResponse(status=201, status_text="Created", raw_body="second", time=5, size=6)


@pytest.fixture
def stub_dispatcher():
    return StubDispatcher()


@pytest.fixture
def settings():
    return EngineSettings(script_timeout=2.0)


@pytest.fixture
def workspace():
    return Workspace()


@pytest.fixture
def request_id(workspace):
    root = workspace.add_node(None, NodeType.WORKSPACE, "My Workspace")
    folder = workspace.add_node(root, NodeType.COLLECTION, "Users")
    return workspace.add_node(
        folder,
        NodeType.REQUEST,
        "List Users",
        data=RequestDefinition(url="https://api.example/users"),
    )
