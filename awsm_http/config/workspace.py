"""Workspace snapshot models: node arena, environments, globals."""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from awsm_http.config.common import NodeType
from awsm_http.config.request import KeyValueItem, RequestDefinition, WebSocketDefinition, new_id
from awsm_http.config.response import HistoryEntry, ResponseEnvelope


class TreeNode(BaseModel):
    """Node of the request tree. Parent/children are id references into the arena."""

    id: str = Field(default_factory=new_id)
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    name: str
    type: NodeType
    children: List[str] = Field(default_factory=list)
    is_expanded: bool = Field(default=True, alias="isExpanded")
    data: Optional[RequestDefinition] = None
    ws_data: Optional[WebSocketDefinition] = Field(default=None, alias="wsData")

    model_config = {"populate_by_name": True}

    @property
    def is_container(self) -> bool:
        return self.type in (NodeType.WORKSPACE, NodeType.COLLECTION)


class Environment(BaseModel):
    """Named, swappable set of variables."""

    id: str = Field(default_factory=new_id)
    name: str
    variables: List[KeyValueItem] = Field(default_factory=list)


class WorkspaceSnapshot(BaseModel):
    """Persisted workspace state."""

    version: str = "1.0"
    nodes: Dict[str, TreeNode] = Field(default_factory=dict)
    root_ids: List[str] = Field(default_factory=list, alias="rootIds")
    environments: List[Environment] = Field(default_factory=list)
    active_environment_id: Optional[str] = Field(default=None, alias="activeEnvironmentId")
    globals: List[KeyValueItem] = Field(default_factory=list)

    # Send results, keyed by request id; newest history entry first
    responses: Dict[str, ResponseEnvelope] = Field(default_factory=dict)
    history: List[HistoryEntry] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WorkspaceSnapshot":
        """Load a snapshot from a JSON or YAML file."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    def to_file(self, path: Union[str, Path]) -> None:
        """Write the snapshot as JSON, using the persisted camelCase field names."""
        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json", by_alias=True), f, indent=2)
