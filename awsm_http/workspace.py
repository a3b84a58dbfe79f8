"""Workspace: the state a request engine reads from and writes back to.

A ``Workspace`` holds the request tree (an arena of nodes keyed by id), the
environments and globals, the last response per request and the send
history. It is passed explicitly to the engine, so independent workspaces
never share state.
"""

import itertools
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

from awsm_http.config import (
    Environment,
    HistoryEntry,
    KeyValueItem,
    NodeType,
    RequestDefinition,
    ResponseEnvelope,
    TreeNode,
    WebSocketDefinition,
    WorkspaceSnapshot,
)
from awsm_http.errors import AwsmError, NodeNotFoundError
from awsm_http.utils import logger
from awsm_http.variables import VariableScope


DEFAULT_HISTORY_LIMIT = 50


class Workspace:
    """Mutable, injectable workspace state.

    Collections (environment variables, history) are replaced wholesale on
    every write, so a reader holding a reference never sees a partial update.
    """

    def __init__(
        self,
        snapshot: Optional[WorkspaceSnapshot] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        snapshot = snapshot or WorkspaceSnapshot()
        self.nodes: Dict[str, TreeNode] = dict(snapshot.nodes)
        self.root_ids: List[str] = list(snapshot.root_ids)
        self.environments: List[Environment] = list(snapshot.environments)
        self.active_environment_id: Optional[str] = snapshot.active_environment_id
        self.globals: List[KeyValueItem] = list(snapshot.globals)
        self.responses: Dict[str, ResponseEnvelope] = dict(snapshot.responses)
        self.history_limit = history_limit
        self.history: List[HistoryEntry] = list(snapshot.history)[:history_limit]

        self._sequence: Dict[str, int] = {}
        self._tokens = itertools.count(1)

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def add_node(
        self,
        parent_id: Optional[str],
        node_type: NodeType,
        name: str,
        data: Optional[RequestDefinition] = None,
        ws_data: Optional[WebSocketDefinition] = None,
    ) -> str:
        """Create a node under ``parent_id`` (or at the root) and return its id."""
        node_type = NodeType(node_type)
        parent = None
        if parent_id is not None:
            parent = self.get_node(parent_id)
            if not parent.is_container:
                raise AwsmError(f"Cannot add a child to {parent.type.value} '{parent.name}'")

        node = TreeNode(parent_id=parent_id, name=name, type=node_type)
        if node_type == NodeType.REQUEST:
            node.data = data or RequestDefinition()
        elif node_type == NodeType.WEBSOCKET:
            node.ws_data = ws_data or WebSocketDefinition()

        self.nodes[node.id] = node
        if parent is not None:
            parent.children = parent.children + [node.id]
            parent.is_expanded = True
        else:
            self.root_ids = self.root_ids + [node.id]
        return node.id

    def delete_node(self, node_id: str) -> List[str]:
        """Delete a node and its descendants.

        Returns:
            Ids of every deleted node
        """
        node = self.get_node(node_id)
        doomed = [n.id for n in self._walk(node_id)]

        if node.parent_id and node.parent_id in self.nodes:
            parent = self.nodes[node.parent_id]
            parent.children = [c for c in parent.children if c != node_id]
        else:
            self.root_ids = [r for r in self.root_ids if r != node_id]

        for doomed_id in doomed:
            self.nodes.pop(doomed_id, None)
            self.responses.pop(doomed_id, None)
            self._sequence.pop(doomed_id, None)
        logger.debug(f"Deleted {len(doomed)} node(s) under '{node.name}'")
        return doomed

    def rename_node(self, node_id: str, name: str) -> None:
        self.get_node(node_id).name = name

    def get_node(self, node_id: str) -> TreeNode:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def get_request(self, node_id: str) -> RequestDefinition:
        node = self.get_node(node_id)
        if node.type != NodeType.REQUEST or node.data is None:
            raise AwsmError(f"Node '{node.name}' is a {node.type.value}, not a request")
        return node.data

    def update_request(
        self,
        node_id: str,
        definition: Optional[RequestDefinition] = None,
        **changes,
    ) -> RequestDefinition:
        """Replace a request definition, or merge field ``changes`` into it."""
        current = self.get_request(node_id)
        if definition is None:
            merged = current.model_dump()
            merged.update(changes)
            definition = RequestDefinition.model_validate(merged)
        self.nodes[node_id].data = definition
        return definition

    def _walk(self, node_id: str) -> Iterator[TreeNode]:
        node = self.nodes.get(node_id)
        if node is None:
            return
        yield node
        for child_id in node.children:
            yield from self._walk(child_id)

    def iter_nodes(self, node_id: Optional[str] = None) -> Iterator[TreeNode]:
        """Depth-first, in tree order, starting at ``node_id`` (or every root)."""
        starts = self.root_ids if node_id is None else [self.get_node(node_id).id]
        for start in starts:
            yield from self._walk(start)

    def iter_requests(self, node_id: Optional[str] = None) -> Iterator[TreeNode]:
        for node in self.iter_nodes(node_id):
            if node.type == NodeType.REQUEST:
                yield node

    def path_of(self, node_id: str) -> str:
        """Slash-separated names from the root down to ``node_id``."""
        names = []
        node: Optional[TreeNode] = self.get_node(node_id)
        while node is not None:
            names.append(node.name)
            node = self.nodes.get(node.parent_id) if node.parent_id else None
        return "/".join(reversed(names))

    def find_node(self, ref: str) -> TreeNode:
        """Look a node up by id, by ``Folder/Request`` path or by unique name.

        Paths may omit the top-level workspace node.
        """
        if ref in self.nodes:
            return self.nodes[ref]

        parts = [p for p in ref.strip("/").split("/") if p]
        if len(parts) > 1:
            for start in self.root_ids:
                for candidate in (self._follow([start], parts), self._follow(self.nodes[start].children, parts)):
                    if candidate is not None:
                        return candidate

        matches = [n for n in self.iter_nodes() if n.name == ref]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise AwsmError(f"'{ref}' is ambiguous ({len(matches)} nodes share that name); use a path or id")
        raise NodeNotFoundError(ref)

    def _follow(self, candidates: Iterable[str], parts: List[str]) -> Optional[TreeNode]:
        for part in parts:
            node = next((self.nodes[c] for c in candidates if c in self.nodes and self.nodes[c].name == part), None)
            if node is None:
                return None
            candidates = node.children
        return node

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def add_environment(self, name: str, variables: Optional[Mapping[str, str]] = None) -> Environment:
        environment = Environment(
            name=name,
            variables=[KeyValueItem(key=k, value=v) for k, v in (variables or {}).items()],
        )
        self.environments = self.environments + [environment]
        return environment

    def get_environment(self, ref: str) -> Environment:
        """Environment by id or name."""
        for environment in self.environments:
            if environment.id == ref or environment.name == ref:
                return environment
        raise NodeNotFoundError(ref)

    def set_active_environment(self, ref: Optional[str]) -> Optional[Environment]:
        if ref is None:
            self.active_environment_id = None
            return None
        environment = self.get_environment(ref)
        self.active_environment_id = environment.id
        return environment

    @property
    def active_environment(self) -> Optional[Environment]:
        if self.active_environment_id is None:
            return None
        return next((e for e in self.environments if e.id == self.active_environment_id), None)

    def set_globals(self, variables: Union[Mapping[str, str], List[KeyValueItem]]) -> None:
        if isinstance(variables, Mapping):
            variables = [KeyValueItem(key=k, value=v) for k, v in variables.items()]
        self.globals = list(variables)

    def variable_scope(self) -> VariableScope:
        """Snapshot of ``globals < active environment``."""
        environment = self.active_environment
        return VariableScope.from_layers(self.globals, environment.variables if environment else None)

    def apply_variable_changes(self, changes: Mapping[str, str], removed: Iterable[str] = ()) -> None:
        """Write script-changed variables back.

        Changes go to the active environment, or to the globals when no
        environment is active. The target list is replaced, never mutated.
        """
        removed = set(removed)
        if not changes and not removed:
            return

        environment = self.active_environment
        current = environment.variables if environment else self.globals

        updated: List[KeyValueItem] = []
        seen = set()
        for item in current:
            if item.key in removed:
                continue
            if item.key in changes:
                item = item.model_copy(update={"value": changes[item.key], "enabled": True})
                seen.add(item.key)
            updated.append(item)
        for key, value in changes.items():
            if key not in seen:
                updated.append(KeyValueItem(key=key, value=value))

        if environment is not None:
            replacement = environment.model_copy(update={"variables": updated})
            self.environments = [replacement if e.id == environment.id else e for e in self.environments]
        else:
            self.globals = updated
        logger.debug(f"Applied {len(changes)} variable change(s), {len(removed)} removal(s) "
                     f"to {'environment ' + environment.name if environment else 'globals'}")

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def set_response(self, request_id: str, response: ResponseEnvelope) -> None:
        self.responses[request_id] = response

    def get_response(self, request_id: str) -> Optional[ResponseEnvelope]:
        return self.responses.get(request_id)

    def clear_response(self, request_id: str) -> None:
        self.responses.pop(request_id, None)

    def add_history(self, entry: HistoryEntry) -> None:
        """Prepend ``entry``; the oldest entries fall off past the limit."""
        self.history = ([entry] + self.history)[: self.history_limit]

    def clear_history(self) -> None:
        self.history = []

    def begin_send(self, request_id: str) -> int:
        """Take a sequence token for a new send of ``request_id``."""
        token = next(self._tokens)
        self._sequence[request_id] = token
        return token

    def is_latest(self, request_id: str, token: int) -> bool:
        return self._sequence.get(request_id) == token

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            nodes=dict(self.nodes),
            root_ids=list(self.root_ids),
            environments=list(self.environments),
            active_environment_id=self.active_environment_id,
            globals=list(self.globals),
            responses=dict(self.responses),
            history=list(self.history),
        )

    @classmethod
    def load(cls, path: Union[str, Path], history_limit: int = DEFAULT_HISTORY_LIMIT) -> "Workspace":
        return cls(WorkspaceSnapshot.from_file(path), history_limit=history_limit)

    def save(self, path: Union[str, Path]) -> None:
        self.snapshot().to_file(path)
