"""Action payloads - the closed set of operations a plan step can perform.

Each tag maps to exactly one frozen dataclass. Actions are data; the executor
looks up a handler by ``ActionType`` in ``ActionHandlerRegistry``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from planforge.config.defaults import CAPABILITY_TYPES, DEFAULT_EDGE_TYPE, EDGE_TYPES
from planforge.errors import PlanParseError

logger = logging.getLogger(__name__)


class ActionType(Enum):
    CREATE_NODE = "CREATE_NODE"
    CONNECT_NODES = "CONNECT_NODES"
    UPDATE_NODE = "UPDATE_NODE"
    DELETE_NODE = "DELETE_NODE"
    CREATE_FILE = "CREATE_FILE"
    REGISTER_CAPABILITY = "REGISTER_CAPABILITY"


def _require(data: Dict[str, Any], key: str, tag: str) -> Any:
    if key not in data or data[key] is None:
        raise PlanParseError(f"{tag} action missing required field '{key}'")
    return data[key]


@dataclass(frozen=True)
class CreateNodeAction:
    node_type: str
    label: str
    parent_id: Optional[str] = None
    position: Optional[Dict[str, float]] = None
    config: Dict[str, Any] = field(default_factory=dict)

    type = ActionType.CREATE_NODE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreateNodeAction":
        return cls(
            node_type=str(_require(data, "nodeType", "CREATE_NODE")),
            label=str(_require(data, "label", "CREATE_NODE")),
            parent_id=data.get("parentId"),
            position=data.get("position"),
            config=dict(data.get("config") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type.value,
            "nodeType": self.node_type,
            "label": self.label,
            "config": dict(self.config),
        }
        if self.parent_id is not None:
            out["parentId"] = self.parent_id
        if self.position is not None:
            out["position"] = dict(self.position)
        return out


@dataclass(frozen=True)
class ConnectNodesAction:
    source_id: str
    target_id: str
    edge_type: str = DEFAULT_EDGE_TYPE

    type = ActionType.CONNECT_NODES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectNodesAction":
        edge_type = data.get("edgeType") or DEFAULT_EDGE_TYPE
        if edge_type not in EDGE_TYPES:
            raise PlanParseError(f"CONNECT_NODES action has unknown edgeType '{edge_type}'")
        return cls(
            source_id=str(_require(data, "sourceId", "CONNECT_NODES")),
            target_id=str(_require(data, "targetId", "CONNECT_NODES")),
            edge_type=edge_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "edgeType": self.edge_type,
        }


@dataclass(frozen=True)
class UpdateNodeAction:
    node_id: str
    changes: Dict[str, Any] = field(default_factory=dict)

    type = ActionType.UPDATE_NODE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpdateNodeAction":
        changes = data.get("changes") or {}
        if not isinstance(changes, dict):
            raise PlanParseError("UPDATE_NODE action 'changes' must be an object")
        return cls(node_id=str(_require(data, "nodeId", "UPDATE_NODE")), changes=dict(changes))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "nodeId": self.node_id, "changes": dict(self.changes)}


@dataclass(frozen=True)
class DeleteNodeAction:
    node_id: str

    type = ActionType.DELETE_NODE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeleteNodeAction":
        return cls(node_id=str(_require(data, "nodeId", "DELETE_NODE")))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "nodeId": self.node_id}


@dataclass(frozen=True)
class CreateFileAction:
    path: str
    content: str = ""

    type = ActionType.CREATE_FILE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreateFileAction":
        return cls(
            path=str(_require(data, "path", "CREATE_FILE")),
            content=str(data.get("content") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "path": self.path, "content": self.content}


@dataclass(frozen=True)
class RegisterCapabilityAction:
    name: str
    capability_type: str
    content: str = ""
    triggers: Tuple[str, ...] = ()

    type = ActionType.REGISTER_CAPABILITY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegisterCapabilityAction":
        capability_type = _require(data, "capabilityType", "REGISTER_CAPABILITY")
        if capability_type not in CAPABILITY_TYPES:
            raise PlanParseError(
                f"REGISTER_CAPABILITY action has unknown capabilityType '{capability_type}'"
            )
        return cls(
            name=str(_require(data, "name", "REGISTER_CAPABILITY")),
            capability_type=capability_type,
            content=str(data.get("content") or ""),
            triggers=tuple(str(t) for t in data.get("triggers") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "capabilityType": self.capability_type,
            "content": self.content,
            "triggers": list(self.triggers),
        }

    @property
    def file_path(self) -> str:
        """Sandbox-relative path: ``.claude/<type>s/<name>`` (.json for hooks, else .md)."""
        ext = ".json" if self.capability_type == "hook" else ".md"
        return f".claude/{self.capability_type}s/{self.name}{ext}"


Action = Union[
    CreateNodeAction,
    ConnectNodesAction,
    UpdateNodeAction,
    DeleteNodeAction,
    CreateFileAction,
    RegisterCapabilityAction,
]

ACTION_CLASSES = {
    ActionType.CREATE_NODE: CreateNodeAction,
    ActionType.CONNECT_NODES: ConnectNodesAction,
    ActionType.UPDATE_NODE: UpdateNodeAction,
    ActionType.DELETE_NODE: DeleteNodeAction,
    ActionType.CREATE_FILE: CreateFileAction,
    ActionType.REGISTER_CAPABILITY: RegisterCapabilityAction,
}


def action_from_dict(data: Any) -> Action:
    """Build the Action for a wire dict, dispatching on its ``type`` tag.

    Raises:
        PlanParseError: Not an object, unknown tag, or a required field missing
    """
    if not isinstance(data, dict):
        raise PlanParseError("Action must be an object")
    tag = data.get("type")
    try:
        action_type = ActionType(tag)
    except ValueError:
        raise PlanParseError(f"Unknown action type: {tag}") from None
    return ACTION_CLASSES[action_type].from_dict(data)
