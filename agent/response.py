"""ToolCall, ToolResponse and ToolResult dataclasses."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum


class Action(str, Enum):
    """Filesystem operations the model may request."""

    READ_FILE = "read_file"
    CREATE_FILE = "create_file"
    CREATE_FOLDER = "create_folder"
    DELETE = "delete"
    LIST_DIR = "list_dir"


CREATION_ACTIONS: frozenset[str] = frozenset({Action.CREATE_FILE.value, Action.CREATE_FOLDER.value})


@dataclass(frozen=True)
class ToolCall:
    """One filesystem operation requested by the model."""
    action: str
    path: str | None = None
    content: str | None = None

    @classmethod
    def from_value(cls, value: object) -> ToolCall | None:
        """Build a ToolCall from decoded JSON, or None if the shape does not match."""
        if not isinstance(value, dict):
            return None
        action = value.get("action")
        if not isinstance(action, str):
            return None
        path = value.get("path")
        content = value.get("content")
        if path is not None and not isinstance(path, str):
            return None
        if content is not None and not isinstance(content, str):
            return None
        return cls(action=action, path=path, content=content)

    @classmethod
    def list_from_value(cls, value: object) -> list[ToolCall] | None:
        """Decode a JSON array where every element must be a ToolCall."""
        if not isinstance(value, list):
            return None
        calls: list[ToolCall] = []
        for item in value:
            call = cls.from_value(item)
            if call is None:
                return None
            calls.append(call)
        return calls


@dataclass(frozen=True)
class ToolResponse:
    """The model's reply: a list of tool calls or a plain answer."""
    tools: list[ToolCall] | None = None
    response: str | None = None

    @classmethod
    def from_value(cls, value: object) -> ToolResponse | None:
        """Decode the {"tools": [...], "response": "..."} shape, or None."""
        if not isinstance(value, dict):
            return None
        tools_raw = value.get("tools")
        response = value.get("response")
        tools = None
        if tools_raw is not None:
            tools = ToolCall.list_from_value(tools_raw)
            if tools is None:
                return None
        if response is not None and not isinstance(response, str):
            return None
        return cls(tools=tools, response=response)

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)

    @property
    def has_response(self) -> bool:
        return bool(self.response and self.response.strip())


@dataclass(frozen=True)
class ToolResult:
    """Outcome of executing (or rejecting) one ToolCall."""
    action: str
    path: str
    success: bool
    result: str

    def to_json(self) -> str:
        """Compact JSON used in the feedback message to the model."""
        return json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))


def serialize_results(results: list[ToolResult]) -> str:
    """Join serialized results, one JSON object per line."""
    return "\n".join(result.to_json() for result in results)
