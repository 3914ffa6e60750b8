"""ToolExecutor: runs one ToolCall inside the working-directory boundary."""

from __future__ import annotations

import logging
from pathlib import Path

from agent.response import Action, ToolCall, ToolResult
from tools.tool_registry import ToolRegistry, default_registry

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied: path outside current directory"
ROOT_DELETE_DENIED = "Access denied: refusing to delete the working directory"
UNKNOWN_ACTION = "Unknown action"


class ToolExecutor:
    """
    Validates and performs filesystem tool calls against a working root.
    Every outcome, including failure, is returned as a ToolResult.
    """

    def __init__(
        self,
        working_root: str | Path,
        registry: ToolRegistry | None = None,
        confine_list_dir: bool = False,
    ):
        self.working_root = Path(working_root)
        self.registry = registry or default_registry()
        self.confine_list_dir = confine_list_dir

    def execute(self, tool_call: ToolCall) -> ToolResult:
        path_str = tool_call.path if tool_call.path is not None else "."
        tool = self.registry.get_tool(tool_call.action, self.working_root)

        target = self.working_root / path_str
        try:
            root = self.working_root.resolve()
            resolved = target.resolve()
        except (OSError, ValueError, RuntimeError) as e:
            return self._fail(tool_call.action, path_str, str(e))

        inside = resolved.is_relative_to(root)
        confined = tool.confined if tool is not None else True
        if self.confine_list_dir:
            confined = True
        if not inside and confined:
            logger.warning("Denied %s outside working root: %s", tool_call.action, path_str)
            return self._fail(tool_call.action, path_str, ACCESS_DENIED)

        if tool is None:
            return self._fail(tool_call.action, path_str, UNKNOWN_ACTION)

        if tool_call.action == Action.DELETE.value and resolved == root:
            return self._fail(tool_call.action, path_str, ROOT_DELETE_DENIED)

        try:
            message = tool.execute(target, tool_call)
        except (OSError, UnicodeError, ValueError) as e:
            logger.debug("%s %s failed: %s", tool_call.action, path_str, e)
            return self._fail(tool_call.action, path_str, str(e))

        return ToolResult(action=tool_call.action, path=path_str, success=True, result=message)

    @staticmethod
    def _fail(action: str, path: str, message: str) -> ToolResult:
        return ToolResult(action=action, path=path, success=False, result=message)


def execute(tool_call: ToolCall, working_root: str | Path) -> ToolResult:
    """Execute a single tool call with the default registry."""
    return ToolExecutor(working_root).execute(tool_call)
