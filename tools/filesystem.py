"""Filesystem tools: read, create, delete and list paths under the working directory."""

import shutil
from pathlib import Path

from agent.response import Action, ToolCall
from tools.base_tool import Tool


class ReadFileTool(Tool):
    name = Action.READ_FILE.value
    description = "Read the full text content of a file."
    example = {"path": "file.txt"}

    def execute(self, target: Path, tool_call: ToolCall) -> str:
        return target.read_text(encoding="utf-8")


class CreateFileTool(Tool):
    name = Action.CREATE_FILE.value
    description = "Create or overwrite a file, creating missing parent folders."
    example = {"path": "file.txt", "content": "file content"}

    def execute(self, target: Path, tool_call: ToolCall) -> str:
        data = (tool_call.content or "").encode("utf-8")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return f"Created file with {len(data)} bytes"


class CreateFolderTool(Tool):
    name = Action.CREATE_FOLDER.value
    description = "Create a folder and any missing parents."
    example = {"path": "folder"}

    def execute(self, target: Path, tool_call: ToolCall) -> str:
        target.mkdir(parents=True, exist_ok=True)
        return "Folder created"


class DeleteTool(Tool):
    name = Action.DELETE.value
    description = "Delete a file, or a folder with everything in it."
    example = {"path": "file.txt"}

    def execute(self, target: Path, tool_call: ToolCall) -> str:
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        return "Deleted"


class ListDirTool(Tool):
    name = Action.LIST_DIR.value
    description = "List the immediate entries of a folder; folders end with '/'."
    example = {"path": "."}
    confined = False

    def execute(self, target: Path, tool_call: ToolCall) -> str:
        entries = []
        for entry in sorted(target.iterdir(), key=lambda p: p.name):
            entries.append(f"{entry.name}/" if entry.is_dir() else entry.name)
        return "\n".join(entries)
