"""Abstract base class for all filesystem tools."""

from abc import ABC, abstractmethod
from pathlib import Path

from agent.response import ToolCall


class Tool(ABC):
    """Base class for filesystem tools. Subclass this to add a new action."""

    name: str = ""
    description: str = ""
    example: dict = {}
    # Whether the target path must resolve inside the working directory.
    confined: bool = True

    def __init__(self, working_root: Path):
        self.working_root = working_root

    @abstractmethod
    def execute(self, target: Path, tool_call: ToolCall) -> str:
        """Perform the operation on `target`. Raise OSError on failure."""
        ...

    def get_prompt_description(self) -> str:
        """One line for the system prompt: the JSON shape of a call."""
        example = {"action": self.name, **self.example}
        parts = ", ".join(f'"{key}": "{value}"' for key, value in example.items())
        return f"- {{{parts}}}"
