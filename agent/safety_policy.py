"""Stack-consistency policy for proposed file creations.

A request that clearly targets one technology stack should not have files
scaffolded for a different, conflicting stack. The decision is driven by two
tables: the stack signatures (prompt keywords and artifact names) and the
exclusive pairs that are checked against each other.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from agent.response import CREATION_ACTIONS, ToolCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StackSignature:
    """How a technology stack shows up in prompts and in file paths."""
    label: str
    keywords: tuple[str, ...]
    file_names: frozenset[str] = field(default_factory=frozenset)
    extensions: tuple[str, ...] = ()
    _keyword_re: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Whole words only, with an optional version suffix ("python3").
        pattern = r"\b(?:" + "|".join(map(re.escape, self.keywords)) + r")\d*\b"
        object.__setattr__(self, "_keyword_re", re.compile(pattern))

    def mentioned_in(self, prompt_lower: str) -> bool:
        return bool(self.keywords) and self._keyword_re.search(prompt_lower) is not None

    def owns_path(self, path: str) -> bool:
        name = PurePosixPath(path.replace("\\", "/")).name.lower()
        if not name:
            return False
        return name in self.file_names or name.endswith(self.extensions)


PYTHON = StackSignature(
    label="Python/Streamlit",
    keywords=("python", "streamlit"),
    file_names=frozenset({"requirements.txt", "pyproject.toml", "setup.py", "pipfile"}),
    extensions=(".py",),
)
RUST = StackSignature(
    label="Rust",
    keywords=("rust", "cargo"),
    file_names=frozenset({"cargo.toml", "cargo.lock"}),
    extensions=(".rs",),
)
NODE = StackSignature(
    label="Node.js",
    keywords=("node", "npm", "javascript", "typescript"),
    file_names=frozenset({"package.json", "package-lock.json", "tsconfig.json"}),
    extensions=(".js", ".mjs", ".cjs", ".ts"),
)

# (requested, conflicting): block artifacts of `conflicting` when only `requested` is asked for.
DEFAULT_EXCLUSIVE_STACKS: tuple[tuple[StackSignature, StackSignature], ...] = (
    (PYTHON, RUST),
    (RUST, PYTHON),
    (PYTHON, NODE),
    (NODE, PYTHON),
)


class SafetyPolicy:
    """Veto creation calls that scaffold a stack the user did not ask for."""

    def __init__(
        self,
        exclusive_stacks: tuple[tuple[StackSignature, StackSignature], ...] = DEFAULT_EXCLUSIVE_STACKS,
    ):
        self.exclusive_stacks = exclusive_stacks

    def check(self, tool_call: ToolCall, prompt: str) -> str | None:
        """Return the block reason, or None when the call may run."""
        if tool_call.action not in CREATION_ACTIONS:
            return None

        path = tool_call.path or ""
        if not path:
            return None

        prompt_lower = prompt.lower()
        for requested, conflicting in self.exclusive_stacks:
            if not conflicting.owns_path(path):
                continue
            if requested.mentioned_in(prompt_lower) and not conflicting.mentioned_in(prompt_lower):
                reason = f"Blocked {conflicting.label}-specific file for {requested.label} request"
                logger.info("%s: %s %s", reason, tool_call.action, path)
                return reason
        return None
