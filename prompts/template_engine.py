"""Prompt template engine with {{variable}} substitution and {{include:file}} directives."""

import re
from pathlib import Path

from agent.exceptions import PromptTemplateError


PROMPTS_DIR = Path(__file__).resolve().parent
MAX_INCLUDE_DEPTH = 10

_INCLUDE_RE = re.compile(r"\{\{include:([^}]+)\}\}")
_VARIABLE_RE = re.compile(r"\{\{(\w+)\}\}")


class PromptTemplateEngine:
    """Renders the markdown prompts of one profile directory."""

    def __init__(self, prompts_dir: str | Path = PROMPTS_DIR, profile: str = "default"):
        self.base_dir = Path(prompts_dir) / profile
        if not self.base_dir.is_dir():
            raise PromptTemplateError(f"Prompts directory not found: {self.base_dir}")

    def render(self, template_name: str, variables: dict) -> str:
        """Load a template, expand its includes and fill in every placeholder."""
        template = self._read(template_name)
        template = self._resolve_includes(template, depth=0)
        return self.render_string(template, variables)

    def _read(self, name: str) -> str:
        path = self.base_dir / name
        if not path.is_file():
            raise PromptTemplateError(f"Template not found: {path}")
        return path.read_text(encoding="utf-8")

    def _resolve_includes(self, template: str, depth: int) -> str:
        if depth > MAX_INCLUDE_DEPTH:
            raise PromptTemplateError(
                f"Include depth exceeded {MAX_INCLUDE_DEPTH}, possible circular reference"
            )

        def replacer(match):
            included_name = match.group(1).strip()
            if not (self.base_dir / included_name).is_file():
                return f"[Missing template: {included_name}]"
            return self._resolve_includes(self._read(included_name), depth + 1)

        return _INCLUDE_RE.sub(replacer, template)

    def render_string(self, template_str: str, variables: dict) -> str:
        """
        Substitute {{name}} placeholders.
        A placeholder without a value raises, so a drifted profile is never sent half-rendered.
        """
        missing = sorted(set(_VARIABLE_RE.findall(template_str)) - set(variables))
        if missing:
            raise PromptTemplateError(f"No value for placeholder(s): {', '.join(missing)}")
        return _VARIABLE_RE.sub(lambda m: str(variables[m.group(1)]), template_str)
