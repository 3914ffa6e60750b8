"""Robust output parser for recovering tool calls from LLM output."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Callable

from agent.response import Action, ToolCall, ToolResponse

logger = logging.getLogger(__name__)

_FENCE = "```"
_FILENAME_SEPARATORS = (" (", " -", ":")
_LEADING_BOLD = re.compile(r"^(?:\*\*)+")
_TRAILING_BOLD = re.compile(r"(?:\*\*)+$")

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = {"}", "]"}


class OutputParser:
    """Interpret raw model output as a ToolResponse with layered strategies."""

    def __init__(self, log_dir: str | None = None):
        self._logger = self._build_logger(log_dir) if log_dir else None

    def interpret(self, raw_text: str) -> ToolResponse:
        """Return the first interpretation produced by the strategy chain."""
        text = raw_text.strip()

        strategies: list[tuple[str, Callable[[str], ToolResponse | None]]] = [
            ("strict", self._from_strict_json),
            ("embedded", self._from_embedded_json),
            ("markdown", self._from_markdown_blocks),
        ]
        for strategy_name, strategy in strategies:
            parsed = strategy(text)
            if parsed is not None:
                logger.debug("Interpreted model output via %s strategy", strategy_name)
                return parsed

        self._log_fallback(raw_text)
        return ToolResponse(tools=None, response=text)

    # ── Strategies ───────────────────────────────────────────────────

    def _from_strict_json(self, text: str) -> ToolResponse | None:
        value = _load_json(text)
        if value is _INVALID:
            return None
        return interpret_value(value)

    def _from_embedded_json(self, text: str) -> ToolResponse | None:
        for candidate in extract_json_candidates(text):
            value = _load_json(candidate)
            if value is _INVALID:
                continue
            parsed = interpret_value(value)
            if parsed is not None:
                return parsed
        return None

    def _from_markdown_blocks(self, text: str) -> ToolResponse | None:
        tools = extract_markdown_files(text)
        if tools:
            return ToolResponse(tools=tools, response=None)
        return None

    # ── Failure logging ──────────────────────────────────────────────

    def _log_fallback(self, raw_text: str) -> None:
        logger.debug("No structured content found; treating output as plain text")
        if self._logger is None:
            return
        self._logger.info("Parse fallback to plain text\nRAW_OUTPUT:\n%s\n", raw_text)
        for handler in self._logger.handlers:
            handler.flush()

    def _build_logger(self, log_dir: str) -> logging.Logger | None:
        log_path = os.path.abspath(os.path.join(log_dir, "output_parser.log"))
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError as e:
            logger.warning("Parse log disabled, cannot create %s: %s", log_dir, e)
            return None
        # One logger per file, shared by every parser writing there.
        parser_logger = logging.getLogger(f"output_parser[{log_path}]")

        parser_logger.setLevel(logging.INFO)
        for handler in parser_logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
                return parser_logger

        try:
            handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            logger.warning("Parse log disabled, cannot open %s: %s", log_path, e)
            return None
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        parser_logger.addHandler(handler)
        parser_logger.propagate = False
        return parser_logger


_default_parser = OutputParser()


def interpret(raw_text: str) -> ToolResponse:
    """Interpret raw model text without writing a parse log."""
    return _default_parser.interpret(raw_text)


_INVALID = object()


def _load_json(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return _INVALID


def interpret_value(value: object) -> ToolResponse | None:
    """Map a decoded JSON value onto a ToolResponse, or None if it has no usable content."""
    resp = ToolResponse.from_value(value)
    if resp is not None and (resp.has_tools or resp.has_response):
        return resp

    if isinstance(value, dict):
        if "action" in value:
            call = ToolCall.from_value(value)
            if call is not None:
                return ToolResponse(tools=[call], response=None)

        if "tools" in value:
            tools = ToolCall.list_from_value(value["tools"])
            if tools:
                return ToolResponse(tools=tools, response=None)

        response = value.get("response")
        if isinstance(response, str) and response.strip():
            return ToolResponse(tools=None, response=response)

    if isinstance(value, list):
        tools = ToolCall.list_from_value(value)
        if tools:
            return ToolResponse(tools=tools, response=None)

    return None


def extract_json_candidates(text: str) -> list[str]:
    """
    Find balanced top-level {...} / [...] regions, left to right.
    Brackets inside quoted strings are ignored, including after escaped quotes.
    """
    candidates: list[str] = []
    i = 0
    length = len(text)

    while i < length:
        if text[i] not in _OPENERS:
            i += 1
            continue

        stack = [text[i]]
        in_string = False
        escape = False
        end = None
        j = i + 1
        while j < length:
            ch = text[j]
            if in_string:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == "\"":
                    in_string = False
            elif ch == "\"":
                in_string = True
            elif ch in _OPENERS:
                stack.append(ch)
            elif ch in _CLOSERS:
                opener = stack.pop()
                if _OPENERS[opener] != ch:
                    break
                if not stack:
                    end = j
                    break
            j += 1

        if end is not None:
            candidates.append(text[i:end + 1])
            i = end
        i += 1

    return candidates


def extract_markdown_files(text: str) -> list[ToolCall]:
    """Turn "filename line + fenced code block" pairs into create_file calls."""
    tools: list[ToolCall] = []
    # Only \n and \r\n end a line; other separators belong to the content.
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    i = 0

    while i < len(lines):
        filename = extract_filename(lines[i])
        if filename and i + 1 < len(lines) and lines[i + 1].strip().startswith(_FENCE):
            body: list[str] = []
            i += 2
            while i < len(lines) and not lines[i].strip().startswith(_FENCE):
                body.append(lines[i])
                i += 1
            tools.append(ToolCall(
                action=Action.CREATE_FILE.value,
                path=filename,
                content="\n".join(body).rstrip(),
            ))
        i += 1

    return tools


def extract_filename(line: str) -> str | None:
    """Recognize **name.ext**, `name.ext`, and "name.ext:" / "name.ext -" / "name.ext (" lines."""
    line = line.strip()

    if line.startswith("**") and line.endswith("**"):
        name = _strip_bold(line).strip()
        if "." in name or name.endswith("/"):
            return name

    if line.startswith("`") and line.endswith("`") and _FENCE not in line:
        name = line.strip("`").strip()
        if "." in name:
            return name

    for sep in _FILENAME_SEPARATORS:
        pos = line.find(sep)
        if pos == -1:
            continue
        name = _strip_bold(line[:pos].strip())
        if "." in name and " " not in name:
            return name

    return None


def _strip_bold(text: str) -> str:
    return _TRAILING_BOLD.sub("", _LEADING_BOLD.sub("", text))
