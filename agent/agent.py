"""Agent: the ask → interpret → act → feed back loop."""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Callable

from agent.config import AgentConfig
from agent.exceptions import PromptTemplateError, ResponderError
from agent.models import Responder
from agent.output_parser import OutputParser
from agent.response import ToolCall, ToolResult, serialize_results
from agent.run_log import RunLog
from agent.safety_policy import SafetyPolicy
from prompts.template_engine import PromptTemplateEngine
from tools.executor import ToolExecutor
from tools.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_ACTION_MESSAGE = "No action taken."
NO_RESPONSE_MESSAGE = "No response."
STALLED_MESSAGE = "No further progress possible."
EXHAUSTED_MESSAGE = "Max iterations reached."
UNSUPPORTED_ACTION = "Unsupported action"


class LoopOutcome(str, Enum):
    """How a run ended."""

    ANSWERED = "answered"
    NO_ACTION = "no_action"
    NO_RESPONSE = "no_response"
    STALLED = "stalled"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class Agent:
    """
    Drives one user request to completion.

    Each round asks the responder, interprets the raw reply, filters the tool
    calls through the safety policy, executes the rest and feeds the
    serialized results into the next round. The run ends on a textual answer,
    when a round repeats the previous round's results, or when the iteration
    budget is spent.
    """

    def __init__(
        self,
        responder: Responder,
        working_root: str | Path,
        config: AgentConfig | None = None,
        policy: SafetyPolicy | None = None,
        parser: OutputParser | None = None,
        registry: ToolRegistry | None = None,
        run_log: RunLog | None = None,
        on_tool: Callable[[ToolCall], None] | None = None,
    ):
        # Without an explicit config nothing is written to disk.
        log_dir = config.log_dir if config is not None else None
        self.config = config or AgentConfig(run_log_enabled=False)
        self.responder = responder
        self.working_root = Path(working_root)
        self.session_id = uuid.uuid4().hex[:12]
        self.policy = policy or SafetyPolicy()
        self.parser = parser or OutputParser(log_dir)
        self.executor = ToolExecutor(
            self.working_root,
            registry=registry,
            confine_list_dir=self.config.tools.confine_list_dir,
        )
        self.run_log = run_log or RunLog(
            self.config.log_dir,
            self.session_id,
            enabled=self.config.run_log_enabled,
        )
        self.on_tool = on_tool
        self.max_iterations = self.config.max_iterations

        self.rounds = 0
        self.outcome: LoopOutcome | None = None

    # ── Main loop ────────────────────────────────────────────────────

    async def run(self, prompt: str, repo_context: str | None = None) -> str:
        """Process one request and return the final answer text."""
        self.rounds = 0
        self.outcome = None
        tool_results: str | None = None
        system_prompt = self._build_system_prompt()
        self.run_log.loop_start(prompt, str(self.working_root))

        while self.rounds < self.max_iterations:
            user_message = self._build_user_message(prompt, tool_results, repo_context)
            self.rounds += 1

            try:
                raw = await self.responder.ask(system_prompt, user_message)
            except ResponderError as e:
                self._finish(LoopOutcome.ERROR, str(e))
                raise
            self.run_log.llm_response(self.rounds, raw)

            parsed = self.parser.interpret(raw)
            if parsed.has_response:
                return self._finish(LoopOutcome.ANSWERED, parsed.response)
            if parsed.tools is None:
                return self._finish(LoopOutcome.NO_RESPONSE, NO_RESPONSE_MESSAGE)
            if not parsed.tools:
                return self._finish(LoopOutcome.NO_ACTION, NO_ACTION_MESSAGE)

            results = self._act(prompt, parsed.tools)
            if not results:
                return self._finish(LoopOutcome.NO_ACTION, NO_ACTION_MESSAGE)

            results_text = serialize_results(results)
            if results_text == tool_results:
                logger.info("Round %d repeated the previous tool results; stopping", self.rounds)
                return self._finish(LoopOutcome.STALLED, STALLED_MESSAGE)
            tool_results = results_text

        return self._finish(LoopOutcome.EXHAUSTED, EXHAUSTED_MESSAGE)

    def _act(self, prompt: str, tools: list[ToolCall]) -> list[ToolResult]:
        """Execute allowed calls; report blocked and unsupported ones as failures."""
        supported: list[ToolCall] = []
        blocked: list[tuple[ToolCall, str]] = []
        ignored: list[ToolCall] = []

        for tool_call in tools:
            if not self.executor.registry.supports(tool_call.action):
                ignored.append(tool_call)
                continue
            reason = self.policy.check(tool_call, prompt)
            if reason:
                blocked.append((tool_call, reason))
            else:
                supported.append(tool_call)

        results: list[ToolResult] = []
        for tool_call in supported:
            if self.on_tool:
                self.on_tool(tool_call)
            results.append(self.executor.execute(tool_call))
        for tool_call, reason in blocked:
            results.append(ToolResult(
                action=tool_call.action,
                path=tool_call.path or "",
                success=False,
                result=reason,
            ))
        for tool_call in ignored:
            results.append(ToolResult(
                action=tool_call.action,
                path=tool_call.path or "",
                success=False,
                result=UNSUPPORTED_ACTION,
            ))

        for result in results:
            self.run_log.tool_result(
                self.rounds, result.action, result.path, result.success, result.result
            )
        return results

    def _finish(self, outcome: LoopOutcome, message: str) -> str:
        self.outcome = outcome
        self.run_log.loop_end(outcome.value, self.rounds, message)
        return message

    # ── Prompt assembly ──────────────────────────────────────────────

    def _build_system_prompt(self) -> str:
        """Render the system prompt with the working directory and tool list."""
        variables = {
            "cwd": str(self.working_root.resolve()),
            "tool_descriptions": self.executor.registry.get_tool_descriptions(),
        }
        try:
            engine = PromptTemplateEngine(profile=self.config.prompt_profile)
            return engine.render("agent.system.main.md", variables)
        except PromptTemplateError as e:
            logger.warning("Falling back to built-in system prompt: %s", e)
            return (
                "You perform file system operations. Respond with ONLY JSON: "
                '{"tools": [...]} or {"response": "..."}.\n'
                f"TOOLS:\n{variables['tool_descriptions']}\n"
                f"Current directory: {variables['cwd']}"
            )

    @staticmethod
    def _build_user_message(
        prompt: str,
        tool_results: str | None,
        repo_context: str | None,
    ) -> str:
        if tool_results is not None:
            return (
                f"Tool results:\n{tool_results}\n\n"
                f"Original request: {prompt}\n\n"
                "Based on these results, provide final response or more tool calls."
            )
        if repo_context is not None:
            return f"REPO CONTEXT:\n{repo_context}\n\nUSER REQUEST: {prompt}"
        return prompt


async def run(
    prompt: str,
    working_root: str | Path,
    responder: Responder,
    repo_context: str | None = None,
    config: AgentConfig | None = None,
) -> str:
    """Run one request through a fresh Agent."""
    agent = Agent(responder, working_root, config=config)
    return await agent.run(prompt, repo_context=repo_context)
