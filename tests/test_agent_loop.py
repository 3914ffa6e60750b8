import json
import tempfile
import unittest
from pathlib import Path

from agent.agent import (
    EXHAUSTED_MESSAGE,
    NO_ACTION_MESSAGE,
    NO_RESPONSE_MESSAGE,
    STALLED_MESSAGE,
    Agent,
    LoopOutcome,
    run,
)
from agent.config import AgentConfig, ToolsConfig
from agent.exceptions import ProviderConnectionError
from agent.response import ToolResponse


class ScriptedResponder:
    """Returns canned replies in order and records every call."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    async def ask(self, system_context: str, user_message: str) -> str:
        self.calls.append((system_context, user_message))
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if callable(reply):
            return reply(len(self.calls))
        return reply


class FailingResponder:
    async def ask(self, system_context: str, user_message: str) -> str:
        raise ProviderConnectionError("Cannot reach Gemini")


def tools_reply(*tools) -> str:
    return json.dumps({"tools": list(tools)})


class TestAgentLoop(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name)
        self.root = self.base / "project"
        self.root.mkdir()
        self.config = AgentConfig(log_dir=str(self.base / "logs"))

    def tearDown(self):
        self._tmp.cleanup()

    def _agent(self, responder, **kwargs) -> Agent:
        return Agent(responder, self.root, config=kwargs.pop("config", self.config), **kwargs)

    async def test_plain_answer_returns_immediately(self):
        responder = ScriptedResponder(['{"response": "Hello! What should I create?"}'])
        agent = self._agent(responder)
        result = await agent.run("hi")
        self.assertEqual(result, "Hello! What should I create?")
        self.assertEqual(agent.outcome, LoopOutcome.ANSWERED)
        self.assertEqual(len(responder.calls), 1)
        system_context, user_message = responder.calls[0]
        self.assertEqual(user_message, "hi")
        self.assertIn(str(self.root.resolve()), system_context)
        self.assertIn('"action": "create_file"', system_context)

    async def test_tools_then_answer(self):
        responder = ScriptedResponder([
            tools_reply({"action": "create_file", "path": "hello.py", "content": "print('hello')"}),
            '{"response": "Created hello.py"}',
        ])
        agent = self._agent(responder)
        result = await agent.run("create hello.py with print hello")

        self.assertEqual(result, "Created hello.py")
        self.assertEqual((self.root / "hello.py").read_text(), "print('hello')")
        self.assertEqual(agent.rounds, 2)

        feedback = responder.calls[1][1]
        self.assertTrue(feedback.startswith("Tool results:\n"))
        self.assertIn(
            '{"action":"create_file","path":"hello.py","success":true,"result":"Created file with 14 bytes"}',
            feedback,
        )
        self.assertIn("Original request: create hello.py with print hello", feedback)
        self.assertTrue(feedback.endswith("provide final response or more tool calls."))

    async def test_results_grouped_executed_blocked_unsupported(self):
        responder = ScriptedResponder([
            tools_reply(
                {"action": "shell", "path": "run.sh"},
                {"action": "create_file", "path": "main.rs", "content": "fn main() {}"},
                {"action": "create_file", "path": "app.py", "content": "import streamlit"},
            ),
            '{"response": "done"}',
        ])
        executed = []
        agent = self._agent(responder, on_tool=executed.append)
        await agent.run("create a streamlit app")

        lines = responder.calls[1][1].split("\n\n")[0].split("\n")[1:]
        results = [json.loads(line) for line in lines]
        self.assertEqual(
            [(r["action"], r["path"], r["success"]) for r in results],
            [("create_file", "app.py", True), ("create_file", "main.rs", False), ("shell", "run.sh", False)],
        )
        self.assertEqual(results[1]["result"], "Blocked Rust-specific file for Python/Streamlit request")
        self.assertEqual(results[2]["result"], "Unsupported action")
        self.assertEqual([call.path for call in executed], ["app.py"])
        self.assertFalse((self.root / "main.rs").exists())

    async def test_stall_stops_on_second_identical_round(self):
        responder = ScriptedResponder([tools_reply({"action": "list_dir", "path": "."})])
        agent = self._agent(responder)
        result = await agent.run("what files are here?")
        self.assertEqual(result, STALLED_MESSAGE)
        self.assertEqual(agent.outcome, LoopOutcome.STALLED)
        self.assertEqual(len(responder.calls), 2)

    async def test_exhaustion_at_ten_rounds(self):
        responder = ScriptedResponder([
            lambda n: tools_reply({"action": "create_file", "path": f"file_{n}.txt", "content": str(n)}),
        ])
        agent = self._agent(responder)
        result = await agent.run("keep going")
        self.assertEqual(result, EXHAUSTED_MESSAGE)
        self.assertEqual(agent.outcome, LoopOutcome.EXHAUSTED)
        self.assertEqual(len(responder.calls), 10)
        self.assertEqual(agent.rounds, 10)

    async def test_iteration_bound_is_configurable(self):
        responder = ScriptedResponder([
            lambda n: tools_reply({"action": "create_folder", "path": f"d{n}"}),
        ])
        config = AgentConfig(log_dir=str(self.base / "logs"), max_iterations=3)
        result = await self._agent(responder, config=config).run("go")
        self.assertEqual(result, EXHAUSTED_MESSAGE)
        self.assertEqual(len(responder.calls), 3)

    async def test_empty_tools_and_blank_response_fall_back_to_text(self):
        responder = ScriptedResponder(['{"tools": [], "response": ""}', '{"response": "unused"}'])
        agent = self._agent(responder)
        result = await agent.run("do nothing")
        self.assertEqual(result, '{"tools": [], "response": ""}')
        self.assertEqual(len(responder.calls), 1)

    async def test_empty_tool_list_takes_no_action(self):
        class EmptyToolsParser:
            def interpret(self, raw_text):
                return ToolResponse(tools=[], response=None)

        responder = ScriptedResponder(["anything"])
        agent = self._agent(responder, parser=EmptyToolsParser())
        self.assertEqual(await agent.run("do nothing"), NO_ACTION_MESSAGE)
        self.assertEqual(agent.outcome, LoopOutcome.NO_ACTION)

    async def test_empty_reply_is_no_response(self):
        responder = ScriptedResponder(["   "])
        agent = self._agent(responder)
        self.assertEqual(await agent.run("hello?"), NO_RESPONSE_MESSAGE)
        self.assertEqual(agent.outcome, LoopOutcome.NO_RESPONSE)

    async def test_markdown_reply_creates_files(self):
        responder = ScriptedResponder([
            "Here you go:\n\n**app.py**\n```python\nprint('hi')\n```\n",
            '{"response": "ok"}',
        ])
        await self._agent(responder).run("make app.py")
        self.assertEqual((self.root / "app.py").read_text(), "print('hi')")

    async def test_repo_context_only_on_first_round(self):
        responder = ScriptedResponder([
            tools_reply({"action": "read_file", "path": "README.md"}),
            '{"response": "A demo project."}',
        ])
        (self.root / "README.md").write_text("# Demo")
        await self._agent(responder).run("summarize this repo", repo_context="FILES:\n📄 README.md\n")
        self.assertEqual(
            responder.calls[0][1],
            "REPO CONTEXT:\nFILES:\n📄 README.md\n\n\nUSER REQUEST: summarize this repo",
        )
        self.assertTrue(responder.calls[1][1].startswith("Tool results:"))

    async def test_responder_error_propagates(self):
        agent = self._agent(FailingResponder())
        with self.assertRaises(ProviderConnectionError):
            await agent.run("hi")
        self.assertEqual(agent.outcome, LoopOutcome.ERROR)

    async def test_failed_tool_results_are_fed_back(self):
        responder = ScriptedResponder([
            tools_reply({"action": "read_file", "path": "../secret.txt"}),
            '{"response": "I cannot read that."}',
        ])
        result = await self._agent(responder).run("read ../secret.txt")
        self.assertEqual(result, "I cannot read that.")
        self.assertIn("Access denied: path outside current directory", responder.calls[1][1])

    async def test_confined_list_dir_from_config(self):
        responder = ScriptedResponder([
            tools_reply({"action": "list_dir", "path": ".."}),
            '{"response": "ok"}',
        ])
        config = AgentConfig(log_dir=str(self.base / "logs"), tools=ToolsConfig(confine_list_dir=True))
        await self._agent(responder, config=config).run("list the parent folder")
        self.assertIn("Access denied", responder.calls[1][1])

    async def test_run_log_records_events(self):
        responder = ScriptedResponder([
            tools_reply({"action": "create_folder", "path": "src"}),
            '{"response": "done"}',
        ])
        agent = self._agent(responder)
        await agent.run("make src")
        entries = [json.loads(line) for line in Path(agent.run_log.path).read_text().splitlines()]
        self.assertEqual(
            [e["event"] for e in entries],
            ["loop_start", "llm_response", "tool_result", "llm_response", "loop_end"],
        )
        self.assertEqual(entries[-1]["outcome"], "answered")
        self.assertEqual(entries[-1]["rounds"], 2)

    async def test_unknown_prompt_profile_uses_builtin_prompt(self):
        responder = ScriptedResponder(['{"response": "ok"}'])
        config = AgentConfig(log_dir=str(self.base / "logs"), prompt_profile="missing-profile")
        await self._agent(responder, config=config).run("hi")
        system_context = responder.calls[0][0]
        self.assertTrue(system_context.startswith("You perform file system operations."))
        self.assertIn(f"Current directory: {self.root.resolve()}", system_context)

    async def test_unwritable_log_dir_does_not_break_run(self):
        blocker = self.base / "blocker"
        blocker.write_text("not a directory")
        config = AgentConfig(log_dir=str(blocker / "logs"))
        responder = ScriptedResponder([
            tools_reply({"action": "create_folder", "path": "src"}),
            "plain text reply",
        ])
        with self.assertLogs("agent.run_log", level="WARNING"):
            agent = self._agent(responder, config=config)
            result = await agent.run("make src")
        self.assertEqual(result, "plain text reply")
        self.assertTrue((self.root / "src").is_dir())
        self.assertFalse(agent.run_log.enabled)

    async def test_module_level_run(self):
        responder = ScriptedResponder(['Plain text answer'])
        result = await run("hello", self.root, responder)
        self.assertEqual(result, "Plain text answer")
