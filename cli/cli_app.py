"""Interactive CLI for clio-ai."""

import os

from agent.agent import Agent
from agent.config import MODELS, AgentConfig, env_paths
from agent.exceptions import ResponderError
from agent.models import LLMResponder, OllamaClient
from agent.repo_context import gather_repo_context, needs_repo_context
from agent.response import ToolCall


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"

VERSION = "0.1.0"


class CLIApp:
    """Interactive REPL that runs each request in the current directory."""

    def __init__(self, config: AgentConfig, working_root: str | None = None):
        self.config = config
        self.working_root = working_root or os.getcwd()
        self.responder = LLMResponder(config.provider, config.http)

    async def run(self):
        """Main REPL loop."""
        self._print_banner()

        if not await self._preflight_ollama():
            return

        while True:
            try:
                user_input = input(f"{BOLD}>>>{RESET} ").strip()
            except (EOFError, KeyboardInterrupt):
                print(f"\n{DIM}Goodbye!{RESET}")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled, keep_going = self.handle_command(user_input)
                if not keep_going:
                    break
                if handled:
                    continue

            await self.process_prompt(user_input)

    async def process_prompt(self, prompt: str) -> str | None:
        """Run one request and print the answer; provider errors are printed, not raised."""
        repo_context = gather_repo_context(self.working_root) if needs_repo_context(prompt) else None
        agent = Agent(
            self.responder,
            self.working_root,
            config=self.config,
            on_tool=self._print_tool,
        )
        try:
            result = await agent.run(prompt, repo_context=repo_context)
        except ResponderError as e:
            print(f"\n{RED}Error: {e}{RESET}\n")
            return None

        print(f"\n{result}\n")
        return result

    def handle_command(self, user_input: str) -> tuple[bool, bool]:
        """
        Handle a slash command.
        Returns (handled, keep_going); unknown commands are not handled and
        are sent to the model as a prompt.
        """
        parts = user_input.split(maxsplit=1)
        cmd = parts[0].lower()

        if cmd == "/help":
            self._print_help()
        elif cmd == "/models":
            print(f"\n{BOLD}Available models:{RESET}")
            for model_id, name, provider in MODELS:
                print(f"  {CYAN}{model_id}{RESET} - {name} ({provider})")
            print()
        elif cmd == "/model":
            if len(parts) < 2:
                print(f"{YELLOW}[Usage] /model <model_name>{RESET}")
                return True, True
            model = parts[1].strip()
            self.responder.set_model(model)
            print(f"{DIM}Switched to: {model} ({self.responder.provider}){RESET}")
        elif cmd == "/config":
            locations = ["config.json in " + self.config.data_dir, ".env in current dir"]
            locations.extend(str(path) for path in env_paths())
            print(f"{DIM}Config: {' OR '.join(locations)}{RESET}")
        elif cmd in ("/quit", "/exit"):
            print(f"{DIM}Goodbye!{RESET}")
            return True, False
        else:
            return False, True
        return True, True

    def _print_tool(self, tool_call: ToolCall):
        print(f"  {DIM}→ {tool_call.action} {tool_call.path or ''}{RESET}")

    def _print_banner(self):
        print(
            f"{BOLD}{CYAN}clio-ai v{VERSION}{RESET} | "
            f"Model: {self.responder.model} | {DIM}/help for commands{RESET}"
        )

    def _print_help(self):
        print(f"""
{BOLD}Commands:{RESET}
  {CYAN}/models{RESET}        — List available models
  {CYAN}/model{RESET} <name>  — Switch model
  {CYAN}/config{RESET}        — Show config locations
  {CYAN}/quit{RESET}          — Exit

{BOLD}How it works:{RESET}
  Your request is sent to the model, which answers with file
  operations (create, read, delete, list) or a plain reply.
  Operations run inside the current directory and their results
  are sent back until the model gives its final answer.
""")

    async def _preflight_ollama(self) -> bool:
        """Check Ollama connectivity and model availability before starting."""
        if self.responder.provider != "ollama" or not self.config.http.health_check_on_start:
            return True

        client = OllamaClient(
            model=self.responder.model,
            base_url=self.config.provider.ollama_url,
            settings=self.config.http,
        )
        if not await client.health_check():
            print(f"{RED}[Error] Cannot connect to Ollama at {client.base_url}{RESET}")
            print(f"{DIM}Make sure Ollama is running: ollama serve{RESET}")
            return False

        try:
            models = await client.list_models()
        except ResponderError as e:
            print(f"{RED}[Error] {e}{RESET}")
            return False

        model_names = [m.get("name", "?") for m in models]
        missing = OllamaClient.filter_missing_models([client.model], model_names)
        if missing:
            print(f"{RED}[Error] Missing model at {client.base_url}: {', '.join(missing)}{RESET}")
            print(f"{DIM}Pull with: ollama pull {client.model}{RESET}")
            return False
        return True
