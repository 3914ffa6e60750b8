"""Run log: appends agent loop activity to a JSONL file per session."""

import json
import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class RunLog:
    """Writes loop_start / llm_response / tool_result / loop_end entries."""

    def __init__(self, log_dir: str, session_id: str, enabled: bool = True):
        self.log_dir = log_dir
        self.session_id = session_id
        self.enabled = enabled

    @property
    def path(self) -> str:
        return os.path.join(self.log_dir, f"session_{self.session_id}.jsonl")

    def _write_entry(self, event: str, data: dict):
        if not self.enabled:
            return
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session": self.session_id,
            "event": event,
            **data,
        }
        try:
            os.makedirs(self.log_dir, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            # The run carries on without its log after the first failure.
            logger.warning("Run log disabled, cannot write %s: %s", self.path, e)
            self.enabled = False

    def loop_start(self, prompt: str, working_root: str):
        self._write_entry("loop_start", {"prompt": prompt, "working_root": working_root})

    def llm_response(self, round_number: int, response: str):
        self._write_entry("llm_response", {
            "round": round_number,
            "response_length": len(response),
            "response_preview": response[:500],
        })

    def tool_result(self, round_number: int, action: str, path: str, success: bool, result: str):
        self._write_entry("tool_result", {
            "round": round_number,
            "action": action,
            "path": path,
            "success": success,
            "result_preview": result[:500],
        })

    def loop_end(self, outcome: str, rounds: int, final_response: str):
        self._write_entry("loop_end", {
            "outcome": outcome,
            "rounds": rounds,
            "response_preview": final_response[:500],
        })
