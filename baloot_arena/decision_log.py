# baloot_arena/decision_log.py
from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional


class DecisionLogger:
    """
    Accumulates turn-by-turn decision records and writes them on flush().

    Two kinds of entries are kept: model interactions (prompt, raw output,
    parsed decision) and failures (protocol violations, timeouts, unparsable
    model output). With `only_failures=True` interactions are dropped so the
    file holds failures alone.
    """

    def __init__(self, path: Path, *, only_failures: bool = False) -> None:
        self.path = Path(path)
        self.only_failures = only_failures
        self._entries: List[str] = []
        self._lock = Lock()

    @staticmethod
    def _header(
        agent_label: str,
        purpose: str,
        game_id: Optional[str],
        seat: Optional[int],
    ) -> str:
        parts = [f"Agent: {agent_label}", f"Purpose: {purpose}"]
        if game_id is not None:
            parts.append(f"Game: {game_id}")
        if seat is not None:
            parts.append(f"Seat: {seat}")
        return " | ".join(parts)

    def _append(self, lines: List[str]) -> None:
        entry = "\n".join(lines).strip()
        with self._lock:
            self._entries.append(entry)

    def log_interaction(
        self,
        *,
        agent_label: str,
        purpose: str,
        prompt: str,
        raw_output: Optional[str],
        parsed_json: Optional[Dict[str, Any]],
        game_id: Optional[str] = None,
        seat: Optional[int] = None,
        rationale_text: Optional[str] = None,
    ) -> None:
        if self.only_failures:
            return
        lines = [
            f"=== {self._header(agent_label, purpose, game_id, seat)} ===",
            "Prompt:",
            prompt.strip(),
            "",
            "Raw output:",
            (raw_output or "").strip(),
        ]
        if rationale_text:
            lines.extend(["", "Rationale:", rationale_text.strip()])
        if parsed_json is not None:
            lines.extend(["", "Parsed JSON object:", repr(parsed_json)])
        self._append(lines)

    def log_failure(
        self,
        *,
        agent_label: str,
        purpose: str,
        error: str,
        game_id: Optional[str] = None,
        seat: Optional[int] = None,
        raw_output: Optional[str] = None,
        fallback: Optional[str] = None,
    ) -> None:
        lines = [
            f"=== {self._header(agent_label, purpose, game_id, seat)} ===",
            f"Error: {error}",
        ]
        if raw_output:
            lines.extend(["", "Raw output:", raw_output.strip()])
        if fallback:
            lines.append(f"Fallback: {fallback}")
        self._append(lines)

    @property
    def entries(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def flush(self) -> None:
        with self._lock:
            if not self._entries:
                return
            to_write = "\n\n".join(self._entries)
            self._entries.clear()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(to_write + "\n\n")
