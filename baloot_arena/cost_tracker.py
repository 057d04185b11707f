# baloot_arena/cost_tracker.py
from __future__ import annotations

import json
import logging
import threading
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from litellm import completion_cost, token_counter

from .paths import ensure_results_dir

logger = logging.getLogger(__name__)

COST_FILENAME = "llm_costs.json"


def _empty_totals() -> Dict[str, Any]:
    return {
        "total_cost_usd": 0.0,
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "calls": 0,
        "per_model": {},
        "updated_at": None,
    }


def _grab_int(raw: Mapping[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


class LLMCostTracker:
    """
    Running (persisted) totals of LLM spend, priced with LiteLLM's cost map.

    Provider usage is used when reported; missing token counts are estimated
    with `litellm.token_counter`. Totals survive across runs in
    ``llm_costs.json`` under the results directory, and the per-run delta is
    kept separately for the end-of-run summary.
    """

    def __init__(self, persist_path: Optional[Path] = None) -> None:
        self.persist_path = persist_path or ensure_results_dir() / COST_FILENAME
        self._lock = threading.Lock()
        self._totals = self._load()
        self._run = _empty_totals()

    def _load(self) -> Dict[str, Any]:
        if not self.persist_path.exists():
            return _empty_totals()
        try:
            with open(self.persist_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Failed to load LLM cost totals from %s: %s; starting fresh",
                self.persist_path,
                exc,
            )
            return _empty_totals()
        merged = _empty_totals()
        if isinstance(data, dict):
            merged.update({k: v for k, v in data.items() if k in merged})
        return merged

    def start_run(self) -> None:
        with self._lock:
            self._run = _empty_totals()

    def record_completion(
        self,
        *,
        model: str,
        messages: Optional[Sequence[Mapping[str, Any]]] = None,
        output_text: Optional[str] = None,
        usage: Optional[Mapping[str, Any]] = None,
    ) -> Optional[float]:
        """Price one call and add it to the totals. Returns the cost if known."""
        usage = usage or {}
        prompt_tokens = _grab_int(usage, "prompt_tokens", "input_tokens")
        completion_tokens = _grab_int(usage, "completion_tokens", "output_tokens")

        if prompt_tokens is None and messages:
            try:
                prompt_tokens = int(token_counter(model=model, messages=list(messages)))
            except Exception:  # noqa: BLE001
                logger.debug("Prompt token estimate failed for %s", model, exc_info=True)
        if completion_tokens is None and output_text:
            try:
                completion_tokens = int(token_counter(model=model, text=output_text))
            except Exception:  # noqa: BLE001
                logger.debug(
                    "Completion token estimate failed for %s", model, exc_info=True
                )

        cost: Optional[float] = None
        if prompt_tokens is not None or completion_tokens is not None:
            response = {
                "model": model,
                "usage": {
                    "prompt_tokens": prompt_tokens or 0,
                    "completion_tokens": completion_tokens or 0,
                    "total_tokens": (prompt_tokens or 0) + (completion_tokens or 0),
                },
            }
            try:
                cost = float(completion_cost(completion_response=response))
            except Exception:  # noqa: BLE001
                logger.debug("LiteLLM has no price for %s", model, exc_info=True)

        with self._lock:
            for totals in (self._totals, self._run):
                self._apply(totals, model, prompt_tokens, completion_tokens, cost)
            self._totals["updated_at"] = datetime.now(timezone.utc).isoformat()
        return cost

    @staticmethod
    def _apply(
        totals: Dict[str, Any],
        model: str,
        prompt_tokens: Optional[int],
        completion_tokens: Optional[int],
        cost: Optional[float],
    ) -> None:
        per_model = totals.setdefault("per_model", {})
        stats = per_model.setdefault(
            model,
            {"cost_usd": 0.0, "prompt_tokens": 0, "completion_tokens": 0, "calls": 0},
        )
        for bucket in (totals, stats):
            bucket["calls"] = bucket.get("calls", 0) + 1
            bucket["prompt_tokens"] = bucket.get("prompt_tokens", 0) + (prompt_tokens or 0)
            bucket["completion_tokens"] = bucket.get("completion_tokens", 0) + (
                completion_tokens or 0
            )
        if cost is not None:
            totals["total_cost_usd"] = float(totals.get("total_cost_usd", 0.0)) + cost
            stats["cost_usd"] = float(stats.get("cost_usd", 0.0)) + cost

    def run_totals(self) -> Dict[str, Any]:
        with self._lock:
            return deepcopy(self._run)

    def persist(self) -> None:
        with self._lock:
            snapshot = deepcopy(self._totals)
        self.persist_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.persist_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, sort_keys=True)

    def log_run_summary(self) -> None:
        run = self.run_totals()
        if not run["per_model"]:
            logger.info("No LLM spend recorded for this run.")
            return
        logger.info(
            "LLM spend this run: $%.6f over %d calls",
            run["total_cost_usd"],
            run["calls"],
        )
        for model, stats in sorted(run["per_model"].items()):
            logger.info(
                "  %s -> cost $%.6f, prompt_tokens=%d, completion_tokens=%d, calls=%d",
                model,
                stats["cost_usd"],
                stats["prompt_tokens"],
                stats["completion_tokens"],
                stats["calls"],
            )


_tracker: Optional[LLMCostTracker] = None
_tracker_lock = threading.Lock()


def get_cost_tracker() -> LLMCostTracker:
    """Process-wide tracker, created on first use."""
    global _tracker
    with _tracker_lock:
        if _tracker is None:
            _tracker = LLMCostTracker()
        return _tracker
