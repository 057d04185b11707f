# baloot_arena/llm_clients.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .cost_tracker import LLMCostTracker, get_cost_tracker

logger = logging.getLogger(__name__)

# Load API keys from a .env file if present.
load_dotenv()

PROVIDERS = ("openai", "anthropic", "gemini", "grok")
XAI_BASE_URL = "https://api.x.ai/v1"


@dataclass(frozen=True)
class ModelSpec:
    """Parsed representation of a model identifier like 'openai:gpt-4o'."""

    provider: str
    model: str

    @classmethod
    def parse(cls, raw: str) -> "ModelSpec":
        if ":" not in raw:
            raise ValueError(
                f"Model string '{raw}' must be of the form '<provider>:<model_name>'"
            )
        provider, model = raw.split(":", 1)
        provider = provider.strip().lower()
        model = model.strip()
        if provider not in PROVIDERS:
            raise ValueError(
                f"Unknown provider '{provider}'. Expected one of {', '.join(PROVIDERS)}."
            )
        if not model:
            raise ValueError(f"Model name missing in '{raw}'")
        return cls(provider=provider, model=model)

    def __str__(self) -> str:
        return f"{self.provider}:{self.model}"

    @property
    def label(self) -> str:
        return str(self)

    @property
    def litellm_name(self) -> str:
        """Model name as LiteLLM's cost map knows it."""
        if self.provider == "grok":
            return f"xai/{self.model}"
        if self.provider == "gemini":
            return f"gemini/{self.model}"
        return self.model


class LLMRouter:
    """
    Thin wrapper around several chat model providers.

    SDKs are imported on first use so only the providers actually requested
    need to be installed. `complete()` returns plain text; turning it into a
    game decision is the caller's job. Every completion is priced and recorded
    in the cost tracker.
    """

    def __init__(
        self,
        *,
        temperature: float = 0.0,
        max_output_tokens: int = 256,
        cost_tracker: Optional[LLMCostTracker] = None,
    ) -> None:
        self.temperature = float(temperature)
        self.max_output_tokens = int(max_output_tokens)
        self._cost_tracker = cost_tracker
        self._clients: Dict[str, Any] = {}

    @property
    def cost_tracker(self) -> LLMCostTracker:
        if self._cost_tracker is None:
            self._cost_tracker = get_cost_tracker()
        return self._cost_tracker

    def complete(
        self,
        model_spec: ModelSpec,
        *,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Generate a text completion from the given model."""
        logger.debug(
            "LLMRouter.complete provider=%s model=%s max_output_tokens=%s temperature=%s",
            model_spec.provider,
            model_spec.model,
            self.max_output_tokens,
            self.temperature,
        )
        handler = getattr(self, f"_complete_{model_spec.provider}", None)
        if handler is None:
            raise ValueError(f"Unsupported provider: {model_spec.provider}")

        text, usage = handler(model_spec.model, prompt, system_prompt)

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        self.cost_tracker.record_completion(
            model=model_spec.litellm_name,
            messages=messages,
            output_text=text,
            usage=usage,
        )
        return text

    # --- Provider-specific helpers -------------------------------------

    def _client(self, provider: str) -> Any:
        if provider in self._clients:
            return self._clients[provider]
        try:
            if provider == "openai":
                from openai import OpenAI  # type: ignore

                client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))
            elif provider == "grok":
                from openai import OpenAI  # type: ignore

                api_key = os.getenv("XAI_API_KEY")
                if not api_key:
                    raise RuntimeError(
                        "XAI_API_KEY environment variable is required for provider 'grok'."
                    )
                client = OpenAI(api_key=api_key, base_url=XAI_BASE_URL)
            elif provider == "anthropic":
                import anthropic  # type: ignore

                client = anthropic.Anthropic(api_key=os.getenv("ANTHROPIC_API_KEY"))
            else:
                from google import genai  # type: ignore

                key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
                client = genai.Client(api_key=key) if key else genai.Client()
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                f"The SDK for provider '{provider}' is not installed. "
                "Install the 'llm' extra: `pip install baloot-arena[llm]`."
            ) from exc
        self._clients[provider] = client
        return client

    def _complete_openai(
        self, model: str, prompt: str, system_prompt: Optional[str]
    ) -> Tuple[str, Dict[str, Any]]:
        client = self._client("openai")
        payload: Any = prompt
        if system_prompt:
            payload = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ]
        response = client.responses.create(
            model=model,
            input=payload,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        usage = getattr(response, "usage", None)
        return str(response.output_text), {
            "input_tokens": getattr(usage, "input_tokens", None),
            "output_tokens": getattr(usage, "output_tokens", None),
        }

    def _complete_grok(
        self, model: str, prompt: str, system_prompt: Optional[str]
    ) -> Tuple[str, Dict[str, Any]]:
        client = self._client("grok")
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        completion = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        usage = getattr(completion, "usage", None)
        content = completion.choices[0].message.content or ""
        return str(content), {
            "prompt_tokens": getattr(usage, "prompt_tokens", None),
            "completion_tokens": getattr(usage, "completion_tokens", None),
        }

    def _complete_anthropic(
        self, model: str, prompt: str, system_prompt: Optional[str]
    ) -> Tuple[str, Dict[str, Any]]:
        client = self._client("anthropic")
        kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": self.max_output_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        message = client.messages.create(**kwargs)
        text = "".join(
            getattr(block, "text", "") or "" for block in message.content
        )
        usage = getattr(message, "usage", None)
        return text, {
            "input_tokens": getattr(usage, "input_tokens", None),
            "output_tokens": getattr(usage, "output_tokens", None),
        }

    def _complete_gemini(
        self, model: str, prompt: str, system_prompt: Optional[str]
    ) -> Tuple[str, Dict[str, Any]]:
        client = self._client("gemini")
        from google.genai import types  # type: ignore

        config = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        response = client.models.generate_content(
            model=model, contents=prompt, config=config
        )
        meta = getattr(response, "usage_metadata", None)
        text = getattr(response, "text", None)
        return (text if isinstance(text, str) else str(response)), {
            "prompt_tokens": getattr(meta, "prompt_token_count", None),
            "completion_tokens": getattr(meta, "candidates_token_count", None),
        }
