"""
BIOGRAPH INTELLIGENCE - Typed LLM Calls

Every model call in the explorer goes through StructuredLLM.agenerate(),
which returns a msgspec Struct or raises. Nothing downstream ever sees raw
model text.

Flow:
    system prompt + msgspec.json.schema(T)   (the output contract)
        -> litellm.acompletion(response_format=json_object)
        -> strip code fences
        -> msgspec.json.decode(type=T)
        -> T, or ValidationError (retried by tenacity, 3 attempts)

LiteLLM keeps the provider swappable: any "provider/model" id works.
ModelRouter picks the id per task. Entity summaries, fact gathering and
proposal review use the fast model; hypothesis synthesis uses the reasoning
model.
"""
import json
import logging
import os
import re
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

import litellm
import msgspec
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("biograph.llm")

T = TypeVar("T", bound=msgspec.Struct)

DEFAULT_FAST_MODEL = "gemini/gemini-2.5-flash"
DEFAULT_REASONING_MODEL = "gemini/gemini-2.5-pro"

_FENCED = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# =============================================================================
# ROUTING
# =============================================================================

class TaskType(Enum):
    """
    Kinds of model call.

    ENRICHMENT: one entity summarized within its domain
    FACTS: evidence gathered for a query ahead of synthesis
    HYPOTHESIS: cross-domain synthesis over the graph context
    VALIDATION: review of a node proposed from the hub
    """
    ENRICHMENT = "enrichment"
    FACTS = "facts"
    HYPOTHESIS = "hypothesis"
    VALIDATION = "validation"


_REASONING_TASKS = frozenset({TaskType.HYPOTHESIS})


class ModelRouter:
    """
    Maps a TaskType to a LiteLLM model id.

    Reads `fast_model` and `reasoning_model` from the [llm] table of
    biograph.toml (see infrastructure.config).
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.fast_model = config.get("fast_model", DEFAULT_FAST_MODEL)
        self.reasoning_model = config.get("reasoning_model", DEFAULT_REASONING_MODEL)

    def get_model_for_task(self, task_type: TaskType) -> str:
        if not isinstance(task_type, TaskType):
            raise ValueError(f"Unknown task type: {task_type}")
        return self.reasoning_model if task_type in _REASONING_TASKS else self.fast_model


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """The provider call itself failed."""


class ValidationError(LLMError):
    """The model answered, but not with the requested struct."""


class RateLimitError(LLMError):
    """The provider throttled the call."""


# =============================================================================
# STRUCTURED LLM
# =============================================================================

class StructuredLLM:
    """
    Async LiteLLM client whose every answer is decoded into a msgspec Struct.

    Usage:
        llm = StructuredLLM(model="gemini/gemini-2.5-flash")
        data = await llm.agenerate(
            system_prompt="You are a biomedical curator.",
            user_prompt="Summarize ACE2 in the context of SARS-CoV-2.",
            schema=EnrichmentData,
        )
    """

    def __init__(
        self,
        model: str = DEFAULT_FAST_MODEL,
        temperature: float = 0.0,
        max_tokens: int = 8192,
        timeout: float = 60.0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    def _build_system_prompt(self, base_prompt: str, schema: Type[msgspec.Struct]) -> str:
        contract = json.dumps(msgspec.json.schema(schema), indent=2)
        return (
            f"{base_prompt}\n\n"
            "# OUTPUT CONTRACT\n"
            "Reply with a single JSON object and nothing else: no markdown, "
            "no commentary. It must validate against this JSON Schema, with "
            "every required field present and every value of the declared type:\n"
            f"```json\n{contract}\n```\n"
        )

    def _clean_response(self, content: Optional[str]) -> str:
        """Unwrap a ```json fenced``` answer; plain JSON passes through."""
        content = (content or "").strip()
        fenced = _FENCED.match(content)
        return fenced.group(1) if fenced else content

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ValidationError),
        reraise=True,
    )
    async def agenerate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[T],
        model: Optional[str] = None,
    ) -> T:
        """
        Ask the model for one instance of `schema`.

        Args:
            system_prompt: Role and instructions; the output contract is appended
            user_prompt: The request itself
            schema: msgspec.Struct subclass to decode into
            model: Per-call model id (from ModelRouter); defaults to self.model

        Raises:
            ValidationError: The answer still did not decode after 3 attempts
            RateLimitError: The provider throttled the call (not retried)
            LLMError: Any other provider failure (not retried)
        """
        model_id = model or self.model
        messages = [
            {"role": "system", "content": self._build_system_prompt(system_prompt, schema)},
            {"role": "user", "content": user_prompt},
        ]

        try:
            response = await litellm.acompletion(
                model=model_id,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                response_format={"type": "json_object"},
                drop_params=True,
            )
            content = response.choices[0].message.content
        except litellm.RateLimitError as e:
            raise RateLimitError(f"{model_id} rate limited: {e}") from e
        except Exception as e:
            raise LLMError(f"{model_id} call failed: {e}") from e

        payload = self._clean_response(content)
        try:
            return msgspec.json.decode(payload.encode("utf-8"), type=schema)
        except msgspec.DecodeError as e:
            # msgspec.ValidationError subclasses DecodeError
            logger.warning(f"{model_id} returned an invalid {schema.__name__}: {e}")
            raise ValidationError(f"{schema.__name__} did not decode: {e}") from e


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_llm_instance: Optional[StructuredLLM] = None


def get_llm() -> StructuredLLM:
    """
    The shared StructuredLLM, built on first use from the environment.

    BIOGRAPH_LLM_MODEL: provider-prefixed model id (default gemini/gemini-2.5-flash)
    BIOGRAPH_LLM_TEMPERATURE: sampling temperature (default 0.0)
    """
    global _llm_instance
    if _llm_instance is None:
        _llm_instance = StructuredLLM(
            model=os.getenv("BIOGRAPH_LLM_MODEL", DEFAULT_FAST_MODEL),
            temperature=float(os.getenv("BIOGRAPH_LLM_TEMPERATURE", "0.0")),
        )
    return _llm_instance


def set_llm(llm: Optional[StructuredLLM]) -> None:
    global _llm_instance
    _llm_instance = llm


def reset_llm() -> None:
    global _llm_instance
    _llm_instance = None
