"""
BIOGRAPH INTELLIGENCE - Reasoning Service

The asynchronous boundary between the explorer and the LLM:

- enrich_node:       (node, domain)                -> EnrichmentData
- analyze_evidence:  (query, seed nodes, domain)   -> HypothesisResult
- validate_proposal: (label, type, text, domain)   -> ProposalValidation

Hypothesis analysis runs in two stages. A fast model gathers current
evidence and sources for the query, then a reasoning model synthesizes the
hypothesis over that evidence and the graph context. Sources from the
first stage are attached to the result.

Every failure (transport, rate limit, malformed output after retries) is
raised as ExternalServiceError. Callers decide how to recover.
"""
import logging
from typing import Iterable, Optional, Protocol, Type, TypeVar

import msgspec

from agents.llm import LLMError, ModelRouter, StructuredLLM, TaskType, get_llm
from agents.prompts import (
    build_enrichment_prompt,
    build_facts_prompt,
    build_hypothesis_prompt,
    build_validation_prompt,
    get_system_prompt,
)
from agents.schemas import FactSummary
from core.errors import ExternalServiceError
from core.schemas import EnrichmentData, HypothesisResult, NodeData, ProposalValidation


logger = logging.getLogger("biograph.reasoning")

T = TypeVar("T", bound=msgspec.Struct)


class AIService(Protocol):
    """What the explorer session needs from a reasoning backend."""

    async def enrich_node(self, node: NodeData, domain: str) -> EnrichmentData:
        ...

    async def analyze_evidence(
        self,
        query: str,
        seed_nodes: Iterable[NodeData],
        domain: str,
    ) -> HypothesisResult:
        ...

    async def validate_proposal(
        self,
        label: str,
        node_type: str,
        description: str,
        domain: str,
    ) -> ProposalValidation:
        ...


class ReasoningService:
    """
    LLM-backed AIService.

    Usage:
        service = ReasoningService()
        data = await service.enrich_node(store.get_node("ACE2"), "SARS-CoV-2")
    """

    def __init__(
        self,
        llm: Optional[StructuredLLM] = None,
        router: Optional[ModelRouter] = None,
    ):
        self.llm = llm or get_llm()
        self.router = router or ModelRouter()

    async def _generate(
        self,
        operation: str,
        key: str,
        task: TaskType,
        user_prompt: str,
        schema: Type[T],
    ) -> T:
        model = self.router.get_model_for_task(task)
        try:
            return await self.llm.agenerate(
                system_prompt=get_system_prompt(task.value),
                user_prompt=user_prompt,
                schema=schema,
                model=model,
            )
        except LLMError as e:
            logger.warning(f"{operation} failed for {key!r} on {model}: {e}")
            raise ExternalServiceError(str(e), operation=operation, key=key) from e

    async def enrich_node(self, node: NodeData, domain: str) -> EnrichmentData:
        return await self._generate(
            "enrich",
            node.id,
            TaskType.ENRICHMENT,
            build_enrichment_prompt(node, domain),
            EnrichmentData,
        )

    async def analyze_evidence(
        self,
        query: str,
        seed_nodes: Iterable[NodeData],
        domain: str,
    ) -> HypothesisResult:
        facts = await self._generate(
            "hypothesis",
            query,
            TaskType.FACTS,
            build_facts_prompt(query),
            FactSummary,
        )
        result = await self._generate(
            "hypothesis",
            query,
            TaskType.HYPOTHESIS,
            build_hypothesis_prompt(query, seed_nodes, domain, facts.summary),
            HypothesisResult,
        )
        return msgspec.structs.replace(result, sources=list(facts.sources))

    async def validate_proposal(
        self,
        label: str,
        node_type: str,
        description: str,
        domain: str,
    ) -> ProposalValidation:
        return await self._generate(
            "validate",
            label,
            TaskType.VALIDATION,
            build_validation_prompt(label, node_type, description, domain),
            ProposalValidation,
        )
