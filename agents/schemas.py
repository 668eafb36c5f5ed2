"""
BIOGRAPH INTELLIGENCE - Reasoning Output Schemas

msgspec Structs the reasoning service asks the LLM to produce. Records that
outlive a single call (EnrichmentData, HypothesisResult,
ProposalValidation) are defined in core.schemas and reused here as output
contracts; this module only adds the intermediate ones.
"""
import msgspec
from typing import List

from core.schemas import SourceRef


class FactSummary(msgspec.Struct, kw_only=True):
    """Stage-one evidence gathered before hypothesis synthesis."""
    summary: str
    sources: List[SourceRef] = []
