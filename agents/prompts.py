"""
BIOGRAPH INTELLIGENCE - Prompt Builders

Turns graph state into prompts for the reasoning service.

Design:
- System prompts live in config/prompts.yaml, one entry per task
- User prompts are built here from nodes, the domain and the user's text
- Node context is rendered one node per line: "id (label, type)"
"""
import yaml
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.schemas import NodeData


# =============================================================================
# CONFIG LOADER
# =============================================================================

PROMPTS_PATH = Path(__file__).parent.parent / "config" / "prompts.yaml"

_prompt_config: Optional[Dict[str, Any]] = None


def get_prompt_config() -> Dict[str, Any]:
    """Load prompt configuration from prompts.yaml."""
    global _prompt_config
    if _prompt_config is None:
        with open(PROMPTS_PATH, "r", encoding="utf-8") as f:
            _prompt_config = yaml.safe_load(f)
    return _prompt_config


def get_system_prompt(task: str) -> str:
    """
    System prompt for a reasoning task.

    Raises:
        ValueError: If the task has no prompt entry
    """
    config = get_prompt_config()
    if task not in config:
        raise ValueError(f"Unknown prompt task: {task}")
    return config[task].get("system_prompt", "")


# =============================================================================
# CONTEXT FORMATTERS
# =============================================================================

def format_node_context(nodes: Iterable[NodeData]) -> str:
    """One line per node: id (label, type)."""
    return "\n".join(f"{n.id} ({n.label}, {n.type})" for n in nodes)


def describe_path(labels: List[str]) -> str:
    """Natural-language query for a discovered path."""
    if len(labels) < 2:
        return ""
    chain = " -> ".join(labels)
    return (
        f"Explain the mechanistic connection between {labels[0]} and "
        f"{labels[-1]} along the path {chain}."
    )


# =============================================================================
# PROMPT BUILDERS
# =============================================================================

def build_enrichment_prompt(node: NodeData, domain: str) -> str:
    lines = [
        f'Provide a comprehensive scientific enrichment for the entity "{node.label}" '
        f"within the context of {domain}.",
        f"Entity type: {node.type}",
    ]
    if node.description:
        lines.append(f"Known description: {node.description}")
    if node.metadata:
        meta = ", ".join(f"{k}={v}" for k, v in sorted(node.metadata.items()))
        lines.append(f"Metadata: {meta}")
    return "\n".join(lines)


def build_facts_prompt(query: str) -> str:
    return (
        f'Search for the latest scientific evidence regarding: "{query}". '
        "Provide a concise summary of established facts and emerging uncertainties."
    )


def build_hypothesis_prompt(
    query: str,
    seed_nodes: Iterable[NodeData],
    domain: str,
    verified_context: str = "",
) -> str:
    return f"""Verified Context: {verified_context or "(none gathered)"}

User Query: "{query}"
Active Primary Domain: {domain}

Available Knowledge Graph Context:
{format_node_context(seed_nodes)}
"""


def build_validation_prompt(label: str, node_type: str, description: str, domain: str) -> str:
    return (
        f"Validate the following proposal for the {domain} graph.\n"
        f"Label: {label}\n"
        f"Type: {node_type}\n"
        f"Description: {description}"
    )
