"""
BIOGRAPH ONTOLOGY - The Dictionary of the Explorer

If schemas.py is the Grammar (how records are shaped),
ontology.py is the Dictionary (the words a graph may use).

This module defines:
- NodeType: entity vocabulary shared by every scientific domain
- GraphDomain: the seed datasets the explorer can switch between
- LinkLabel: labels the explorer itself writes when it grows the graph
- LayoutMode: renderer layout hints

Key Principle: the vocabulary is closed for node types but open for link
labels. Domain authors describe relations freely ("BINDS", "INHIBITS");
only the labels the explorer synthesizes are fixed here.
"""
from typing import Dict, FrozenSet, Literal, Optional
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeType(str, Enum):
    """Types of entities in an exploration graph."""
    # Viral biology
    VIRUS_PROTEIN = "Viral Protein"
    VIRAL_CAPSID = "Capsid Protein"
    VIRAL_ENVELOPE = "Envelope Protein"
    VIRAL_MATRIX = "Matrix Protein"
    VIRAL_NSP = "Non-Structural Protein"
    VIRAL_SECRETED = "Secreted/Accessory"
    # Functional roles
    FUNC_ENTRY = "Entry Mechanism"
    FUNC_REPLICATION = "Replication Machinery"
    FUNC_PROTEASE = "Protease Activity"
    FUNC_IMMUNE_MOD = "Immune Modulation"
    # Host and therapeutics
    HUMAN_PROTEIN = "Human Protein"
    DRUG = "Drug/Compound"
    PHENOTYPE = "Phenotype/Symptom"
    PATHWAY = "Biological Pathway"
    VARIANT = "Variant"
    VACCINE = "Vaccine/Therapeutic"
    SURVEILLANCE = "Surveillance"
    DATASET = "Dataset"
    LITERATURE = "Literature"
    GO_TERM = "Process"
    # Clinical / oncology
    CLINICAL_TRIAL = "Clinical Trial"
    PATIENT_COHORT = "Patient Cohort"
    TUMOR_MARKER = "Tumor Marker"
    # AMR and synthetic biology
    GENE = "Gene/Genetic Part"
    BACTERIA = "Microbe/Strain"
    TOOL = "Tool/Method"
    # Climate and socioeconomic
    POLLUTANT = "Pollutant/Factor"
    LOCATION = "Location/Region"
    EVENT = "Climate Event"
    SOCIO_ECONOMIC = "Socioeconomic Factor"
    COMORBIDITY = "Comorbidity"
    COINFECTION = "Coinfection"
    ENVIRONMENTAL = "Environmental Factor"
    # Policy
    POLICY = "Policy/Framework"
    ETHICS = "Ethical Concern"
    ACTOR = "Actor/Agency"
    # Synthesized by the explorer during hypothesis turns
    QUERY = "User Evidence"
    HYPOTHESIS = "AI Hypothesis"


class GraphDomain(str, Enum):
    """Scientific domains with a bundled seed dataset."""
    SARS_COV_2 = "SARS-CoV-2"
    AMR = "Antimicrobial Resistance"
    ONCOLOGY = "Oncology (Precision Med)"
    NEURO = "Neurodegenerative Disease"
    CLIMATE = "Climate-Health"
    SYNBIO = "Synthetic Biology"
    POLICY = "Global Policy & Ethics"
    QUANTUM_HEALTH = "Quantum AI in Health"


class LinkLabel(str, Enum):
    """Labels of links the explorer synthesizes itself."""
    GENERATES = "GENERATES"                       # Query -> Hypothesis
    RELATES_TO = "RELATES_TO"                     # Hypothesis -> relevant node
    PROPOSED_CONNECTION = "PROPOSED_CONNECTION"   # Proposal -> anchor (placeholder)


LayoutMode = Literal["3d-force", "dag-td", "dag-lr", "radial"]

# Renderer DAG hints per layout. None lets the force layout run free.
DAG_MODES: Dict[str, Optional[str]] = {
    "3d-force": None,
    "dag-td": "td",
    "dag-lr": "lr",
    "radial": "radialout",
}


# =============================================================================
# TYPE GROUPS
# =============================================================================

# Nodes the explorer creates itself. They never get enriched: their text
# already came from the user or from the reasoning service.
SYNTHETIC_NODE_TYPES: FrozenSet[NodeType] = frozenset({
    NodeType.QUERY,
    NodeType.HYPOTHESIS,
})

# Node weights for synthesized nodes (renderer size hint)
QUERY_NODE_WEIGHT = 20.0
HYPOTHESIS_NODE_WEIGHT = 30.0
PROPOSAL_NODE_WEIGHT = 20.0
DEFAULT_NODE_WEIGHT = 5.0


def is_synthetic(node_type: str) -> bool:
    """True if nodes of this type are generated by the explorer."""
    return node_type in {t.value for t in SYNTHETIC_NODE_TYPES}


def parse_node_type(value: str) -> NodeType:
    """
    Resolve a node type from its value or member name.

    Accepts "Drug/Compound" as well as "DRUG" so hand-written datasets and
    CLI arguments can use either spelling.

    Raises:
        ValueError: If the string names no NodeType
    """
    try:
        return NodeType(value)
    except ValueError:
        pass
    try:
        return NodeType[value.upper()]
    except KeyError:
        raise ValueError(f"Unknown node type: {value!r}") from None


def parse_domain(value: str) -> GraphDomain:
    """Resolve a domain from its value ("Climate-Health") or name ("CLIMATE")."""
    try:
        return GraphDomain(value)
    except ValueError:
        pass
    try:
        return GraphDomain[value.upper().replace("-", "_")]
    except KeyError:
        raise ValueError(f"Unknown domain: {value!r}") from None
