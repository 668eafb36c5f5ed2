"""
BIOGRAPH DOMAIN FIXTURES - The Seed Datasets

One curated graph per GraphDomain. Each table row is
(id, label, type, description, weight[, metadata]) for nodes and
(source, target, label) for links.

get_domain_dataset() builds fresh records on every call, so a session can
grow its graph without touching the tables.
"""
from typing import Any, Dict, List, Sequence, Tuple, Union

from core.ontology import GraphDomain, NodeType, parse_domain
from core.schemas import GraphDataset, LinkData, NodeData


NodeRow = Tuple[Any, ...]
LinkRow = Tuple[str, str, str]

T = NodeType


# =============================================================================
# SARS-CoV-2
# =============================================================================

SARS_NODES: List[NodeRow] = [
    # Structural proteins
    ("S", "Spike (S)", T.VIRUS_PROTEIN, "Trimeric surface glycoprotein mediating entry.", 30, {"pdbId": "6VXX"}),
    ("N", "Nucleocapsid (N)", T.VIRAL_CAPSID, "Encapsulates genome, highly immunogenic, critical for packaging.", 22, {"pdbId": "6VYO"}),
    ("M", "Membrane (M)", T.VIRAL_MATRIX, "Most abundant structural protein, defines viral shape.", 20),
    ("E", "Envelope (E)", T.VIRAL_ENVELOPE, "Small protein involved in assembly and release; ion channel activity.", 18, {"pdbId": "5X29"}),
    # Non-structural proteins
    ("NSP1", "NSP1", T.VIRAL_NSP, "Host shutdown factor; inhibits host translation.", 20),
    ("NSP3", "NSP3 (PLpro)", T.VIRAL_NSP, "Large multi-domain protein; Papain-like protease activity.", 22, {"pdbId": "6W9C"}),
    ("NSP5", "NSP5 (Mpro)", T.VIRAL_NSP, "Main protease; cleaves viral polyprotein.", 25, {"pdbId": "6LU7"}),
    ("NSP12", "NSP12 (RdRp)", T.VIRAL_NSP, "RNA-dependent RNA polymerase; core of replication machinery.", 25, {"pdbId": "7BV2"}),
    ("NSP13", "NSP13 (Helicase)", T.VIRAL_NSP, "Unwinds RNA during replication.", 18),
    # Secreted / accessory
    ("ORF8", "ORF8", T.VIRAL_SECRETED, "Secreted protein; downregulates MHC-I, linked to immune evasion.", 20, {"pdbId": "7JTL"}),
    ("ORF3a", "ORF3a", T.VIRAL_SECRETED, "Viroporin; induces apoptosis and inflammation.", 18),
    # Host targets
    ("ACE2", "ACE2", T.HUMAN_PROTEIN, "Angiotensin-converting enzyme 2 receptor.", 18, {"pdbId": "6M0J"}),
    ("TMPRSS2", "TMPRSS2", T.HUMAN_PROTEIN, "Protease priming Spike for entry.", 18),
    # Drugs
    ("Paxlovid", "Paxlovid", T.DRUG, "Nirmatrelvir (Mpro inhibitor) + Ritonavir.", 20),
    ("Remdesivir", "Remdesivir", T.DRUG, "Nucleoside analog inhibiting RdRp.", 18),
    ("Molnupiravir", "Molnupiravir", T.DRUG, "Induces lethal mutagenesis via RdRp.", 18),
    # Phenotypes
    ("ImmuneEscape", "Immune Escape", T.PHENOTYPE, "Evasion of neutralizing antibodies.", 20),
    ("SevereDisease", "Severe Disease", T.PHENOTYPE, "Hospitalization, hypoxia, organ failure.", 20),
    ("LongCovid", "Long COVID", T.PHENOTYPE, "Post-acute sequelae of SARS-CoV-2 infection.", 22),
    # Comorbidities and coinfections
    ("Diabetes", "T2 Diabetes", T.COMORBIDITY, "Metabolic disorder increasing severity risk.", 20),
    ("Influenza", "Influenza A", T.COINFECTION, "Common respiratory coinfection.", 20),
    # Socioeconomic and environmental
    ("HealthcareAccess", "Healthcare Access", T.SOCIO_ECONOMIC, "Availability of ICU beds and therapeutics.", 18),
    ("AirQuality", "PM2.5 Levels", T.ENVIRONMENTAL, "Air pollution correlating with transmission/severity.", 18),
    # Functional categories
    ("Func:Entry", "Viral Entry", T.FUNC_ENTRY, "Mechanisms of cell invasion.", 15),
    ("Func:Replication", "Replication Complex", T.FUNC_REPLICATION, "RNA synthesis machinery.", 15),
    ("Func:ImmuneMod", "Immune Modulation", T.FUNC_IMMUNE_MOD, "Interference with host interferon response.", 15),
    # Literature
    ("Paper:Hoffmann", "Hoffmann et al.", T.LITERATURE, "Identified ACE2 entry.", 10, {
        "authors": "Hoffmann et al.",
        "year": "2020",
        "journal": "Cell",
        "doi": "10.1016/j.cell.2020.02.052",
    }),
]

SARS_LINKS: List[LinkRow] = [
    ("S", "Func:Entry", "MEDIATES"),
    ("S", "ACE2", "BINDS"),
    ("S", "TMPRSS2", "CLEAVED_BY"),
    ("N", "Func:Replication", "STABILIZES_RNA"),
    ("E", "Func:Entry", "ASSISTS_ASSEMBLY"),
    ("NSP1", "Func:ImmuneMod", "INHIBITS_INTERFERON"),
    ("NSP3", "Func:ImmuneMod", "DEUBIQUITINATES"),
    ("NSP5", "Func:Replication", "PROCESSES_POLYPROTEIN"),
    ("NSP12", "Func:Replication", "DRIVES_SYNTHESIS"),
    ("NSP13", "Func:Replication", "UNWINDS_RNA"),
    ("ORF8", "Func:ImmuneMod", "DOWNREGULATES_MHC_I"),
    ("ORF8", "ImmuneEscape", "CONTRIBUTES_TO"),
    ("ORF8", "SevereDisease", "CORRELATES_WITH"),
    ("ORF3a", "SevereDisease", "INDUCES_INFLAMMATION"),
    ("Paxlovid", "NSP5", "INHIBITS"),
    ("Remdesivir", "NSP12", "INHIBITS"),
    ("Molnupiravir", "NSP12", "MUTATES_VIA"),
    ("Paper:Hoffmann", "ACE2", "IDENTIFIES"),
    ("Diabetes", "SevereDisease", "EXACERBATES"),
    ("Diabetes", "ACE2", "UPREGULATES"),
    ("Influenza", "SevereDisease", "INCREASES_MORTALITY"),
    ("AirQuality", "SevereDisease", "CORRELATES_WITH"),
    ("HealthcareAccess", "SevereDisease", "MITIGATES"),
    ("LongCovid", "SevereDisease", "SEQUELAE_OF"),
]


# =============================================================================
# ONCOLOGY
# =============================================================================

ONCOLOGY_NODES: List[NodeRow] = [
    ("EGFR", "EGFR", T.HUMAN_PROTEIN, "Epidermal Growth Factor Receptor.", 25, {"pdbId": "1IVO"}),
    ("KRAS", "KRAS", T.HUMAN_PROTEIN, "GTPase, common oncogene.", 25, {"pdbId": "4OBE"}),
    ("G12C", "KRAS G12C", T.VARIANT, "Specific mutation targeted by Sotorasib.", 20),
    ("Sotorasib", "Sotorasib", T.DRUG, "Inhibitor of KRAS G12C.", 22),
    ("Osimertinib", "Osimertinib", T.DRUG, "3rd gen EGFR TKI.", 22),
    ("LungCancer", "NSCLC", T.PHENOTYPE, "Non-Small Cell Lung Cancer.", 30),
    ("Trial:CodeBreaK", "CodeBreaK 100", T.CLINICAL_TRIAL, "Phase 2 trial of Sotorasib.", 18, {"year": "2021", "journal": "NEJM"}),
    ("Cohort:Smokers", "Smoker Cohort", T.PATIENT_COHORT, "Patients with history of smoking.", 15),
]

ONCOLOGY_LINKS: List[LinkRow] = [
    ("KRAS", "G12C", "MUTATES_TO"),
    ("G12C", "LungCancer", "DRIVES"),
    ("Sotorasib", "G12C", "INHIBITS"),
    ("Trial:CodeBreaK", "Sotorasib", "INVESTIGATES"),
    ("Trial:CodeBreaK", "LungCancer", "TREATS"),
    ("Cohort:Smokers", "G12C", "HIGH_PREVALENCE"),
    ("EGFR", "LungCancer", "DRIVES"),
    ("Osimertinib", "EGFR", "INHIBITS"),
]


# =============================================================================
# ANTIMICROBIAL RESISTANCE
# =============================================================================

AMR_NODES: List[NodeRow] = [
    # Genes
    ("NDM-1", "NDM-1", T.GENE, "New Delhi metallo-beta-lactamase 1, conferring broad carbapenem resistance.", 25),
    ("MCR-1", "MCR-1", T.GENE, "Plasmid-mediated colistin resistance mechanism.", 25),
    ("mecA", "mecA Gene", T.GENE, "Encodes PBP2a, conferring resistance to methicillin and other beta-lactams.", 22),
    ("KPC", "KPC enzyme", T.GENE, "Klebsiella pneumoniae carbapenemase; hydrolyzes all beta-lactams.", 22),
    ("blaTEM", "blaTEM Gene", T.GENE,
     "Encodes TEM-type beta-lactamases, primarily conferring resistance to penicillins "
     "and early-generation cephalosporins.", 20),
    ("CTX-M", "CTX-M Gene", T.GENE,
     "Encodes Extended-Spectrum Beta-Lactamases (ESBLs) that hydrolyze oxyimino-cephalosporins "
     "(e.g., cefotaxime) and are highly prevalent in Enterobacteriaceae.", 22),
    ("MexAB-OprM", "MexAB-OprM", T.GENE, "Multidrug efflux pump system in P. aeruginosa.", 20),
    ("rpoB", "rpoB Gene", T.GENE, "Beta subunit of RNA polymerase; mutations linked to rifampicin resistance.", 20),
    # Strains
    ("K.pneumoniae", "K. pneumoniae", T.BACTERIA, "Klebsiella pneumoniae; common hospital-acquired pathogen.", 22),
    ("E.coli", "E. coli", T.BACTERIA, "Escherichia coli; significant driver of community AMR.", 20),
    ("P.aeruginosa", "P. aeruginosa", T.BACTERIA, "Pseudomonas aeruginosa; opportunistic, highly resistant pathogen.", 22),
    ("A.baumannii", "A. baumannii", T.BACTERIA, "Acinetobacter baumannii; problematic in ICU settings.", 22),
    ("S.aureus", "S. aureus (MRSA)", T.BACTERIA, "Methicillin-resistant Staphylococcus aureus.", 24),
    ("M.tuberculosis", "M. tuberculosis", T.BACTERIA,
     "Mycobacterium tuberculosis; agent of TB, multi-drug resistant strains emerging.", 26),
    # Drugs
    ("Carbapenem", "Carbapenem", T.DRUG, "Potent broad-spectrum beta-lactam antibiotic.", 20),
    ("Colistin", "Colistin", T.DRUG, "Polymyxin antibiotic used as a last resort.", 20),
    ("Methicillin", "Methicillin", T.DRUG, "Beta-lactam antibiotic used to treat S. aureus.", 18),
    ("Meropenem", "Meropenem", T.DRUG, "Type of Carbapenem antibiotic.", 18),
    ("Rifampicin", "Rifampicin", T.DRUG, "Key first-line anti-tuberculosis drug.", 20),
    # Phenotypes
    ("BroadSpectrumResistance", "Broad Spectrum Resistance", T.PHENOTYPE,
     "Resistance to a wide range of antibiotics, commonly associated with metallo-beta-lactamase "
     "(MBL) activity. This phenotype poses a critical challenge to last-resort antibiotics like "
     "carbapenems.", 20),
    # Surveillance and locations
    ("Surveillance:Glass", "GLASS (WHO)", T.SURVEILLANCE,
     "Global Antimicrobial Resistance and Use Surveillance System.", 18),
    ("Loc:SouthAsia", "South Asia", T.LOCATION, "Region with high NDM-1 prevalence.", 15),
    ("Loc:SubSaharanAfrica", "Sub-Saharan Africa", T.LOCATION, "High burden region for TB and enteric AMR.", 15),
    ("Loc:NorthAmerica", "North America", T.LOCATION, "Active monitoring for emerging resistance mechanisms.", 15),
]

AMR_LINKS: List[LinkRow] = [
    # Gene carriage
    ("NDM-1", "K.pneumoniae", "FOUND_IN"),
    ("NDM-1", "E.coli", "FOUND_IN"),
    ("MCR-1", "E.coli", "FOUND_IN"),
    ("mecA", "S.aureus", "FOUND_IN"),
    ("KPC", "K.pneumoniae", "FOUND_IN"),
    ("blaTEM", "E.coli", "FOUND_IN"),
    ("CTX-M", "E.coli", "FOUND_IN"),
    ("CTX-M", "K.pneumoniae", "FOUND_IN"),
    ("MexAB-OprM", "P.aeruginosa", "MECHANISM_IN"),
    ("rpoB", "M.tuberculosis", "FOUND_IN"),
    # Resistance mechanisms
    ("NDM-1", "Carbapenem", "CONFERS_RESISTANCE"),
    ("NDM-1", "Meropenem", "CONFERS_RESISTANCE"),
    ("NDM-1", "BroadSpectrumResistance", "CONFERS"),
    ("MCR-1", "Colistin", "CONFERS_RESISTANCE"),
    ("mecA", "Methicillin", "CONFERS_RESISTANCE"),
    ("KPC", "Carbapenem", "DEGRADES"),
    ("CTX-M", "BroadSpectrumResistance", "CONTRIBUTES_TO"),
    ("MexAB-OprM", "Meropenem", "EFFLUXES"),
    ("rpoB", "Rifampicin", "CONFERS_RESISTANCE"),
    # Transmission and prevalence
    ("NDM-1", "Loc:SouthAsia", "ORIGINATED_IN"),
    ("K.pneumoniae", "Loc:SouthAsia", "PREVALENT_IN"),
    ("M.tuberculosis", "Loc:SubSaharanAfrica", "HIGH_BURDEN_IN"),
    ("A.baumannii", "Loc:NorthAmerica", "MONITORED_IN"),
    ("Surveillance:Glass", "Loc:SouthAsia", "COLLECTS_DATA"),
    ("Surveillance:Glass", "K.pneumoniae", "MONITORS"),
]


# =============================================================================
# SMALLER DOMAINS
# =============================================================================

NEURO_NODES: List[NodeRow] = [
    ("Alzheimers", "Alzheimer's", T.PHENOTYPE, "Progressive neurodegenerative disease.", 30),
    ("AmyloidBeta", "Amyloid Beta", T.HUMAN_PROTEIN, "Peptide linked to AD plaques.", 25),
    ("Tau", "Tau", T.HUMAN_PROTEIN, "Protein associated with tangles.", 25),
    ("ApoE4", "ApoE4", T.GENE, "Major genetic risk factor.", 22),
    ("Lecanemab", "Lecanemab", T.DRUG, "Anti-amyloid antibody.", 20),
]

NEURO_LINKS: List[LinkRow] = [
    ("AmyloidBeta", "Alzheimers", "AGGREGATES_IN"),
    ("Tau", "Alzheimers", "AGGREGATES_IN"),
    ("ApoE4", "Alzheimers", "INCREASES_RISK"),
    ("Lecanemab", "AmyloidBeta", "TARGETS"),
]

CLIMATE_NODES: List[NodeRow] = [
    ("HeatWave", "Heat Wave", T.EVENT, "Prolonged period of excessive heat.", 30),
    ("Malaria", "Malaria", T.PHENOTYPE, "Mosquito-borne disease.", 25),
    ("MosquitoRange", "Vector Range", T.LOCATION, "Geographic spread of vectors.", 22),
    ("AirPollution", "PM2.5", T.POLLUTANT, "Fine particulate matter.", 25),
    ("Asthma", "Asthma", T.PHENOTYPE, "Respiratory condition.", 25),
]

CLIMATE_LINKS: List[LinkRow] = [
    ("HeatWave", "MosquitoRange", "EXPANDS"),
    ("MosquitoRange", "Malaria", "INCREASES_TRANSMISSION"),
    ("AirPollution", "Asthma", "EXACERBATES"),
    ("HeatWave", "AirPollution", "TRAPS"),
]

SYNBIO_NODES: List[NodeRow] = [
    ("CRISPR-Cas9", "CRISPR-Cas9", T.TOOL, "Gene editing tool.", 30),
    ("Biosensor", "Biosensor", T.TOOL, "Detects chemicals/pathogens.", 25),
    ("Yeast", "S. cerevisiae", T.BACTERIA, "Model organism host.", 20),
    ("Artemisinin", "Artemisinin", T.DRUG, "Antimalarial produced via yeast.", 22),
    ("Ethics:Safety", "Biosafety", T.ETHICS, "Containment of GMOs.", 18),
]

SYNBIO_LINKS: List[LinkRow] = [
    ("CRISPR-Cas9", "Yeast", "EDITS"),
    ("Yeast", "Artemisinin", "PRODUCES"),
    ("Ethics:Safety", "CRISPR-Cas9", "REGULATES"),
]

POLICY_NODES: List[NodeRow] = [
    ("WHO", "WHO", T.ACTOR, "World Health Organization.", 30),
    ("PandemicTreaty", "Pandemic Treaty", T.POLICY, "International agreement on pandemic prevention.", 25),
    ("VaccineEquity", "Vaccine Equity", T.ETHICS, "Fair distribution of vaccines.", 25),
    ("IHR", "IHR (2005)", T.POLICY, "International Health Regulations.", 22),
]

POLICY_LINKS: List[LinkRow] = [
    ("WHO", "PandemicTreaty", "DRAFTS"),
    ("PandemicTreaty", "VaccineEquity", "PROMOTES"),
    ("WHO", "IHR", "ADMINISTERS"),
]

QUANTUM_HEALTH_NODES: List[NodeRow] = [
    ("VQE", "VQE", T.TOOL, "Variational Quantum Eigensolver.", 30),
    ("DrugDiscovery", "Drug Discovery", T.PATHWAY, "Finding new medications.", 25),
    ("ProteinFolding", "Protein Folding", T.PATHWAY, "Predicting 3D structure.", 25),
    ("Qubit", "Qubit", T.TOOL, "Quantum bit.", 20),
    ("QuantumCircuitDepth", "Circuit Depth", T.TOOL,
     "The number of sequential operations in a quantum circuit, a key metric for algorithmic "
     "complexity and noise tolerance.", 22),
]

QUANTUM_HEALTH_LINKS: List[LinkRow] = [
    ("VQE", "DrugDiscovery", "ACCELERATES"),
    ("VQE", "ProteinFolding", "SIMULATES"),
    ("Qubit", "VQE", "ENABLES"),
    ("VQE", "QuantumCircuitDepth", "HAS_COMPLEXITY"),
    ("QuantumCircuitDepth", "DrugDiscovery", "CONSTRAINS"),
]


DOMAIN_TABLES: Dict[GraphDomain, Tuple[List[NodeRow], List[LinkRow]]] = {
    GraphDomain.SARS_COV_2: (SARS_NODES, SARS_LINKS),
    GraphDomain.AMR: (AMR_NODES, AMR_LINKS),
    GraphDomain.NEURO: (NEURO_NODES, NEURO_LINKS),
    GraphDomain.CLIMATE: (CLIMATE_NODES, CLIMATE_LINKS),
    GraphDomain.SYNBIO: (SYNBIO_NODES, SYNBIO_LINKS),
    GraphDomain.POLICY: (POLICY_NODES, POLICY_LINKS),
    GraphDomain.QUANTUM_HEALTH: (QUANTUM_HEALTH_NODES, QUANTUM_HEALTH_LINKS),
    GraphDomain.ONCOLOGY: (ONCOLOGY_NODES, ONCOLOGY_LINKS),
}


# =============================================================================
# BUILDERS
# =============================================================================

def _build_node(row: NodeRow) -> NodeData:
    node_id, label, node_type, description, weight = row[:5]
    metadata = dict(row[5]) if len(row) > 5 else {}
    return NodeData.create(
        id=node_id,
        label=label,
        type=node_type,
        description=description,
        weight=float(weight),
        metadata=metadata,
    )


def build_dataset(nodes: Sequence[NodeRow], links: Sequence[LinkRow]) -> GraphDataset:
    return GraphDataset(
        nodes=[_build_node(row) for row in nodes],
        links=[LinkData.create(s, t, label) for s, t, label in links],
    )


def get_domain_dataset(domain: Union[GraphDomain, str]) -> GraphDataset:
    """
    Fresh seed dataset for a domain.

    Raises:
        ValueError: If the domain is unknown
    """
    nodes, links = DOMAIN_TABLES[parse_domain(domain)]
    return build_dataset(nodes, links)


def list_domains() -> List[GraphDomain]:
    """Domains in menu order."""
    return list(GraphDomain)
