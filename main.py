"""
BIOGRAPH MAIN - Entry Point and CLI

Commands:
    domains    - List bundled domains with node/link counts
    neighbors  - Show a node and its highlighted neighborhood
    path       - Shortest path between two nodes
    search     - Find nodes by label or id
    export     - Export a domain dataset to files
    import     - Validate and summarize a custom dataset
    enrich     - Ask the reasoning service about one node
    ask        - Run a hypothesis turn against a domain

Usage:
    python main.py domains
    python main.py neighbors SARS-CoV-2 ACE2
    python main.py path AMR NDM-1 Methicillin
    python main.py search ONCOLOGY kras --literature
    python main.py export CLIMATE -o ./export --format csv
    python main.py import nodes.csv --links links.csv
    python main.py enrich SARS-CoV-2 NSP5
    python main.py ask NEURO "Does ApoE4 accelerate tau spread?"

Domains can be given by value ("Climate-Health") or by name ("CLIMATE").
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.errors import ExternalServiceError, GraphError
from core.graph_store import create_store
from core.highlight import highlight_for
from core.ontology import parse_domain
from core.pathfinding import find_path_in_store
from domain.fixtures import get_domain_dataset, list_domains
from infrastructure.config import get_config
from infrastructure.logger import configure_logging, configure_mutation_logger


console = Console()
logger = logging.getLogger("biograph.cli")


def _store_for(domain_arg: str):
    domain = parse_domain(domain_arg)
    return create_store(get_domain_dataset(domain), domain=domain.value)


def _node_table(title: str, nodes) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Label")
    table.add_column("Type", style="magenta")
    for node in nodes:
        table.add_row(node.id, node.label, node.type)
    return table


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_domains(args):
    """Handle domains command - list bundled datasets."""
    table = Table(title="Domains")
    table.add_column("Name", style="cyan")
    table.add_column("Domain")
    table.add_column("Nodes", justify="right")
    table.add_column("Links", justify="right")
    for domain in list_domains():
        dataset = get_domain_dataset(domain)
        table.add_row(domain.name, domain.value, str(len(dataset.nodes)), str(len(dataset.links)))
    console.print(table)


def cmd_neighbors(args):
    """Handle neighbors command - show the highlight set of one node."""
    store = _store_for(args.domain)
    node = store.get_node(args.node)
    highlight = highlight_for(store, node.id)

    console.print(Panel(node.description or "(no description)", title=f"{node.label} [{node.type}]"))
    neighbors = [store.get_node(n) for n in sorted(highlight.nodes) if n != node.id]
    console.print(_node_table(f"{len(neighbors)} neighbors", neighbors))

    literature = store.related_literature(node.id)
    if literature:
        console.print(_node_table("Related literature", literature))


def cmd_path(args):
    """Handle path command - BFS shortest path."""
    store = _store_for(args.domain)
    path = find_path_in_store(store, args.start, args.end)
    if path is None:
        console.print(f"[yellow]No path between {args.start} and {args.end}[/yellow]")
        sys.exit(1)

    labels = [store.get_node(n).label for n in path.node_sequence]
    console.print(f"[green]{path.hops} hops:[/green] " + " -> ".join(labels))


def cmd_search(args):
    """Handle search command - label/id search."""
    store = _store_for(args.domain)
    matches = store.search_nodes(args.query, literature_only=args.literature)
    if not matches:
        console.print(f"[yellow]No nodes match {args.query!r}[/yellow]")
        return
    console.print(_node_table(f"{len(matches)} matches", matches))


def cmd_export(args):
    """Handle export command - write a domain dataset to files."""
    from infrastructure.data_loader import export_dataset

    domain = parse_domain(args.domain)
    dataset = get_domain_dataset(domain)
    nodes_path, links_path = export_dataset(dataset, args.output, format=args.format)

    console.print(f"Exported {len(dataset.nodes)} nodes, {len(dataset.links)} links")
    console.print(f"  Nodes: {nodes_path}")
    console.print(f"  Links: {links_path}")


def cmd_import(args):
    """Handle import command - load, validate and summarize a custom dataset."""
    from infrastructure.data_loader import DataLoadError, load_dataset

    try:
        dataset = load_dataset(args.nodes_file, args.links_file, format=args.format)
    except (DataLoadError, GraphError) as e:
        console.print(f"[red]Import failed:[/red] {e}")
        sys.exit(1)

    store = create_store(dataset)
    stats = store.stats()
    table = Table(title=f"Imported {args.nodes_file}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)


def cmd_enrich(args):
    """Handle enrich command - one enrichment call."""
    from agents.reasoning import ReasoningService

    config = get_config()
    store = _store_for(args.domain)
    node = store.get_node(args.node)
    service = ReasoningService(llm=config.structured_llm(), router=config.router())

    try:
        data = asyncio.run(service.enrich_node(node, store.domain))
    except ExternalServiceError as e:
        console.print(f"[red]Enrichment failed:[/red] {e}")
        sys.exit(1)

    console.print(Panel(data.summary, title=node.label))
    if data.related_topics:
        console.print("Related: " + ", ".join(data.related_topics))
    for source in data.sources:
        console.print(f"  - {source.title} {source.uri}")


def cmd_ask(args):
    """Handle ask command - one hypothesis turn, merged into the domain graph."""
    from agents.reasoning import ReasoningService
    from core.session import ExplorerSession

    config = get_config()
    service = ReasoningService(llm=config.structured_llm(), router=config.router())

    async def run():
        session = ExplorerSession(ai=service, domain=args.domain, config=config)
        session.machine.enter_hypothesis()
        turn = await session.analyze_hypothesis(args.query)
        return session, turn

    session, turn = asyncio.run(run())
    if turn is None:
        console.print(f"[red]Hypothesis failed:[/red] {session.hypothesis_error}")
        sys.exit(1)

    result = session.hypothesis_result
    console.print(Panel(result.hypothesis, title="Hypothesis"))
    console.print(result.synthesis)
    relevant = [session.store.get_node(n) for n in turn.relevant_node_ids if session.store.has_node(n)]
    console.print(_node_table("Relevant nodes", relevant))


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="BioGraph - Interactive Knowledge Graph Explorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from config)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    domains_parser = subparsers.add_parser("domains", help="List bundled domains")
    domains_parser.set_defaults(func=cmd_domains)

    neighbors_parser = subparsers.add_parser("neighbors", help="Show a node's neighborhood")
    neighbors_parser.add_argument("domain")
    neighbors_parser.add_argument("node")
    neighbors_parser.set_defaults(func=cmd_neighbors)

    path_parser = subparsers.add_parser("path", help="Shortest path between two nodes")
    path_parser.add_argument("domain")
    path_parser.add_argument("start")
    path_parser.add_argument("end")
    path_parser.set_defaults(func=cmd_path)

    search_parser = subparsers.add_parser("search", help="Search nodes by label or id")
    search_parser.add_argument("domain")
    search_parser.add_argument("query")
    search_parser.add_argument("--literature", action="store_true", help="Only literature nodes")
    search_parser.set_defaults(func=cmd_search)

    export_parser = subparsers.add_parser("export", help="Export a domain dataset")
    export_parser.add_argument("domain")
    export_parser.add_argument("--output", "-o", default="./export", help="Output directory")
    export_parser.add_argument("--format", choices=["parquet", "csv", "arrow"], default="parquet")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Validate a custom dataset")
    import_parser.add_argument("nodes_file", help="Path to nodes file")
    import_parser.add_argument("--links", dest="links_file", required=True, help="Path to links file")
    import_parser.add_argument("--format", choices=["parquet", "csv", "arrow"], help="File format")
    import_parser.set_defaults(func=cmd_import)

    enrich_parser = subparsers.add_parser("enrich", help="Enrich one node via the LLM")
    enrich_parser.add_argument("domain")
    enrich_parser.add_argument("node")
    enrich_parser.set_defaults(func=cmd_enrich)

    ask_parser = subparsers.add_parser("ask", help="Run a hypothesis turn")
    ask_parser.add_argument("domain")
    ask_parser.add_argument("query")
    ask_parser.set_defaults(func=cmd_ask)

    args = parser.parse_args()
    config = get_config()
    configure_logging(args.log_level or config.logging.level)
    configure_mutation_logger(config.logger_config())

    if args.command is None:
        parser.print_help()
        return

    try:
        args.func(args)
    except (GraphError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
