"""
BIOGRAPH DATA LOADER - Custom Datasets from Tables

Loads exploration graphs that were authored outside the bundled domains
(spreadsheets, pipeline outputs) and exports any dataset back to tables.

Two principles:
1. LAZY EVALUATION: files are scanned with Polars LazyFrames and the schema
   is checked before any row is read
2. BATCH OPERATIONS: defaults and null handling happen in Polars, rows
   cross into Python once via to_dicts()

Table layout:
    nodes: id, label, type [, description, weight, metadata]
    links: source_id, target_id, label

`metadata` is a JSON object encoded as a string. `type` accepts either a
NodeType value ("Drug/Compound") or its name ("DRUG").
"""
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import msgspec
import polars as pl

from core.errors import DataIntegrityError
from core.graph_store import LINK_FRAME_SCHEMA, NODE_FRAME_SCHEMA
from core.ontology import DEFAULT_NODE_WEIGHT, parse_node_type
from core.schemas import GraphDataset, LinkData, NodeData


# =============================================================================
# SCHEMA DEFINITIONS (For Import Validation)
# =============================================================================

NODE_REQUIRED_SCHEMA = {
    "id": pl.Utf8,
    "label": pl.Utf8,
    "type": pl.Utf8,
}

LINK_REQUIRED_SCHEMA = {
    "source_id": pl.Utf8,
    "target_id": pl.Utf8,
    "label": pl.Utf8,
}

FORMATS = ("csv", "parquet", "arrow")

_SUFFIX_FORMATS = {
    ".csv": "csv",
    ".parquet": "parquet",
    ".arrow": "arrow",
    ".ipc": "arrow",
    ".feather": "arrow",
}


# =============================================================================
# LOAD ERRORS
# =============================================================================

class DataLoadError(Exception):
    """Base exception for data loading errors."""
    pass


class SchemaValidationError(DataLoadError):
    """Raised when a table doesn't have the expected columns or types."""
    def __init__(self, missing_columns: List[str], invalid_types: Optional[Dict[str, str]] = None):
        self.missing_columns = missing_columns
        self.invalid_types = invalid_types or {}
        msg = f"Schema validation failed. Missing columns: {missing_columns}"
        if invalid_types:
            msg += f", Invalid types: {invalid_types}"
        super().__init__(msg)


# =============================================================================
# POLARS LOADER (Lazy File Loading)
# =============================================================================

class PolarsLoader:
    """
    Lazy table loader.

    Usage:
        loader = PolarsLoader()
        nodes_lf, links_lf = loader.load_tables("nodes.csv", "links.csv")
        dataset = frames_to_dataset(nodes_lf.collect(), links_lf.collect())
    """

    def __init__(self, validate: bool = True):
        self.validate = validate

    def _scan(self, path: Path, format: str) -> pl.LazyFrame:
        if format == "csv":
            return pl.scan_csv(path, infer_schema_length=1000)
        if format == "parquet":
            return pl.scan_parquet(path)
        if format == "arrow":
            return pl.scan_ipc(path)
        raise ValueError(f"Unknown format: {format}. Use: {list(FORMATS)}")

    def load_nodes(self, path: Union[str, Path], format: Optional[str] = None) -> pl.LazyFrame:
        """
        Lazy load a node table.

        Raises:
            SchemaValidationError: If validation is on and columns are wrong
        """
        path = Path(path)
        lf = self._scan(path, format or detect_format(path))
        if self.validate:
            _validate_schema(lf, NODE_REQUIRED_SCHEMA)
        return lf

    def load_links(self, path: Union[str, Path], format: Optional[str] = None) -> pl.LazyFrame:
        """Lazy load a link table."""
        path = Path(path)
        lf = self._scan(path, format or detect_format(path))
        if self.validate:
            _validate_schema(lf, LINK_REQUIRED_SCHEMA)
        return lf

    def load_tables(
        self,
        nodes_path: Union[str, Path],
        links_path: Union[str, Path],
        format: Optional[str] = None,
    ) -> Tuple[pl.LazyFrame, pl.LazyFrame]:
        return self.load_nodes(nodes_path, format), self.load_links(links_path, format)


def detect_format(path: Path) -> str:
    """File format from the suffix."""
    try:
        return _SUFFIX_FORMATS[path.suffix.lower()]
    except KeyError:
        raise ValueError(f"Cannot infer table format from {path.name!r}") from None


def _validate_schema(lf: pl.LazyFrame, required: Dict[str, pl.DataType]) -> None:
    """
    Check required columns AND their types.

    Uses collect_schema() so no rows are read.
    """
    schema = lf.collect_schema()
    missing = []
    invalid_types = {}

    for col_name, expected_type in required.items():
        if col_name not in schema:
            missing.append(col_name)
        elif schema[col_name] != expected_type:
            invalid_types[col_name] = f"Expected {expected_type}, got {schema[col_name]}"

    if missing or invalid_types:
        raise SchemaValidationError(missing_columns=missing, invalid_types=invalid_types)


# =============================================================================
# FRAMES -> RECORDS
# =============================================================================

def frame_to_nodes(df: pl.DataFrame) -> List[NodeData]:
    """
    Convert a node table to NodeData records.

    Raises:
        DataIntegrityError: On null ids, unknown types or bad metadata JSON
    """
    if df.is_empty():
        return []

    if df["id"].null_count() > 0:
        raise DataIntegrityError("Found node rows with null ids")

    columns_to_add = []
    if "description" not in df.columns:
        columns_to_add.append(pl.lit("").alias("description"))
    if "weight" not in df.columns:
        columns_to_add.append(pl.lit(DEFAULT_NODE_WEIGHT).alias("weight"))
    if "metadata" not in df.columns:
        columns_to_add.append(pl.lit("{}").alias("metadata"))
    if columns_to_add:
        df = df.with_columns(columns_to_add)

    df_clean = df.with_columns([
        pl.col("label").fill_null(pl.col("id")),
        pl.col("description").cast(pl.Utf8).fill_null(""),
        pl.col("weight").cast(pl.Float64).fill_null(DEFAULT_NODE_WEIGHT),
        pl.col("metadata").cast(pl.Utf8).fill_null("{}"),
    ])

    nodes = []
    for row in df_clean.select(list(NODE_FRAME_SCHEMA)).to_dicts():
        try:
            node_type = parse_node_type(row["type"] or "")
        except ValueError as e:
            raise DataIntegrityError(f"Node {row['id']!r}: {e}") from e
        try:
            metadata = msgspec.json.decode(row["metadata"] or "{}")
        except msgspec.DecodeError as e:
            raise DataIntegrityError(f"Node {row['id']!r}: invalid metadata JSON: {e}") from e
        if not isinstance(metadata, dict):
            raise DataIntegrityError(f"Node {row['id']!r}: metadata must be a JSON object")

        nodes.append(NodeData.create(
            id=row["id"],
            label=row["label"],
            type=node_type,
            description=row["description"],
            weight=row["weight"],
            metadata=metadata,
        ))
    return nodes


def frame_to_links(df: pl.DataFrame) -> List[LinkData]:
    """
    Convert a link table to LinkData records.

    Raises:
        DataIntegrityError: On null endpoints
    """
    if df.is_empty():
        return []

    if df["source_id"].null_count() > 0 or df["target_id"].null_count() > 0:
        raise DataIntegrityError("Found link rows with null endpoints")

    df_clean = df.with_columns(pl.col("label").fill_null(""))
    rows = df_clean.select(list(LINK_FRAME_SCHEMA)).to_dicts()
    return [LinkData(**row) for row in rows]


def frames_to_dataset(nodes_df: pl.DataFrame, links_df: pl.DataFrame) -> GraphDataset:
    """
    Build and validate a dataset from collected tables.

    Raises:
        DataIntegrityError: Including DuplicateIdError and DanglingLinkError
    """
    dataset = GraphDataset(nodes=frame_to_nodes(nodes_df), links=frame_to_links(links_df))
    dataset.validate()
    return dataset


def load_dataset(
    nodes_path: Union[str, Path],
    links_path: Union[str, Path],
    format: Optional[str] = None,
) -> GraphDataset:
    """
    Load and validate a dataset from a node table and a link table.

    Args:
        nodes_path: Node table
        links_path: Link table
        format: "csv", "parquet" or "arrow"; inferred from suffixes if None
    """
    nodes_lf, links_lf = PolarsLoader().load_tables(nodes_path, links_path, format)
    return frames_to_dataset(nodes_lf.collect(), links_lf.collect())


# =============================================================================
# EXPORT
# =============================================================================

def dataset_to_frames(dataset: GraphDataset) -> Tuple[pl.DataFrame, pl.DataFrame]:
    nodes_df = pl.DataFrame(
        {
            "id": [n.id for n in dataset.nodes],
            "label": [n.label for n in dataset.nodes],
            "type": [n.type for n in dataset.nodes],
            "description": [n.description for n in dataset.nodes],
            "weight": [float(n.weight) for n in dataset.nodes],
            "metadata": [msgspec.json.encode(n.metadata).decode() for n in dataset.nodes],
        },
        schema=NODE_FRAME_SCHEMA,
    )
    links_df = pl.DataFrame(
        {
            "source_id": [l.source_id for l in dataset.links],
            "target_id": [l.target_id for l in dataset.links],
            "label": [l.label for l in dataset.links],
        },
        schema=LINK_FRAME_SCHEMA,
    )
    return nodes_df, links_df


def export_dataset(
    dataset: GraphDataset,
    out_dir: Union[str, Path],
    format: str = "parquet",
) -> Tuple[Path, Path]:
    """
    Write a dataset as nodes.<ext> and links.<ext> under out_dir.

    Returns:
        (nodes_path, links_path)
    """
    if format not in FORMATS:
        raise ValueError(f"Unknown format: {format}. Use: {list(FORMATS)}")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    nodes_df, links_df = dataset_to_frames(dataset)

    nodes_path = out_dir / f"nodes.{format}"
    links_path = out_dir / f"links.{format}"
    if format == "csv":
        nodes_df.write_csv(nodes_path)
        links_df.write_csv(links_path)
    elif format == "parquet":
        nodes_df.write_parquet(nodes_path)
        links_df.write_parquet(links_path)
    else:
        nodes_df.write_ipc(nodes_path)
        links_df.write_ipc(links_path)

    return nodes_path, links_path
