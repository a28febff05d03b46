"""
Output formatters for explored graphs.

This module handles JSON graph generation with timestamp-based filenames
and a short per-kind summary for console output.
"""

import json
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .models import GraphView


def generate_timestamp() -> str:
    """
    Generate a timestamp string for filenames.

    Returns:
        Timestamp in YYYYMMDD_HHMMSS format
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def generate_filename(base_path: str, timestamp: Optional[str] = None) -> str:
    """
    Generate a timestamped filename for a graph export.

    Args:
        base_path: Base output path (e.g., "graph.json")
        timestamp: Optional timestamp to use (generates new one if not provided)

    Returns:
        The output file path

    Examples:
        generate_filename("graph.json", "20241214_153022") -> "graph_20241214_153022.json"
    """
    if timestamp is None:
        timestamp = generate_timestamp()

    path = Path(base_path)
    suffix = path.suffix or ".json"
    return str(path.parent / f"{path.stem}_{timestamp}{suffix}")


def graph_to_dict(graph: GraphView) -> Dict[str, Any]:
    """Convert a graph view into the JSON shape consumed by the renderer."""
    return {
        "nodes": [node.to_dict() for node in graph.nodes],
        "links": [link.to_dict() for link in graph.links],
    }


def summarize_graph(graph: GraphView) -> Dict[str, int]:
    """
    Count nodes and links by kind.

    Returns:
        Dict with keys like "profile", "nft", "ownership", "contract-sibling"
    """
    counts: Counter = Counter(node.kind for node in graph.nodes)
    counts.update(link.kind for link in graph.links)
    return dict(counts)


def write_graph_json_to_stream(graph: GraphView, stream: TextIO) -> None:
    """
    Write a graph as JSON to a stream.

    Args:
        graph: Graph view to write
        stream: File-like object to write to
    """
    json.dump(graph_to_dict(graph), stream, indent=2)
    stream.write("\n")


def write_graph_json(graph: GraphView, output_path: Optional[str] = None) -> Optional[str]:
    """
    Write a graph to a timestamped JSON file or stdout.

    Args:
        graph: Graph view to write
        output_path: Base output path. If None, writes to stdout.

    Returns:
        The file path written, or None when writing to stdout
    """
    if output_path is None:
        write_graph_json_to_stream(graph, sys.stdout)
        return None

    output_file = generate_filename(output_path)
    with open(output_file, "w", encoding="utf-8") as f:
        write_graph_json_to_stream(graph, f)

    return output_file
