from __future__ import annotations
import json
import pathlib
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rebase_api.crypto import B64U
from rebase_api.errors import PreconditionError, SubmissionError
from rebase_api.logutil import setup_logging
from rebase_api.merkle import compute_boundary
from rebase_api.models import TreeDocument
from rebase_api.pipeline import fold_trees
from rebase_api.settings import settings
from rebase_api.submission import NodeTransport
from rebase_sdk.markers import marker_chain

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, help="Logging level")):
    setup_logging(log_level)


def _load_tree(path: pathlib.Path):
    try:
        doc = TreeDocument.model_validate(json.loads(path.read_text()))
        return doc.to_handle()
    except (OSError, ValueError, ValidationError, PreconditionError) as e:
        print(f"[red]Invalid tree document {path}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.command()
def boundary(size: int = typer.Argument(..., min=0, help="Left subtree size in bytes")):
    """Print the padded boundary at which a right subtree starts."""
    print(compute_boundary(size))


@app.command()
def merge(
    trees: List[pathlib.Path] = typer.Argument(..., help="Tree documents, left to right"),
    out: pathlib.Path = typer.Option(..., "--out", "-o", help="Merged tree document"),
):
    """Fold two or more tree documents into one rebased tree."""
    if len(trees) < 2:
        raise typer.BadParameter("need at least two trees to merge")
    handles = [_load_tree(p) for p in trees]
    try:
        merged = fold_trees(handles)
    except PreconditionError as e:
        print(f"[red]Merge rejected: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(TreeDocument.from_handle(merged).dumps())
    print(
        f"[green]Wrote merged tree to {out}[/green] "
        f"(root {B64U(merged.data_root)}, size {merged.data_size}, {len(merged.chunks)} chunks)"
    )


@app.command()
def inspect(tree: pathlib.Path = typer.Argument(..., help="Tree document")):
    """Show data ranges, proof offsets and rebase markers for every leaf."""
    t = _load_tree(tree)
    console = Console()
    console.print(f"data_root: {B64U(t.data_root)}")
    console.print(f"data_size: {t.data_size} (data buffer {len(t.data)} bytes)")
    table = Table("leaf", "data range", "proof offset", "markers", "outer boundary")
    for i, (c, p) in enumerate(zip(t.chunks, t.proofs)):
        markers, _ = marker_chain(p.proof)
        table.add_row(
            str(i),
            escape(f"[{c.min_byte_range}, {c.max_byte_range})"),
            str(p.offset),
            str(len(markers)),
            str(markers[0].boundary) if markers else "-",
        )
    console.print(table)


@app.command()
def post_chunks(
    tree: pathlib.Path = typer.Argument(..., help="Rebased tree document"),
    node_url: Optional[str] = typer.Option(None, help="Node base URL (default REBASE_NODE_URL)"),
):
    """Submit every chunk of a tree to a node."""
    t = _load_tree(tree)
    transport = NodeTransport(node_url or settings.node_url, settings.submit_timeout)
    try:
        statuses = transport.post_chunks(t)
    except (PreconditionError, SubmissionError) as e:
        print(f"[red]Chunk submission failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    for i, status in enumerate(statuses):
        print(f"[cyan]POST chunk {i}[/cyan]: {status}")


if __name__ == "__main__":
    app()
