"""CLI for Merkle Checkpoint."""

import sys
from pathlib import Path
from typing import Literal, NoReturn

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import MCKPT_DIR, __version__
from .codec import decode, encode
from .config import (
    CheckpointConfig,
    create_default_config,
    get_mckpt_dir,
    load_config,
    save_config,
)
from .merkle import FormatError, InvalidInputError, MerkleTree

console = Console()
error_console = Console(stderr=True)

CHECKPOINT_SUFFIX = ".mckpt"

# Signatures shown per level by `inspect --levels`
LEVEL_PREVIEW = 4


def get_project_root() -> Path:
    """Get the project root directory (current working directory)."""
    return Path.cwd()


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {message}", soft_wrap=True)
    sys.exit(1)


def read_leaves(path: Path, config: CheckpointConfig) -> list[bytes]:
    """Read leaf signatures from a file, one per line."""
    leaves = []
    with open(path, encoding="utf-8") as f:
        try:
            for line_number, line in enumerate(f, start=1):
                line = line.rstrip("\r\n")
                if not line.strip() and config.skip_blank_lines:
                    continue
                try:
                    leaves.append(config.parse_leaf(line))
                except ValueError:
                    fail(f"{path}:{line_number} is not a valid {config.leaf_format} signature")
        except UnicodeDecodeError:
            fail(f"{path} is not valid UTF-8")
    return leaves


def read_checkpoint(path: Path) -> MerkleTree:
    """Decode a checkpoint file, exiting on malformed data."""
    try:
        return decode(path.read_bytes())
    except FormatError as e:
        fail(f"{path} is not a valid checkpoint: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="mckpt")
def main() -> None:
    """Merkle Checkpoint - Order-sensitive checksums over signature sequences."""
    pass


@main.command()
@click.option(
    "--combiner",
    type=click.Choice(["adler32", "crc32"]),
    default="adler32",
    help="Combining function for internal nodes",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration",
)
def init(combiner: Literal["adler32", "crc32"], force: bool) -> None:
    """Write a configuration for the current directory."""
    project_root = get_project_root()
    mckpt_dir = get_mckpt_dir(project_root)

    if mckpt_dir.exists() and not force:
        error_console.print(
            f"[yellow]Warning:[/yellow] {MCKPT_DIR}/ already exists. Use --force to reinitialize."
        )
        sys.exit(1)

    config = create_default_config(combiner)
    save_config(config, project_root)

    console.print(
        Panel(
            f"[green]Initialized Merkle Checkpoint[/green]\n\n"
            f"Combiner: [bold]{combiner}[/bold]\n"
            f"Config directory: [dim]{mckpt_dir}[/dim]",
            title="mckpt init",
        )
    )


@main.command()
@click.argument("leaves", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Checkpoint file to write (default: LEAVES with {CHECKPOINT_SUFFIX} suffix)",
)
def build(leaves: Path, output: Path | None) -> None:
    """Build a checkpoint from a file of leaf signatures, one per line."""
    config = load_config(get_project_root())
    signatures = read_leaves(leaves, config)

    try:
        tree = MerkleTree.build(signatures, combiner=config.get_combiner())
    except InvalidInputError as e:
        fail(str(e))

    if output is None:
        output = leaves.with_suffix(CHECKPOINT_SUFFIX)
    data = encode(tree)
    output.write_bytes(data)

    table = Table(title="Checkpoint Built")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Leaves", str(tree.leaf_count))
    table.add_row("Nodes", str(tree.node_count))
    table.add_row("Height", str(tree.height))
    table.add_row("Combiner", config.combiner)
    table.add_row("Root", tree.root_signature.hex())
    table.add_row("Bytes written", str(len(data)))

    console.print(table)
    console.print(f"[green]Wrote {output}[/green]")


@main.command()
@click.argument("checkpoint", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Dump the full tree as JSON")
@click.option("--levels", is_flag=True, help="Show every level of the tree")
def inspect(checkpoint: Path, as_json: bool, levels: bool) -> None:
    """Show the contents of a checkpoint file."""
    tree = read_checkpoint(checkpoint)

    if as_json:
        console.print_json(data=tree.to_dict())
        return

    table = Table(title=f"Checkpoint {checkpoint.name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Leaves", str(tree.leaf_count))
    table.add_row("Nodes", str(tree.node_count))
    table.add_row("Height", str(tree.height))
    table.add_row("Root", tree.root_signature.hex())

    console.print(table)

    if levels:
        level_table = Table(title="Levels")
        level_table.add_column("Level", justify="right", style="cyan")
        level_table.add_column("Width", justify="right")
        level_table.add_column("Promoted", justify="right")
        level_table.add_column("Signatures")

        for depth, nodes in enumerate(tree.levels()):
            preview = [node.signature.hex() for node in nodes[:LEVEL_PREVIEW]]
            if len(nodes) > LEVEL_PREVIEW:
                preview.append(f"[dim]... {len(nodes) - LEVEL_PREVIEW} more[/dim]")
            level_table.add_row(
                str(depth),
                str(len(nodes)),
                str(sum(1 for node in nodes if node.is_promoted)),
                "\n".join(preview),
            )

        console.print(level_table)


@main.command()
@click.argument("expected", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("actual", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def compare(expected: Path, actual: Path) -> None:
    """Compare the roots of two checkpoints.

    Exits with status 1 when the roots differ, meaning signatures were lost,
    added or reordered between the two.
    """
    expected_tree = read_checkpoint(expected)
    actual_tree = read_checkpoint(actual)

    table = Table(title="Checkpoint Comparison")
    table.add_column("", style="cyan")
    table.add_column(expected.name)
    table.add_column(actual.name)

    table.add_row("Leaves", str(expected_tree.leaf_count), str(actual_tree.leaf_count))
    table.add_row(
        "Root",
        expected_tree.root_signature.hex(),
        actual_tree.root_signature.hex(),
    )

    console.print(table)

    if expected_tree.matches(actual_tree):
        console.print("[green]Roots match.[/green]")
        return

    if expected_tree.leaf_count != actual_tree.leaf_count:
        error_console.print(
            f"[red]Roots differ:[/red] leaf count changed "
            f"({expected_tree.leaf_count} -> {actual_tree.leaf_count})"
        )
    else:
        error_console.print("[red]Roots differ:[/red] signatures changed or reordered")
    sys.exit(1)


@main.command()
@click.argument("checkpoint", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(checkpoint: Path) -> None:
    """Recompute internal signatures of a checkpoint with the configured combiner."""
    config = load_config(get_project_root())
    tree = read_checkpoint(checkpoint)

    mismatches = tree.verify(config.get_combiner())
    if not mismatches:
        console.print(
            f"[green]All {tree.node_count - tree.leaf_count} internal signatures "
            f"match ({config.combiner}).[/green]"
        )
        return

    error_console.print(
        f"[red]{len(mismatches)} internal signatures do not match ({config.combiner}).[/red]"
    )
    error_console.print(f"  positions: {', '.join(str(p) for p in mismatches)}")
    sys.exit(1)


if __name__ == "__main__":
    main()
