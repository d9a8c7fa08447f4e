"""Command-line interface for vtkrect.

Usage:
    vtkrect info grid.vtr
    vtkrect verify grid.vtr
    vtkrect convert grid.vtr grid_raw.vtr --encoding=raw
    vtkrect combine whole.vtr piece_0.vtr piece_1.vtr --axis=x
"""

from __future__ import annotations

import logging
import sys

import click

from vtkrect.errors import VtkError

_ENCODINGS = click.Choice(["ascii", "base64", "raw"], case_sensitive=False)
_PLACEMENTS = click.Choice(["inline", "appended"], case_sensitive=False)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """vtkrect — VTK XML RectilinearGrid reader and writer."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.argument("vtr_file", type=click.Path(exists=True))
@click.option("--dims", type=click.IntRange(2, 3), default=None, help="Force 2-D or 3-D.")
def info(vtr_file: str, dims: int | None) -> None:
    """Show extents, precision, layout and arrays of a file."""
    from vtkrect.io.reader import parse_document

    try:
        document = parse_document(vtr_file, dims)
    except VtkError as exc:
        click.echo(f"Read error: {exc}", err=True)
        sys.exit(1)

    domain = document.domain
    click.echo(f"{vtr_file}: {domain.dims}D RectilinearGrid")
    click.echo(f"  WholeExtent: {domain.whole.to_extent()}")
    click.echo(f"  Extent: {domain.spans.to_extent()}")
    click.echo(f"  Points: {domain.spans.num_points}")
    click.echo(f"  Precision: {domain.precision.value}")
    click.echo(f"  Layout: {document.layout.byte_order}, {document.layout.header_type}")
    click.echo(f"  Coordinates: {domain.mesh.encoding.value} ({domain.mesh.placement.value})")
    if document.appended_encoding is not None:
        click.echo(
            f"  Appended: {document.appended_encoding}, "
            f"{len(document.appended_slots)} blocks, {document.appended_length} bytes"
        )
    click.echo(f"  Arrays: {len(document.arrays)}")
    for name, handle in document.arrays.items():
        click.echo(
            f"    {name}: {handle.precision.value} x{handle.components} "
            f"{handle.encoding.value} ({handle.placement.value})"
        )


@cli.command()
@click.argument("vtr_file", type=click.Path(exists=True))
@click.option("--dims", type=click.IntRange(2, 3), default=None, help="Force 2-D or 3-D.")
def verify(vtr_file: str, dims: int | None) -> None:
    """Parse a file and decode every array."""
    from vtkrect.io.reader import parse_document

    try:
        document = parse_document(vtr_file, dims)
        shapes = {name: document.recover(name).shape for name in document.names}
    except VtkError as exc:
        click.echo(f"Invalid file: {exc}", err=True)
        sys.exit(1)

    click.echo(f"{vtr_file} is valid:")
    click.echo(f"  Extent: {document.domain.spans.to_extent()}")
    for name, shape in shapes.items():
        click.echo(f"  {name}: {shape}")


@cli.command()
@click.argument("src", type=click.Path(exists=True))
@click.argument("dst", type=click.Path())
@click.option("--encoding", type=_ENCODINGS, default=None, help="Re-encode mesh and arrays.")
@click.option("--placement", type=_PLACEMENTS, default=None, help="Inline or appended content.")
@click.option("--config", "config_file", type=click.Path(exists=True), default=None,
              help="Writer configuration (JSON).")
def convert(
    src: str,
    dst: str,
    encoding: str | None,
    placement: str | None,
    config_file: str | None,
) -> None:
    """Rewrite a file, optionally in another encoding."""
    from vtkrect.config import WriterConfig
    from vtkrect.geometry.rectilinear import build_domain
    from vtkrect.io.reader import parse_document
    from vtkrect.io.writer import write_document

    if placement is not None and encoding is None:
        raise click.UsageError("--placement needs --encoding")
    config = WriterConfig.from_file(config_file) if config_file else WriterConfig()
    try:
        document = parse_document(src)
        domain = document.domain
        arrays = document.to_named_arrays()
        if encoding is not None:
            mesh = domain.mesh.with_encoding(encoding.lower(), placement)
            domain = build_domain(mesh, domain.spans, domain.whole)
            arrays = [array.with_encoding(encoding.lower(), placement) for array in arrays]
        nbytes = write_document(dst, domain, arrays, config)
    except VtkError as exc:
        click.echo(f"Conversion failed: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Wrote {dst} ({nbytes} bytes)")


@cli.command()
@click.argument("dst", type=click.Path())
@click.argument("pieces", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--axis", type=click.Choice(["x", "y", "z"]), default="x", help="Axis the pieces tile.")
@click.option("--encoding", type=_ENCODINGS, default="ascii", help="Encoding of the output.")
def combine(dst: str, pieces: tuple[str, ...], axis: str, encoding: str) -> None:
    """Stitch piece files that tile a grid along one axis."""
    from vtkrect.config import WriterConfig
    from vtkrect.geometry.pieces import combine_pieces
    from vtkrect.geometry.rectilinear import build_domain
    from vtkrect.io.reader import read_document
    from vtkrect.io.writer import write_document

    config = WriterConfig(default_encoding=encoding.lower())
    try:
        domain, arrays = combine_pieces([read_document(path) for path in pieces], axis=axis)
        mesh = domain.mesh.with_encoding(config.encoding)
        domain = build_domain(mesh, domain.spans, domain.whole)
        nbytes = write_document(dst, domain, arrays, config)
    except VtkError as exc:
        click.echo(f"Combine failed: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Combined {len(pieces)} pieces into {dst} ({nbytes} bytes)")


if __name__ == "__main__":
    cli()
