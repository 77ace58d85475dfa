"""Click CLI commands for TerraFuse."""

import asyncio
import logging
import pathlib

import click

from .constants import LOG_FORMAT
from .models import Rotation
from .presenter import frame_camera
from .raster import describe, read_raster_file
from .errors import DecodeError
from .session import FusionSession

logger = logging.getLogger(__name__)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log every pipeline stage')
def cli(verbose: bool):
    """TerraFuse CLI for fusing a DSM and imagery into a textured terrain mesh."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING,
                        format=LOG_FORMAT)


@cli.command()
@click.argument('dsm', type=click.Path(exists=True, dir_okay=False))
@click.argument('imagery', type=click.Path(exists=True, dir_okay=False))
@click.option('--rotation', '-r', default=0, type=click.IntRange(0, 3),
              help='Imagery rotation in 90° steps (0-3)')
def combine(dsm: str, imagery: str, rotation: int):
    """Fuse a DSM and an imagery raster and report the resulting terrain."""
    result = asyncio.run(async_combine(dsm, imagery, rotation))
    for line in result['log']:
        click.echo(f"  {line}")
    if not result['ok']:
        raise click.ClickException(result['message'])

    click.echo(f"\n{'='*50}")
    click.echo(f"Vertices: {result['vertices']}  Faces: {result['faces']}")
    click.echo(f"Texture:  {result['texture_size']} RGBA "
               f"({result['texture_bytes']} bytes)")
    click.echo(f"Elevation range: {result['min_elevation']} to "
               f"{result['max_elevation']}")
    click.echo(f"Rotation: {result['rotation']}°")
    click.echo(f"Camera: {result['camera']}")
    click.echo(f"{'='*50}")


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def inspect(path: str):
    """Print raster dimensions and per-band value ranges."""
    try:
        raster = read_raster_file(path)
    except DecodeError as e:
        raise click.ClickException(str(e))
    click.echo(f"{pathlib.Path(path).name}: {raster.width}x{raster.height}, "
               f"{raster.band_count} band(s), nodata={raster.nodata}")
    for band in describe(raster):
        click.echo(f"  band {band['band']} ({band['dtype']}): "
                   f"min={band['min']} max={band['max']} "
                   f"invalid={band['invalid']}")


async def async_combine(dsm: str, imagery: str, rotation: int) -> dict:
    """Async helper that runs one combine through a fresh session."""
    session = FusionSession()
    for _ in range(rotation):
        await session.rotate()

    dsm_path, imagery_path = pathlib.Path(dsm), pathlib.Path(imagery)
    outcome = await session.combine(dsm_path.read_bytes(),
                                    imagery_path.read_bytes(),
                                    elevation_name=dsm_path.name,
                                    color_name=imagery_path.name)
    summary = {'ok': outcome.ok, 'message': outcome.message,
               'log': list(session.log)}
    if not outcome.ok:
        return summary

    mesh, texture = outcome.terrain.mesh, outcome.terrain.texture
    camera = frame_camera(mesh)
    summary.update({
        'vertices': mesh.vertex_count,
        'faces': len(mesh.faces),
        'texture_size': f"{texture.width}x{texture.height}",
        'texture_bytes': len(texture.rgba),
        'min_elevation': mesh.min_elevation,
        'max_elevation': mesh.max_elevation,
        'rotation': Rotation(outcome.rotation).degrees,
        'camera': tuple(round(c, 2) for c in camera.position),
    })
    return summary


def main():
    cli()


if __name__ == '__main__':
    main()
