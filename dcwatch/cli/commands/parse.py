"""
dcwatch parse - Show how a capability path is parsed.
"""

import json

import typer

from ...exceptions import MalformedPath
from ...path import parse


def parse_path(
    path: str = typer.Argument(..., help="Capability path, e.g. /gotapi/deviceOrientation/onDeviceOrientation"),
):
    """
    Parse PATH and print the result as JSON.
    """
    try:
        spec = parse(path)
    except MalformedPath as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    data = spec.model_dump()
    data["subPath"] = spec.sub_path
    typer.echo(json.dumps(data, indent=2))
