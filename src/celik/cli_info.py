# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

import click
import yaml

from celik import orchestrator
from celik.auxiliaries import CelikError, document_from_context

# === INFO =====================================================================


@click.command(
    "info",
    help="""
    Show the document fields and the authentication certificate key.
    No password is needed.
    """,
)
@click.pass_context
def cli_info(ctx) -> None:
    document = document_from_context(ctx)
    try:
        info = orchestrator.read_document_info(document)
    except CelikError as e:
        raise click.ClickException(f'{type(e).__name__}: {e}') from e
    click.echo(yaml.dump(info, sort_keys=False))
