# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

import sys
from typing import BinaryIO

import click

from celik import orchestrator
from celik.auxiliaries import CelikError, document_from_context


# === VERIFY ===================================================================


@click.command(
    'verify',
    help='''
        Verify a signature against the document's authentication certificate.

        Exits with status 0 if the signature is valid and 1 otherwise.
    ''',
)
@click.option(
    '-s', '--signature',
    type=click.File('rb'),
    required=True,
    help='File holding the raw signature.',
)
@click.option(
    '-i', '--input',
    type=click.File('rb'),
    required=False,
    help='Read the signed data from the specified file.'
         ' If omitted, data is read from standard input.',
)
@click.pass_context
def cli_verify(
        ctx,
        signature: BinaryIO,
        input: BinaryIO | None,
    ) -> None:
    ''''''

    document = document_from_context(ctx)

    data: bytes
    if input is None:
        data = sys.stdin.buffer.read()
    else:
        data = input.read()

    try:
        valid = orchestrator.verify_signature(
            document=document,
            signature=signature.read(),
            data=data,
        )
    except CelikError as e:
        raise click.ClickException(f'{type(e).__name__}: {e}') from e

    if valid:
        click.echo('Signature is valid', err=True)
    else:
        click.echo('Signature is NOT valid', err=True)
        ctx.exit(1)
