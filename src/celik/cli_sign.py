# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

import sys
from typing import BinaryIO

import click

from celik import orchestrator
from celik.auxiliaries import CelikError, document_from_context
from celik.document import PinVerificationFailed


# === SIGN =====================================================================


@click.command(
    'sign',
    help='''
        Sign data with the private key of the document.

        The signature (RSA PKCS#1 v1.5 over SHA-256) is written to standard
        output unless an output file is specified with -o.

        The password is prompted for unless given with --password or the
        CELIK_PASSWORD environment variable.
    ''',
)
@click.option(
    '-i', '--input',
    type=click.File('rb'),
    required=False,
    help='Read the data to sign from the specified file.'
         ' If omitted, data is read from standard input.',
)
@click.option(
    '-o', '--output',
    type=click.File('wb'),
    required=False,
    help='Write the signature to the specified file.'
         ' If omitted, output is written to standard output.',
)
@click.option(
    '--password',
    type=str,
    envvar='CELIK_PASSWORD',
    default=None,
    help='Document password (for non-interactive use)',
)
@click.pass_context
def cli_sign(
        ctx,
        input: BinaryIO | None,
        output: BinaryIO | None,
        password: str | None,
    ) -> None:
    ''''''

    document = document_from_context(ctx)
    debug: bool = ctx.obj.get('debug', False)

    # Read data
    data: bytes
    if input is None:
        data = sys.stdin.buffer.read()
    else:
        data = input.read()

    if password is None:
        password = click.prompt('Document password', hide_input=True, type=str)

    try:
        signature = orchestrator.sign_data(
            document=document,
            data=data,
            password=bytearray(password, 'utf-8'),
            debug=debug,
        )
    except PinVerificationFailed as e:
        raise click.ClickException(
            f'{e}\nHint: a wrong password yields a wrong PIN.') from e
    except CelikError as e:
        raise click.ClickException(f'{type(e).__name__}: {e}') from e

    # Write output
    if output is None:
        sys.stdout.buffer.write(signature)
    else:
        output.write(signature)
        click.echo(f"Signed {len(data)} bytes ({len(signature)}-byte signature)",
                   err=True)
