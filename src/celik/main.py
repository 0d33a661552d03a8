#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

import click

from celik.cli_info import cli_info
from celik.cli_self_test import cli_self_test
from celik.cli_sign import cli_sign
from celik.cli_verify import cli_verify
from celik.document import DocumentError, DumpDocument


# === Main CLI =================================================================


@click.group(
    help='''
        Sign and verify data with the key stored on a Celik identity document.

        The document never holds its RSA private key in the clear. celik
        recovers it from the user password on every signature:

        \b
          - The PIN and the AES secret key are unmasked with SHA-1 of
            'ID' + registration number + 0x01 + password.
          - The PIN is verified against the document.
          - The private key container is decrypted with AES-256-CFB.
          - The RSA key is rebuilt from its two primes and the public key
            of the authentication certificate.
          - Data is signed with RSA PKCS#1 v1.5 over SHA-256.

        Document files are read from a dump directory selected with --dump
        (or the CELIK_DUMP environment variable), for example:

        \b
          celik --dump ./card sign -i contract.pdf -o contract.sig
          celik --dump ./card verify -s contract.sig -i contract.pdf
    '''
)
@click.option(
    '-d', '--dump',
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
    envvar='CELIK_DUMP',
    required=False,
    help='Directory holding the files dumped from the document.'
)
@click.option(
    '--debug',
    is_flag=True,
    default=False,
    hidden=True,
    help='Enable debug instrumentation (hidden flag for troubleshooting)'
)
@click.pass_context
def cli(
    ctx,
    dump: str | None,
    debug: bool,
) -> None:
    """CLI tool for identity document signatures."""

    ctx.ensure_object(dict)  # Ensure ctx.obj is a dict

    if dump is not None:
        try:
            ctx.obj['document'] = DumpDocument(dump)
        except DocumentError as e:
            raise click.ClickException(str(e)) from e

    ctx.obj['debug'] = debug  # Store --debug flag in context

cli.add_command(cli_info)
cli.add_command(cli_self_test)
cli.add_command(cli_sign)
cli.add_command(cli_verify)


if __name__ == "__main__":
    cli()
