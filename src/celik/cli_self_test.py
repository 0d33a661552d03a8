#!/usr/bin/env python
# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

"""
Self-test command for celik.

Runs the key recovery pipeline end to end on synthetic documents.
"""

import sys

import click

from celik.self_test import run_self_test


@click.command(name='self-test')
@click.option(
    '-n', '--count',
    type=int,
    default=3,
    show_default=True,
    help='Number of synthetic documents to test'
)
@click.option(
    '--key-size',
    type=click.Choice(['1024', '2048', '3072', '4096']),
    default='2048',
    show_default=True,
    help='RSA key size of the synthetic documents'
)
@click.pass_context
def cli_self_test(ctx, count: int, key_size: str) -> None:
    """
    Run end-to-end self-test on synthetic documents.

    No document or password is needed: each iteration provisions a fresh
    in-memory document, signs random data, verifies the signature, and
    checks that a wrong password never yields a valid signature.

    Example:
        celik self-test -n 5 --key-size 1024
    """
    if count < 1:
        raise click.BadParameter('count must be at least 1')

    debug = ctx.obj.get('debug', False)

    exit_code = run_self_test(
        iterations=count,
        key_size=int(key_size),
        debug=debug,
    )
    sys.exit(exit_code)
