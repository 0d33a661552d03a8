# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from celik.constants import FILE_HEADER_S, TLV_LENGTH_S, TLV_TAG_S


class CelikError(Exception):
    """Base class for every failure raised by the signing pipeline."""
    pass


class BoundsError(CelikError, ValueError):
    """Raised when a buffer is shorter than the layout it must follow."""
    pass


def require_length(name: str, data: bytes | bytearray, minimum: int) -> None:
    if len(data) < minimum:
        raise BoundsError(
            f"{name} is {len(data)} bytes long, expected at least {minimum}")


def xor_bytes(*buffers: bytes | bytearray) -> bytearray:
    """
    XOR equally long buffers together.

    Returns a bytearray so the caller can wipe it when done.
    """
    length = len(buffers[0])
    result = bytearray(length)
    for buffer in buffers:
        if len(buffer) != length:
            raise BoundsError(
                f"Cannot XOR buffers of {length} and {len(buffer)} bytes")
        for i in range(length):
            result[i] ^= buffer[i]
    return result


def wipe(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


@contextmanager
def wiped(*buffers: bytearray) -> Iterator[tuple[bytearray, ...]]:
    """
    Scope sensitive buffers: they are zeroed on exit, even on error.

    Example:
        with wiped(pin, secret_key):
            ...
    """
    try:
        yield buffers
    finally:
        for buffer in buffers:
            wipe(buffer)


def parse_typed_file(data: bytes) -> dict[int, bytes]:
    """
    Parse a typed document file into a dictionary.

    The file is a 4-byte header followed by records of
    tag (u16 LE) | length (u16 LE) | value.

    Args:
        data: Raw file bytes

    Returns:
        Dictionary mapping tag (int) to value (bytes)

    Raises:
        BoundsError: If the header or a record is truncated
    """
    require_length('Typed file', data, FILE_HEADER_S)

    result = {}
    offset = FILE_HEADER_S

    while offset < len(data):
        if offset + TLV_TAG_S + TLV_LENGTH_S > len(data):
            raise BoundsError(
                f"Truncated typed file: record header at offset {offset}")

        tag = int.from_bytes(data[offset:offset+TLV_TAG_S], 'little')
        offset += TLV_TAG_S
        length = int.from_bytes(data[offset:offset+TLV_LENGTH_S], 'little')
        offset += TLV_LENGTH_S

        if offset + length > len(data):
            raise BoundsError(
                f"Truncated typed file: tag {tag} expects {length} bytes "
                f"but only {len(data) - offset} available"
            )
        result[tag] = bytes(data[offset:offset+length])
        offset += length

    return result


def build_typed_file(fields: dict[int, bytes], header: bytes = b'\x00' * FILE_HEADER_S) -> bytes:
    """Inverse of parse_typed_file."""
    out = bytearray(header)
    for tag, value in fields.items():
        out += tag.to_bytes(TLV_TAG_S, 'little')
        out += len(value).to_bytes(TLV_LENGTH_S, 'little')
        out += value
    return bytes(out)


def document_from_context(ctx):
    """
    Return the document selected on the command line.

    Args:
        ctx: Click context holding 'document' in ctx.obj

    Raises:
        click.ClickException: If no document was selected
    """
    import click

    document = (ctx.obj or {}).get('document')
    if document is None:
        raise click.ClickException(
            'No document selected. Use --dump DIR or set CELIK_DUMP.')
    return document
