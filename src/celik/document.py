# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

from __future__ import annotations

import hmac
import os
import sys
from abc import ABC, abstractmethod

import yaml

from celik.auxiliaries import CelikError, parse_typed_file
from celik.constants import CelikFile

DUMP_CONFIG_NAME = 'dump.yaml'


class DocumentError(CelikError):
    """Raised when the document cannot be read."""
    pass


class FileNotFoundOnDocument(DocumentError):
    pass


class PinVerificationFailed(CelikError):
    """Raised when the document rejects the recovered PIN."""
    pass


class DocumentInterface(ABC):
    """
    Abstract interface for identity document access.

    Concrete implementations:
    - DumpDocument: Files dumped from a document into a directory
    - EmulatedDocument: In-memory emulation for testing
    """

    @abstractmethod
    def read_binary_file(self, file: CelikFile) -> bytes:
        """
        Read the raw content of a document file.

        Parameters:
        - file: The document file to read.

        Returns:
        - The raw file bytes, header included.

        Raises:
        - DocumentError: If the read operation fails.
        """
        pass

    @abstractmethod
    def verify_pin(self, pin: bytes) -> bool:
        """
        Verify the PIN against the document.

        Parameters:
        - pin: The 8-byte PIN as stored on the document.

        Returns:
        - True if the document accepts the PIN, False otherwise.
        """
        pass

    def read_typed_file(self, file: CelikFile) -> dict[int, bytes]:
        """
        Read a typed document file as a mapping of tag to value.

        Raises:
        - DocumentError: If the read operation fails.
        - BoundsError: If the file content is truncated.
        """
        return parse_typed_file(self.read_binary_file(file))


class DumpDocument(DocumentInterface):
    """
    Document files previously dumped into a directory.

    Each file is stored as '<file name>.bin' unless dump.yaml maps it to
    another name. dump.yaml may also carry 'pin_hex', the expected PIN;
    without it the dump cannot check a PIN and accepts any.
    """

    def __init__(self, path: str):
        if not os.path.isdir(path):
            raise DocumentError(f"Not a dump directory: {path}")
        self.path = path
        self.file_names = {file: f'{file.value}.bin' for file in CelikFile}
        self.expected_pin: bytes | None = None

        config_path = os.path.join(path, DUMP_CONFIG_NAME)
        if os.path.exists(config_path):
            self._load_config(config_path)

    def _load_config(self, config_path: str) -> None:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise DocumentError(f"Invalid {DUMP_CONFIG_NAME}: {e}") from e
        if not isinstance(config, dict):
            raise DocumentError(f"Invalid {DUMP_CONFIG_NAME}: expected a mapping")

        for name, file_name in (config.get('files') or {}).items():
            try:
                file = CelikFile(name)
            except ValueError as e:
                raise DocumentError(
                    f"Unknown document file in {DUMP_CONFIG_NAME}: {name}") from e
            self.file_names[file] = str(file_name)

        pin_hex = config.get('pin_hex')
        if pin_hex is not None:
            try:
                self.expected_pin = bytes.fromhex(str(pin_hex))
            except ValueError as e:
                raise DocumentError(
                    f"Invalid pin_hex in {DUMP_CONFIG_NAME}: {pin_hex!r}") from e

    def read_binary_file(self, file: CelikFile) -> bytes:
        file_path = os.path.join(self.path, self.file_names[file])
        try:
            with open(file_path, 'rb') as f:
                return f.read()
        except FileNotFoundError as e:
            raise FileNotFoundOnDocument(
                f"Document file {file.value} not found: {file_path}") from e
        except OSError as e:
            raise DocumentError(f"Failed to read {file_path}: {e}") from e

    def verify_pin(self, pin: bytes) -> bool:
        if self.expected_pin is None:
            print('Offline dump has no PIN to verify against, skipping check.',
                  file=sys.stderr)
            return True
        return hmac.compare_digest(bytes(pin), self.expected_pin)


class EmulatedDocument(DocumentInterface):
    """
    In-memory emulation of an identity document for testing.

    Holds the raw bytes of every file and the PIN the document accepts.
    """

    def __init__(
            self,
            files: dict[CelikFile, bytes] | None = None,
            pin: bytes | None = None,
            reject_pin: bool = False,
        ):
        """
        Args:
            files: Raw content per document file
            pin: PIN accepted by verify_pin (None accepts any PIN)
            reject_pin: Reject every PIN regardless of value
        """
        self.files: dict[CelikFile, bytes] = dict(files or {})
        self.pin = pin
        self.reject_pin = reject_pin
        # Instrumentation for tests
        self.read_log: list[CelikFile] = []
        self.verify_count = 0

    def write_binary_file(self, file: CelikFile, data: bytes) -> None:
        self.files[file] = data

    def read_binary_file(self, file: CelikFile) -> bytes:
        self.read_log.append(file)
        if file not in self.files:
            raise FileNotFoundOnDocument(
                f"Document file {file.value} not found on emulated document")
        return self.files[file]

    def verify_pin(self, pin: bytes) -> bool:
        self.verify_count += 1
        if self.reject_pin:
            return False
        if self.pin is None:
            return True
        return hmac.compare_digest(bytes(pin), self.pin)
