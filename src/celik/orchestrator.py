# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

"""
Orchestrator module for identity document signing.

This module chains the key recovery pipeline behind the CLI commands. It
provides a clean interface for both CLI and testing: every function takes
the document access object it works on.
"""

from __future__ import annotations

import sys
from enum import Enum

from cryptography import x509

from celik.auxiliaries import wiped
from celik.constants import CelikFile, CelikTag
from celik.crypto import Crypto
from celik.document import DocumentError, DocumentInterface, PinVerificationFailed


class SignStage(Enum):
    """Stages of a sign operation, reported in debug output."""
    START = "start"
    PASSWORD_DERIVATION_DONE = "password-derivation-done"
    PIN_VERIFIED = "pin-verified"
    KEY_DECRYPTED = "key-decrypted"
    KEY_RECONSTRUCTED = "key-reconstructed"
    SIGNED = "signed"


def _stage(debug: bool, stage: SignStage, detail: str = '') -> None:
    if debug:
        suffix = f': {detail}' if detail else ''
        print(f'[DEBUG] sign_data: {stage.value}{suffix}', file=sys.stderr)


def get_registration_id(document: DocumentInterface) -> str:
    """
    Read the registration number from the document file.

    Raises:
        DocumentError: If the document file has no registration number
    """
    fields = document.read_typed_file(CelikFile.DOCUMENT)
    try:
        value = fields[CelikTag.DOC_REG_NO]
    except KeyError as e:
        raise DocumentError(
            "Document file has no registration number") from e
    try:
        return value.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DocumentError(
            f"Registration number is not UTF-8: {value.hex()}") from e


def get_public_key(document: DocumentInterface):
    """Return the RSA public key of the authentication certificate."""
    return Crypto.get_public_key(
        document.read_binary_file(CelikFile.AUTH_CERTIFICATE))


def verify_signature(
    document: DocumentInterface,
    signature: bytes,
    data: bytes,
) -> bool:
    """
    Check a SHA-256 / PKCS#1 v1.5 signature against the document's
    authentication certificate.

    No PIN or secret material is involved.

    Raises:
        KeyNotFoundError: If the certificate file has no RSA public key
    """
    public_key = get_public_key(document)
    return Crypto.verify(public_key, signature, data)


def sign_data(
    document: DocumentInterface,
    data: bytes,
    password: str | bytes | bytearray,
    debug: bool = False,
) -> bytes:
    """
    Sign data with the private key held on the document.

    The PIN, secret key and private key are recovered from the password on
    every call and wiped before returning. A bytearray password is zeroed
    as soon as the PIN and secret key are recovered, or on failure.

    Args:
        document: Document access (dump or emulated)
        data: Data to sign
        password: User password (pass a bytearray to have it wiped)
        debug: Print pipeline stages to stderr (never secrets)

    Returns:
        Raw RSA signature bytes

    Raises:
        BoundsError: If a document file is too short
        DecryptionError: If the private key cannot be decrypted or parsed
        KeyReconstructionError: If the recovered key material is inconsistent
        PinVerificationFailed: If the document rejects the recovered PIN
        KeyNotFoundError: If the certificate file has no RSA public key
        DocumentError: If a document file cannot be read
    """
    _stage(debug, SignStage.START, f'{len(data)} bytes to sign')

    password_buffer = password if isinstance(password, bytearray) else bytearray()
    with wiped(password_buffer):
        registration_id = get_registration_id(document)
        encrypted_pin_and_secret = document.read_binary_file(
            CelikFile.ENCRYPTED_PIN_AND_SECRET)
        xor_mask = document.read_binary_file(CelikFile.ENCRYPTION_XOR)

        pin, secret_key = Crypto.descramble(
            password, registration_id, encrypted_pin_and_secret, xor_mask)

    with wiped(pin, secret_key):
        _stage(debug, SignStage.PASSWORD_DERIVATION_DONE,
               f'registration number {registration_id}')

        if not document.verify_pin(bytes(pin)):
            raise PinVerificationFailed(
                "Document rejected the PIN (wrong password?)")
        _stage(debug, SignStage.PIN_VERIFIED)

        encrypted_private_key = document.read_binary_file(
            CelikFile.ENCRYPTED_PRIVATE_KEY)
        private_key_asn1 = Crypto.decrypt_private_key_blob(
            secret_key, encrypted_private_key)

    with wiped(private_key_asn1):
        _stage(debug, SignStage.KEY_DECRYPTED,
               f'{len(private_key_asn1)} bytes of key material')

        public_numbers = get_public_key(document).public_numbers()
        private_key = Crypto.reconstruct_private_key(
            private_key_asn1, public_numbers.n, public_numbers.e)
        _stage(debug, SignStage.KEY_RECONSTRUCTED,
               f'{private_key.key_size}-bit key')

    signature = Crypto.sign(private_key, data)
    _stage(debug, SignStage.SIGNED, f'{len(signature)} bytes')
    return signature


def read_document_info(document: DocumentInterface) -> dict:
    """
    Describe the document without touching secret material.

    Returns:
        Dictionary with the known document fields and the certificate's
        public key parameters
    """
    fields = document.read_typed_file(CelikFile.DOCUMENT)
    info: dict = {}
    for tag in CelikTag:
        if tag in fields:
            info[tag.name.lower()] = fields[tag].decode('utf-8', errors='replace')

    certificate_file = document.read_binary_file(CelikFile.AUTH_CERTIFICATE)
    certificate: dict = {}
    for obj in Crypto.load_pem_objects(certificate_file):
        if isinstance(obj, x509.Certificate):
            certificate['subject'] = obj.subject.rfc4514_string()
            certificate['not_valid_after'] = obj.not_valid_after_utc.isoformat()
            break

    public_numbers = Crypto.get_public_key(certificate_file).public_numbers()
    certificate['key_size'] = public_numbers.n.bit_length()
    certificate['public_exponent'] = public_numbers.e
    info['certificate'] = certificate
    return info
