#!/usr/bin/env python3
# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

"""
Regression tests for the sign/verify orchestrator using EmulatedDocument.

These tests verify the whole key recovery pipeline against synthetic
documents without requiring a physical identity document.
"""

from __future__ import annotations

import os

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from celik import orchestrator
from celik.auxiliaries import build_typed_file
from celik.constants import CelikFile, CelikTag
from celik.crypto import (
    Crypto,
    DecryptionError,
    KeyNotFoundError,
    KeyReconstructionError,
)
from celik.document import (
    DocumentError,
    EmulatedDocument,
    FileNotFoundOnDocument,
    PinVerificationFailed,
)
from celik.test_helpers import build_certificate_file, provision_document


@pytest.fixture(scope='module')
def provisioned():
    return provision_document(
        password='tajna lozinka', registration_id='001122334', seed=1)


# === SIGN / VERIFY ============================================================

def test_sign_verify_round_trip(provisioned) -> None:
    document = provisioned.emulated()

    for data in (b'x', b'Hello, Celik!', os.urandom(5000)):
        signature = orchestrator.sign_data(document, data, provisioned.password)
        assert orchestrator.verify_signature(document, signature, data)
        assert not orchestrator.verify_signature(document, signature, data + b'.')


def test_signature_matches_provisioned_key(provisioned) -> None:
    data = b'deterministic PKCS#1 v1.5'
    signature = orchestrator.sign_data(provisioned.emulated(), data, provisioned.password)

    assert signature == Crypto.sign(provisioned.private_key, data)


def test_sign_reads_every_document_file_and_verifies_pin_once(provisioned) -> None:
    document = provisioned.emulated()

    orchestrator.sign_data(document, b'data', provisioned.password)

    assert set(document.read_log) == set(CelikFile)
    assert document.verify_count == 1


def test_verify_touches_only_the_certificate(provisioned) -> None:
    document = provisioned.emulated()
    signature = Crypto.sign(provisioned.private_key, b'data')

    assert orchestrator.verify_signature(document, signature, b'data')
    assert document.read_log == [CelikFile.AUTH_CERTIFICATE]
    assert document.verify_count == 0


# === FAILURES =================================================================

def test_wrong_password_never_verifies(provisioned) -> None:
    for password in ('tajna lozinka ', 'TAJNA LOZINKA', '', 'x' * 40):
        document = provisioned.emulated()
        document.pin = None  # accept any PIN
        try:
            signature = orchestrator.sign_data(document, b'data', password)
        except (DecryptionError, KeyReconstructionError):
            continue
        assert not orchestrator.verify_signature(document, signature, b'data')


def test_wrong_password_fails_pin_verification(provisioned) -> None:
    document = provisioned.emulated()

    with pytest.raises(PinVerificationFailed):
        orchestrator.sign_data(document, b'data', 'not the password')

    assert document.verify_count == 1
    assert CelikFile.ENCRYPTED_PRIVATE_KEY not in document.read_log


def test_rejected_pin_is_surfaced(provisioned) -> None:
    document = provisioned.emulated(reject_pin=True)

    with pytest.raises(PinVerificationFailed):
        orchestrator.sign_data(document, b'data', provisioned.password)


def test_missing_registration_number(provisioned) -> None:
    document = provisioned.emulated()
    document.write_binary_file(
        CelikFile.DOCUMENT, build_typed_file({CelikTag.DOCUMENT_TYPE: b'ID'}))

    with pytest.raises(DocumentError):
        orchestrator.sign_data(document, b'data', provisioned.password)


def test_missing_document_file(provisioned) -> None:
    files = dict(provisioned.files)
    del files[CelikFile.ENCRYPTED_PRIVATE_KEY]
    document = EmulatedDocument(files=files, pin=provisioned.pin)

    with pytest.raises(FileNotFoundOnDocument):
        orchestrator.sign_data(document, b'data', provisioned.password)


def test_certificate_without_rsa_key(provisioned) -> None:
    document = provisioned.emulated()
    document.write_binary_file(
        CelikFile.AUTH_CERTIFICATE,
        build_certificate_file(ec.generate_private_key(ec.SECP256R1())))

    with pytest.raises(KeyNotFoundError):
        orchestrator.verify_signature(document, bytes(128), b'data')
    with pytest.raises(KeyNotFoundError):
        orchestrator.sign_data(document, b'data', provisioned.password)


def test_certificate_for_another_key(provisioned) -> None:
    other = provision_document(seed=2)
    document = provisioned.emulated()
    document.write_binary_file(
        CelikFile.AUTH_CERTIFICATE, other.files[CelikFile.AUTH_CERTIFICATE])

    with pytest.raises(KeyReconstructionError):
        orchestrator.sign_data(document, b'data', provisioned.password)


# === SENSITIVE MATERIAL =======================================================

def _capture_secrets(monkeypatch) -> list[bytearray]:
    captured: list[bytearray] = []
    descramble = Crypto.descramble

    def spy(*args, **kwargs):
        result = descramble(*args, **kwargs)
        captured.extend(result)
        return result

    monkeypatch.setattr(Crypto, 'descramble', spy)
    return captured


def test_secrets_are_wiped_after_signing(provisioned, monkeypatch) -> None:
    captured = _capture_secrets(monkeypatch)

    orchestrator.sign_data(provisioned.emulated(), b'data', provisioned.password)

    assert len(captured) == 2
    assert all(not any(buffer) for buffer in captured)


def test_secrets_are_wiped_after_failure(provisioned, monkeypatch) -> None:
    captured = _capture_secrets(monkeypatch)

    with pytest.raises(PinVerificationFailed):
        orchestrator.sign_data(
            provisioned.emulated(reject_pin=True), b'data', provisioned.password)

    assert len(captured) == 2
    assert all(not any(buffer) for buffer in captured)


def test_password_buffer_is_wiped_after_signing(provisioned) -> None:
    document = provisioned.emulated()
    password = bytearray(provisioned.password, 'utf-8')

    signature = orchestrator.sign_data(document, b'data', password)

    assert password == bytearray(len(provisioned.password))
    assert orchestrator.verify_signature(document, signature, b'data')


@pytest.mark.parametrize('reject_pin, missing, error', [
    (True, None, PinVerificationFailed),
    (False, CelikFile.ENCRYPTION_XOR, FileNotFoundOnDocument),
])
def test_password_buffer_is_wiped_after_failure(
        provisioned, reject_pin, missing, error) -> None:
    files = dict(provisioned.files)
    if missing is not None:
        del files[missing]
    document = EmulatedDocument(files=files, pin=provisioned.pin, reject_pin=reject_pin)
    password = bytearray(provisioned.password, 'utf-8')

    with pytest.raises(error):
        orchestrator.sign_data(document, b'data', password)

    assert not any(password)


def test_debug_output_hides_secrets(provisioned, capsys) -> None:
    orchestrator.sign_data(
        provisioned.emulated(), b'data', provisioned.password, debug=True)

    err = capsys.readouterr().err
    assert '[DEBUG] sign_data: pin-verified' in err
    assert '[DEBUG] sign_data: signed' in err
    assert provisioned.password not in err
    assert provisioned.secret_key.hex() not in err


# === INFO =====================================================================

def test_read_document_info(provisioned) -> None:
    info = orchestrator.read_document_info(provisioned.emulated())

    assert info['doc_reg_no'] == '001122334'
    assert info['document_type'] == 'ID'
    assert info['certificate']['key_size'] == 1024
    assert info['certificate']['public_exponent'] == 65537
    assert 'CN=Synthetic Identity Document' in info['certificate']['subject']
