# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

from __future__ import annotations

import re

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ

# CFB moved to the decrepit namespace in cryptography 47
try:
    from cryptography.hazmat.decrepit.ciphers.modes import CFB
except ImportError:
    from cryptography.hazmat.primitives.ciphers.modes import CFB

from celik.auxiliaries import (
    CelikError,
    require_length,
    wipe,
    xor_bytes,
)
from celik.constants import (
    ENCRYPTED_PIN_AND_SECRET_MIN_S,
    ENCRYPTED_PIN_O,
    ENCRYPTED_PIN_S,
    ENCRYPTED_SECRET_KEY_O,
    ENCRYPTED_SECRET_KEY_S,
    FILE_HEADER_S,
    MASK_SEED_PREFIX,
    MASK_SEED_SEPARATOR,
    PRIVATE_KEY_IV_S,
    PRIVATE_KEY_MIN_PARTS,
    SECRET_KEY_S,
    XOR_MASK_MIN_S,
    XOR_MASK_O,
    XOR_MASK_PERIOD,
)

PEM_BLOCK_RE = re.compile(
    r'-----BEGIN ([A-Z0-9 ]+)-----.*?-----END \1-----', re.DOTALL)


class DecryptionError(CelikError):
    """Raised when the private key container cannot be decrypted."""
    pass


class KeyReconstructionError(CelikError, ArithmeticError):
    """Raised when the recovered primes do not form a valid RSA key."""
    pass


class KeyNotFoundError(CelikError, LookupError):
    """Raised when the certificate file holds no RSA public key."""
    pass


def sha1(data: bytes | bytearray) -> bytes:
    digest = hashes.Hash(hashes.SHA1(), backend=default_backend())
    digest.update(data)
    return digest.finalize()


# === CRYPTO ===================================================================

class Crypto:

    # --- CRYPTO MASK_SEED_DIGEST ----------------------------------------------

    @classmethod
    def mask_seed_digest(
            cls,
            password: str | bytes | bytearray,
            registration_id: str,
        ) -> bytearray:
        '''
        SHA-1 of 'ID' + registration_id + 0x01 + password, UTF-8 encoded.

        A str password is encoded into a buffer that is wiped here. A bytes
        or bytearray password belongs to the caller and is left untouched.
        '''
        encoded = None
        if isinstance(password, str):
            encoded = password = bytearray(password, 'utf-8')
        seed = bytearray(
            f'{MASK_SEED_PREFIX}{registration_id}{MASK_SEED_SEPARATOR}'
            .encode('utf-8'))
        try:
            seed += password
            return bytearray(sha1(seed))
        finally:
            wipe(seed)
            if encoded is not None:
                wipe(encoded)


    # --- CRYPTO DESCRAMBLE ----------------------------------------------------

    @classmethod
    def descramble(
            cls,
            password: str | bytes | bytearray,
            registration_id: str,
            encrypted_pin_and_secret: bytes,
            xor_mask: bytes,
        ) -> tuple[bytearray, bytearray]:
        '''
        Recover the PIN and the secret key stored XOR-masked on the document.

        Parameters:
        - password: User password
        - registration_id: Document registration number
        - encrypted_pin_and_secret: Raw content of the PIN and secret file
        - xor_mask: Raw content of the XOR mask file

        Returns:
        - (pin, secret_key): 8 and 32 bytes, as wipeable bytearrays

        Raises:
        - BoundsError: If either file is too short. Checked before hashing.
        '''
        require_length('Encrypted PIN and secret', encrypted_pin_and_secret,
                       ENCRYPTED_PIN_AND_SECRET_MIN_S)
        require_length('XOR mask', xor_mask, XOR_MASK_MIN_S)

        digest = cls.mask_seed_digest(password, registration_id)
        try:
            # --- PIN

            start = ENCRYPTED_PIN_O
            end = start + ENCRYPTED_PIN_S
            encrypted_pin = encrypted_pin_and_secret[start:end]
            mask = xor_mask[XOR_MASK_O:XOR_MASK_O + ENCRYPTED_PIN_S]
            pin = xor_bytes(mask, encrypted_pin, digest[:ENCRYPTED_PIN_S])

            # --- SECRET KEY
            # Mask and digest repeat every 16 bytes over the 32-byte key

            start = ENCRYPTED_SECRET_KEY_O
            end = start + ENCRYPTED_SECRET_KEY_S
            encrypted_secret_key = encrypted_pin_and_secret[start:end]
            repeat = ENCRYPTED_SECRET_KEY_S // XOR_MASK_PERIOD
            mask = xor_mask[XOR_MASK_O:XOR_MASK_O + XOR_MASK_PERIOD] * repeat
            key_stream = digest[:XOR_MASK_PERIOD] * repeat
            try:
                secret_key = xor_bytes(mask, encrypted_secret_key, key_stream)
            finally:
                wipe(key_stream)
        finally:
            wipe(digest)

        return pin, secret_key


    # --- CRYPTO DECRYPT_PRIVATE_KEY_BLOB --------------------------------------

    @classmethod
    def decrypt_private_key_blob(
            cls,
            secret_key: bytes | bytearray,
            encrypted_private_key: bytes,
        ) -> bytearray:
        '''
        Decrypt the private key container with AES-256-CFB.

        The IV is the first 16 bytes of SHA-1(secret_key). The 4-byte header
        of the decrypted content is dropped.

        A wrong secret key does not fail here, it yields garbage.
        '''
        require_length('Encrypted private key', encrypted_private_key,
                       FILE_HEADER_S)
        if len(secret_key) != SECRET_KEY_S:
            raise DecryptionError(
                f"Secret key is {len(secret_key)} bytes, AES-256 needs {SECRET_KEY_S}")

        iv = sha1(secret_key)[:PRIVATE_KEY_IV_S]
        try:
            cipher = Cipher(
                algorithms.AES(bytes(secret_key)), CFB(iv),
                backend=default_backend(),
            )
            decryptor = cipher.decryptor()
            decrypted = bytearray(
                decryptor.update(encrypted_private_key) + decryptor.finalize())
        except ValueError as e:
            raise DecryptionError(
                f"Cannot decrypt private key: {e}") from e

        content = decrypted[FILE_HEADER_S:]
        wipe(decrypted)
        return content


    # --- CRYPTO PARSE_PRIVATE_KEY_PARTS ---------------------------------------

    @classmethod
    def parse_private_key_parts(
            cls,
            private_key_asn1: bytes | bytearray,
        ) -> list[int]:
        '''
        Parse the decrypted container as consecutive ASN.1 INTEGERs.

        Expected order: prime1, prime2, prime_exponent1, prime_exponent2,
        crt_coefficient. The whole stream is parsed.
        '''
        parts: list[int] = []
        substrate = bytes(private_key_asn1)
        while substrate:
            try:
                value, substrate = decoder.decode(
                    substrate, asn1Spec=univ.Integer())
            except PyAsn1Error as e:
                raise DecryptionError(
                    f"Decrypted private key is not a sequence of ASN.1 "
                    f"integers (element {len(parts)}): {e}"
                ) from e
            parts.append(int(value))

        if len(parts) < PRIVATE_KEY_MIN_PARTS:
            raise DecryptionError(
                f"Decrypted private key holds {len(parts)} integers, "
                f"expected at least {PRIVATE_KEY_MIN_PARTS}")
        return parts


    # --- CRYPTO RECONSTRUCT_PRIVATE_KEY ---------------------------------------

    @classmethod
    def reconstruct_private_key(
            cls,
            private_key_asn1: bytes | bytearray,
            modulus: int,
            public_exponent: int,
        ) -> rsa.RSAPrivateKey:
        '''
        Rebuild an RSA private key from the two primes and the public key.

        The private exponent is d = e^-1 mod (p-1)(q-1). The CRT values
        stored after the primes are recomputed rather than trusted.

        Raises:
        - DecryptionError: If the container does not parse
        - KeyReconstructionError: If e has no inverse mod phi, or if the
          primes do not match the modulus
        '''
        parts = cls.parse_private_key_parts(private_key_asn1)
        prime1, prime2 = parts[0], parts[1]

        if prime1 < 2 or prime2 < 2:
            raise KeyReconstructionError(
                "Recovered primes are out of range")

        phi = (prime1 - 1) * (prime2 - 1)
        try:
            private_exponent = pow(public_exponent, -1, phi)
        except ValueError as e:
            raise KeyReconstructionError(
                "Public exponent has no inverse modulo phi "
                "(corrupted key material or wrong password)"
            ) from e

        if prime1 * prime2 != modulus:
            raise KeyReconstructionError(
                "Recovered primes do not match the certificate modulus "
                "(corrupted key material or wrong password)")

        try:
            return rsa.RSAPrivateNumbers(
                p=prime1,
                q=prime2,
                d=private_exponent,
                dmp1=rsa.rsa_crt_dmp1(private_exponent, prime1),
                dmq1=rsa.rsa_crt_dmq1(private_exponent, prime2),
                iqmp=rsa.rsa_crt_iqmp(prime1, prime2),
                public_numbers=rsa.RSAPublicNumbers(public_exponent, modulus),
            ).private_key(default_backend())
        except ValueError as e:
            raise KeyReconstructionError(
                f"Reconstructed private key is invalid: {e}") from e


    # --- CRYPTO LOAD_PEM_OBJECTS ----------------------------------------------

    @classmethod
    def load_pem_objects(
            cls,
            certificate_file: bytes,
        ) -> list[object]:
        '''
        Parse every certificate and public key PEM block of the certificate
        file, after its 4-byte header. Other PEM blocks are ignored.
        '''
        require_length('Certificate file', certificate_file, FILE_HEADER_S)
        try:
            text = certificate_file[FILE_HEADER_S:].decode('utf-8')
        except UnicodeDecodeError as e:
            raise KeyNotFoundError(
                f"Certificate file is not PEM encoded: {e}") from e

        objects: list[object] = []
        for match in PEM_BLOCK_RE.finditer(text):
            label = match.group(1)
            block = match.group(0).encode('ascii')
            try:
                if label in ('CERTIFICATE', 'X509 CERTIFICATE'):
                    objects.append(
                        x509.load_pem_x509_certificate(block, default_backend()))
                elif label in ('PUBLIC KEY', 'RSA PUBLIC KEY'):
                    objects.append(
                        serialization.load_pem_public_key(block, default_backend()))
            except ValueError as e:
                raise KeyNotFoundError(
                    f"Malformed {label} in certificate file: {e}") from e
        return objects


    # --- CRYPTO GET_PUBLIC_KEY ------------------------------------------------

    @classmethod
    def get_public_key(
            cls,
            certificate_file: bytes,
        ) -> rsa.RSAPublicKey:
        '''
        Return the first RSA public key found in the certificate file.

        Raises:
        - KeyNotFoundError: If no PEM object carries an RSA public key
        '''
        for obj in cls.load_pem_objects(certificate_file):
            if isinstance(obj, x509.Certificate):
                obj = obj.public_key()
            if isinstance(obj, rsa.RSAPublicKey):
                return obj
        raise KeyNotFoundError("No RSA public key in certificate file")


    # --- CRYPTO SIGN ----------------------------------------------------------

    @classmethod
    def sign(
            cls,
            private_key: rsa.RSAPrivateKey,
            data: bytes,
        ) -> bytes:
        '''RSA PKCS#1 v1.5 signature over SHA-256 of data.'''
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())


    # --- CRYPTO VERIFY --------------------------------------------------------

    @classmethod
    def verify(
            cls,
            public_key: rsa.RSAPublicKey,
            signature: bytes,
            data: bytes,
        ) -> bool:
        try:
            public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True
