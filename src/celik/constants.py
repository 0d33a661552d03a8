# SPDX-FileCopyrightText: 2025 Frederic Ruget <fred@atlant.is> (GitHub: @douzebis)
#
# SPDX-License-Identifier: MIT

from enum import Enum, IntEnum


# === DOCUMENT FILES ===========================================================

class CelikFile(Enum):
    DOCUMENT = 'document'
    ENCRYPTED_PIN_AND_SECRET = 'encrypted_pin_and_secret'
    ENCRYPTION_XOR = 'encryption_xor'
    AUTH_CERTIFICATE = 'auth_certificate'
    ENCRYPTED_PRIVATE_KEY = 'encrypted_private_key'


class CelikTag(IntEnum):
    DOC_REG_NO = 1546
    DOCUMENT_TYPE = 1547
    ISSUING_DATE = 1549
    EXPIRY_DATE = 1550
    ISSUING_AUTHORITY = 1551


# Every document file starts with a header that is skipped
FILE_HEADER_S = 4

# Typed file records: tag (u16 LE) | length (u16 LE) | value
TLV_TAG_S = 2
TLV_LENGTH_S = 2


# === ENCRYPTED PIN AND SECRET =================================================

ENCRYPTED_PIN_O = FILE_HEADER_S
ENCRYPTED_PIN_S = 8
ENCRYPTED_SECRET_KEY_O = 17
ENCRYPTED_SECRET_KEY_S = 32
ENCRYPTED_PIN_AND_SECRET_MIN_S = ENCRYPTED_SECRET_KEY_O + ENCRYPTED_SECRET_KEY_S

# --------------------------------
#
# 0x00 -- header
# ...
# 0x03 -- header
# 0x04 -- encrypted_pin
# ...
# 0x0b -- encrypted_pin
# 0x0c -- (unused)
# ...
# 0x10 -- (unused)
# 0x11 -- encrypted_secret_key
# ...
# 0x30 -- encrypted_secret_key
#
# --------------------------------


# === XOR MASK =================================================================

XOR_MASK_O = FILE_HEADER_S
XOR_MASK_PERIOD = 16
XOR_MASK_MIN_S = XOR_MASK_O + XOR_MASK_PERIOD

# Mask seed is 'ID' + registration number + MASK_SEED_SEPARATOR + password
MASK_SEED_PREFIX = 'ID'
MASK_SEED_SEPARATOR = '\x01'


# === PRIVATE KEY ==============================================================

SECRET_KEY_S = ENCRYPTED_SECRET_KEY_S
PIN_S = ENCRYPTED_PIN_S
PRIVATE_KEY_IV_S = 16
# prime1, prime2, prime_exponent1, prime_exponent2, crt_coefficient
PRIVATE_KEY_MIN_PARTS = 2
