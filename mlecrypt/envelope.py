################################################################################
# If not stated otherwise in this file or this component's Licenses.txt file the
# following copyright and licenses apply:
#
# Copyright 2021 Liberty Global B.V.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
################################################################################

import binascii
import json
import logging
import os
import re
import time
from typing import NamedTuple

import jose.constants
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose.constants import ALGORITHMS
from jose.utils import base64url_decode, base64url_encode

from .exceptions import (
    DecryptFailureError,
    EncryptFailureError,
    TokenMalformedError,
)
from .jose import JOSE_SECURE_OPS, rsa_oaep_256_padding


logger = logging.getLogger(__name__)

KEY_MANAGEMENT_ALGORITHM = ALGORITHMS.RSA_OAEP_256
CONTENT_ENCRYPTION_ALGORITHM = ALGORITHMS.A128GCM

# python-jose is used in tests to check tokens are interoperable, make sure it knows about the algorithms
EXPECTED_ALGORITHMS = {KEY_MANAGEMENT_ALGORITHM, CONTENT_ENCRYPTION_ALGORITHM}
assert EXPECTED_ALGORITHMS.issubset(jose.constants.ALGORITHMS.SUPPORTED)

CONTENT_ENCRYPTION_KEY_BITS = 128
INITIALIZATION_VECTOR_LENGTH = 12
AUTHENTICATION_TAG_LENGTH = 16
TOKEN_SEGMENT_COUNT = 5

_BASE64URL_SEGMENT_RE = re.compile(rb"^[A-Za-z0-9_-]*$")


class TokenSegments(NamedTuple):
    header: bytes  # still base64url encoded, it is the AAD
    encrypted_key: bytes
    iv: bytes
    ciphertext: bytes
    tag: bytes


def _now_ms():
    return int(time.time() * 1000)


def build_header(key_id: str, issued_at_ms: int) -> dict:
    return {
        "alg": KEY_MANAGEMENT_ALGORITHM,
        "enc": CONTENT_ENCRYPTION_ALGORITHM,
        "kid": key_id,
        "iat": issued_at_ms,
    }


def encode_header(header: dict) -> bytes:
    return base64url_encode(
        json.dumps(header, separators=(",", ":")).encode("utf-8")
    )


def encrypt(
    plaintext: bytes, recipient_public_key: rsa.RSAPublicKey, key_id: str
) -> str:
    """
    Encrypt plaintext into a JWE Compact Serialization token (RSA-OAEP-256 + A128GCM) for the holder of the private
    key matching recipient_public_key.

    A new content encryption key and initialization vector are drawn from the OS random source on every call.
    """
    if not isinstance(recipient_public_key, rsa.RSAPublicKey):
        raise EncryptFailureError(
            f"Unable to encrypt: expected an RSA public key, got {type(recipient_public_key).__name__}"
        )

    try:
        cek = AESGCM.generate_key(bit_length=CONTENT_ENCRYPTION_KEY_BITS)
        iv = os.urandom(INITIALIZATION_VECTOR_LENGTH)
    except (OSError, NotImplementedError) as error:
        raise EncryptFailureError(
            f"Unable to encrypt: random source failure: {error}"
        ) from None

    encoded_header = encode_header(build_header(key_id, _now_ms()))

    try:
        encrypted_key = recipient_public_key.encrypt(cek, rsa_oaep_256_padding())
    except ValueError as error:
        raise EncryptFailureError(
            f"Unable to encrypt: {KEY_MANAGEMENT_ALGORITHM} key wrapping failed for {recipient_public_key.key_size}-bit key: {error}"
        ) from None

    sealed = AESGCM(cek).encrypt(iv, plaintext, encoded_header)
    ciphertext = sealed[:-AUTHENTICATION_TAG_LENGTH]
    tag = sealed[-AUTHENTICATION_TAG_LENGTH:]

    token = b".".join(
        [
            encoded_header,
            base64url_encode(encrypted_key),
            base64url_encode(iv),
            base64url_encode(ciphertext),
            base64url_encode(tag),
        ]
    )
    logger.debug(f"Created JWE token for key '{key_id}'")
    return token.decode("ascii")


def _decode_segment(segment: bytes) -> bytes:
    # base64url_decode silently drops characters outside of the alphabet, reject them explicitly
    if not _BASE64URL_SEGMENT_RE.match(segment):
        raise TokenMalformedError("JWE token segment is not valid base64url")
    try:
        return base64url_decode(segment)
    except (binascii.Error, ValueError):
        raise TokenMalformedError("JWE token segment is not valid base64url") from None


def split_token(token) -> TokenSegments:
    if isinstance(token, str):
        try:
            token = token.encode("ascii")
        except UnicodeEncodeError:
            raise TokenMalformedError("JWE token contains non-ASCII characters") from None

    segments = token.split(b".")
    if len(segments) != TOKEN_SEGMENT_COUNT:
        raise TokenMalformedError(
            f"JWE token must have {TOKEN_SEGMENT_COUNT} segments, found {len(segments)}"
        )

    header_segment = segments[0]
    _decode_segment(header_segment)
    return TokenSegments(
        header_segment, *(_decode_segment(segment) for segment in segments[1:])
    )


def _parse_header(header_segment: bytes):
    try:
        header = json.loads(base64url_decode(header_segment).decode("utf-8"))
    except (ValueError, RecursionError):
        return None
    return header if isinstance(header, dict) else None


def read_header(token) -> dict:
    segments = split_token(token)
    header = _parse_header(segments.header)
    if header is None:
        raise TokenMalformedError("JWE header is not a JSON object")
    return header


def decrypt(token, recipient_private_key: rsa.RSAPrivateKey) -> bytes:
    """
    Decrypt a JWE Compact Serialization token produced by encrypt() (or any RSA-OAEP-256 + A128GCM JWE).

    Raises TokenMalformedError when the token does not have the compact serialization shape and DecryptFailureError
    for everything else. DecryptFailureError never tells why decryption failed.
    """
    segments = split_token(token)

    header = _parse_header(segments.header)
    if (
        header is None
        or header.get("alg") != KEY_MANAGEMENT_ALGORITHM
        or header.get("enc") != CONTENT_ENCRYPTION_ALGORITHM
    ):
        raise DecryptFailureError()

    if (
        len(segments.iv) != INITIALIZATION_VECTOR_LENGTH
        or len(segments.tag) != AUTHENTICATION_TAG_LENGTH
    ):
        raise DecryptFailureError()

    try:
        cek = JOSE_SECURE_OPS.jwe_unwrap_key(
            segments.encrypted_key, recipient_private_key, header["alg"]
        )
    except (ValueError, TypeError, AttributeError):
        raise DecryptFailureError() from None

    if len(cek) * 8 != CONTENT_ENCRYPTION_KEY_BITS:
        raise DecryptFailureError()

    try:
        plaintext = AESGCM(cek).decrypt(
            segments.iv, segments.ciphertext + segments.tag, segments.header
        )
    except InvalidTag:
        raise DecryptFailureError() from None

    logger.debug(f"Decrypted JWE token for key '{header.get('kid')}'")
    return plaintext
