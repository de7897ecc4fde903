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
import logging
import re
from base64 import b64decode as base64_decode

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_der_public_key
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, univ

from .exceptions import CertificateParseError, KeyParseError


logger = logging.getLogger(__name__)

RSA_ENCRYPTION_ASN1_OID = "1.2.840.113549.1.1.1"

PEM_CERTIFICATE_LABEL = "CERTIFICATE"
PEM_PUBLIC_KEY_LABEL = "PUBLIC KEY"
PEM_PKCS1_PRIVATE_KEY_LABEL = "RSA PRIVATE KEY"
PEM_PKCS8_PRIVATE_KEY_LABEL = "PRIVATE KEY"

# version, modulus, publicExponent, privateExponent, prime1, prime2, exponent1, exponent2, coefficient
PKCS1_ELEMENT_COUNT = 9
PKCS1_MINIMUM_ELEMENT_COUNT = 4
PKCS1_SUPPORTED_VERSIONS = (0, 1)

_PEM_BLOCK_RE = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)


# python-jose's jose.backends._asn1 structures, with the algorithm parameters left open so that keys of other
# algorithms decode far enough to report their OID
class PrivateKeyAlgorithmIdentifier(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("algorithm", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType("parameters", univ.Any()),
    )


class PKCS8PrivateKey(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("privateKeyAlgorithm", PrivateKeyAlgorithmIdentifier()),
        namedtype.NamedType("privateKey", univ.OctetString()),
    )


def _describe(source):
    return f" in '{source}'" if source is not None else ""


def parse_pem(pem_text: str):
    """
    Return (label, DER bytes) of the first PEM block in pem_text. Raise ValueError if there is no PEM block or its
    body is not valid base64.
    """
    match = _PEM_BLOCK_RE.search(pem_text)
    if match is None:
        raise ValueError("PEM delimiters not found")
    body = "".join(match.group("body").split())
    try:
        der = base64_decode(body, validate=True)
    except binascii.Error as error:
        raise ValueError(f"PEM body is not valid base64: {error}") from None
    return match.group("label"), der


def load_public_key(certificate_pem: str, source=None) -> rsa.RSAPublicKey:
    # no validity, chain or extension checks - keys are distributed out-of-band
    try:
        label, der = parse_pem(certificate_pem)
    except ValueError as error:
        raise CertificateParseError(
            f"Failed to read certificate{_describe(source)}: {error}"
        ) from None
    if label != PEM_CERTIFICATE_LABEL:
        raise CertificateParseError(
            f"Failed to read certificate{_describe(source)}: expected '{PEM_CERTIFICATE_LABEL}' PEM block, found '{label}'"
        )

    try:
        certificate = x509.load_der_x509_certificate(der)
        public_key = certificate.public_key()
    except ValueError as error:
        raise CertificateParseError(
            f"Failed to parse X.509 certificate{_describe(source)}: {error}"
        ) from None

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise CertificateParseError(
            f"Certificate{_describe(source)} does not hold an RSA public key ({type(public_key).__name__})"
        )
    logger.debug(
        f"Loaded {public_key.key_size}-bit RSA public key from certificate '{certificate.subject.rfc4514_string()}'"
    )
    return public_key


def load_public_key_pem(public_key_pem: str, source=None) -> rsa.RSAPublicKey:
    try:
        label, der = parse_pem(public_key_pem)
        if label != PEM_PUBLIC_KEY_LABEL:
            raise ValueError(
                f"expected '{PEM_PUBLIC_KEY_LABEL}' PEM block, found '{label}'"
            )
        public_key = load_der_public_key(der)
    except ValueError as error:
        raise CertificateParseError(
            f"Failed to read public key{_describe(source)}: {error}"
        ) from None

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise CertificateParseError(
            f"Public key{_describe(source)} is not an RSA key ({type(public_key).__name__})"
        )
    return public_key


def _read_pkcs1_integers(der: bytes, source):
    try:
        sequence, remainder = der_decoder.decode(der)
    except PyAsn1Error as error:
        raise KeyParseError(
            f"Malformed RSA private key ASN.1{_describe(source)}: {error}"
        ) from None

    if remainder:
        raise KeyParseError(
            f"Malformed RSA private key ASN.1{_describe(source)}: {len(remainder)} trailing bytes"
        )
    if not isinstance(sequence, (univ.Sequence, univ.SequenceOf)):
        raise KeyParseError(
            f"Malformed RSA private key ASN.1{_describe(source)}: expected a SEQUENCE"
        )

    found = len(sequence)
    if found < PKCS1_MINIMUM_ELEMENT_COUNT:
        raise KeyParseError(
            f"Truncated RSA private key{_describe(source)}: expected {PKCS1_ELEMENT_COUNT} elements, found {found}"
        )

    integers = []
    # version 1 (multi-prime) keys carry an additional otherPrimeInfos sequence which is not needed here
    for position in range(min(found, PKCS1_ELEMENT_COUNT)):
        element = sequence[position]
        if not isinstance(element, univ.Integer):
            raise KeyParseError(
                f"Malformed RSA private key{_describe(source)}: element {position} is not an INTEGER"
            )
        integers.append(int(element))
    return integers


def decode_pkcs1_private_key(der: bytes, source=None) -> rsa.RSAPrivateKey:
    integers = _read_pkcs1_integers(der, source)

    version = integers[0]
    if version not in PKCS1_SUPPORTED_VERSIONS:
        raise KeyParseError(
            f"Wrong version for RSA private key{_describe(source)}: {version}"
        )

    modulus, public_exponent, private_exponent = integers[1:4]

    try:
        if len(integers) == PKCS1_ELEMENT_COUNT and integers[4] * integers[5] == modulus:
            prime1, prime2, exponent1, exponent2, coefficient = integers[4:]
        else:
            logger.debug("RSA private key has no usable CRT parameters, recovering them")
            prime1, prime2 = rsa.rsa_recover_prime_factors(
                modulus, public_exponent, private_exponent
            )
            exponent1 = rsa.rsa_crt_dmp1(private_exponent, prime1)
            exponent2 = rsa.rsa_crt_dmq1(private_exponent, prime2)
            coefficient = rsa.rsa_crt_iqmp(prime1, prime2)

        return rsa.RSAPrivateNumbers(
            p=prime1,
            q=prime2,
            d=private_exponent,
            dmp1=exponent1,
            dmq1=exponent2,
            iqmp=coefficient,
            public_numbers=rsa.RSAPublicNumbers(e=public_exponent, n=modulus),
        ).private_key()
    except ValueError:
        # the message from the backend is not propagated as it may refer to key values
        raise KeyParseError(
            f"Inconsistent RSA private key parameters{_describe(source)}"
        ) from None


def decode_pkcs8_private_key(der: bytes, source=None) -> rsa.RSAPrivateKey:
    try:
        private_key_info, remainder = der_decoder.decode(
            der, asn1Spec=PKCS8PrivateKey()
        )
    except PyAsn1Error as error:
        raise KeyParseError(
            f"Malformed PKCS#8 private key ASN.1{_describe(source)}: {error}"
        ) from None
    if remainder:
        raise KeyParseError(
            f"Malformed PKCS#8 private key ASN.1{_describe(source)}: {len(remainder)} trailing bytes"
        )

    algorithm = str(private_key_info["privateKeyAlgorithm"]["algorithm"])
    if algorithm != RSA_ENCRYPTION_ASN1_OID:
        raise KeyParseError(
            f"Unsupported private key algorithm{_describe(source)}: expected {RSA_ENCRYPTION_ASN1_OID}, found {algorithm}"
        )

    return decode_pkcs1_private_key(
        bytes(private_key_info["privateKey"]), source=source
    )


PRIVATE_KEY_ENCODINGS = {
    PEM_PKCS1_PRIVATE_KEY_LABEL: decode_pkcs1_private_key,
    PEM_PKCS8_PRIVATE_KEY_LABEL: decode_pkcs8_private_key,
}


def load_private_key(key_pem: str, source=None) -> rsa.RSAPrivateKey:
    try:
        label, der = parse_pem(key_pem)
    except ValueError as error:
        raise KeyParseError(
            f"Failed to read private key{_describe(source)}: {error}"
        ) from None

    decode = PRIVATE_KEY_ENCODINGS.get(label)
    if decode is None:
        raise KeyParseError(
            f"Unsupported private key encoding{_describe(source)}: '{label}' (supported: {', '.join(PRIVATE_KEY_ENCODINGS)})"
        )

    private_key = decode(der, source=source)
    logger.debug(
        f"Loaded {private_key.key_size}-bit RSA private key from '{label}' PEM block{_describe(source)}"
    )
    return private_key
