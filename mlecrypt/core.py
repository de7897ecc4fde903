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

import json
import logging
import pathlib
import tempfile

from . import envelope
from .config import MleCryptConfig, PartyKeys
from .exceptions import (
    EncryptFailureError,
    EnvelopeError,
    RequestRejectedError,
    TokenMalformedError,
    TransactionProcessingError,
)
from .transactions import TransactionLedger, process_push_funds, query_transaction
from .utils import get_tmpdir_root, run_openssl


logger = logging.getLogger(__name__)

ENCRYPTED_PAYLOAD_FIELD = "encData"

DEFAULT_KEY_SIZE = 2048
DEFAULT_VALIDITY_DAYS = 365


def wrap_payload(token: str) -> str:
    return json.dumps({ENCRYPTED_PAYLOAD_FIELD: token})


def unwrap_payload(body) -> str:
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError):
        raise TokenMalformedError("Encrypted payload is not valid JSON") from None
    if not isinstance(payload, dict) or not isinstance(
        payload.get(ENCRYPTED_PAYLOAD_FIELD), str
    ):
        raise TokenMalformedError(
            f"Encrypted payload has no '{ENCRYPTED_PAYLOAD_FIELD}' string field"
        )
    return payload[ENCRYPTED_PAYLOAD_FIELD]


def extract_and_dump_jwe_header(token):
    header = envelope.read_header(token)
    logger.debug(
        f"JWE header: alg={header.get('alg')}, enc={header.get('enc')}, kid={header.get('kid')}, iat={header.get('iat')}"
    )
    return header


class MleChannel:
    """
    Message level encryption for one party: what arrives is decrypted with the party's own private key, what leaves is
    encrypted with the counterparty's public key.
    """

    def __init__(self, party_keys: PartyKeys):
        self._party_keys = party_keys

    @property
    def party(self):
        return self._party_keys.party

    def seal(self, plaintext: bytes) -> str:
        logger.debug(f"Encrypting outgoing MLE payload for '{self.party}'")
        token = envelope.encrypt(
            plaintext, self._party_keys.public_key, self._party_keys.kid
        )
        return wrap_payload(token)

    def open(self, body) -> bytes:
        logger.debug(f"Decrypting incoming MLE payload for '{self.party}'")
        token = unwrap_payload(body)
        plaintext = envelope.decrypt(token, self._party_keys.private_key)
        if logger.isEnabledFor(logging.DEBUG):
            extract_and_dump_jwe_header(token)
        return plaintext


def _rejected(operation, error):
    # the remote party gets the same answer whatever went wrong, the kind is only logged
    logger.warning(f"{operation} rejected: {type(error).__name__}: {error}")
    return RequestRejectedError()


def handle_push_funds(
    channel: MleChannel, ledger: TransactionLedger, encrypted_request
) -> str:
    logger.info("=== Push Funds Transaction (OCT) ===")
    try:
        request = channel.open(encrypted_request)
        response = process_push_funds(request, ledger)
        return channel.seal(response)
    except (EnvelopeError, EncryptFailureError, TransactionProcessingError) as error:
        raise _rejected("Push funds transaction", error) from None


def handle_transaction_query(
    channel: MleChannel,
    ledger: TransactionLedger,
    acquiring_bin: str,
    transaction_identifier: str,
) -> str:
    logger.info("=== Transaction Query ===")
    logger.info(
        f"Query: acquiringBIN={acquiring_bin}, transactionIdentifier={transaction_identifier}"
    )
    try:
        response = query_transaction(ledger, acquiring_bin, transaction_identifier)
        return channel.seal(response)
    except EncryptFailureError as error:
        raise _rejected("Transaction query", error) from None


def load_channel(config_path, party_id) -> MleChannel:
    mlecrypt_config = MleCryptConfig.parse(config_path, party_id)
    return MleChannel(mlecrypt_config.load_party_keys())


def encrypt_file(config_path, party_id, plaintext_path, encrypted_payload_path):
    channel = load_channel(config_path, party_id)

    logger.info(f"Encrypting {plaintext_path} for the counterparty of '{party_id}'")
    body = channel.seal(plaintext_path.read_bytes())

    logger.debug(f"Saving encrypted payload to {encrypted_payload_path}")
    encrypted_payload_path.write_text(body)
    logger.info("Success!")


def decrypt_file(config_path, party_id, encrypted_payload_path, plaintext_path):
    channel = load_channel(config_path, party_id)

    logger.info(f"Decrypting {encrypted_payload_path} using the private key of '{party_id}'")
    plaintext = channel.open(encrypted_payload_path.read_text())

    logger.debug(f"Saving decrypted payload to {plaintext_path}")
    plaintext_path.write_bytes(plaintext)
    logger.info("Success!")


def push_funds_file(config_path, party_id, encrypted_request_path, encrypted_response_path):
    channel = load_channel(config_path, party_id)
    ledger = TransactionLedger()

    body = handle_push_funds(channel, ledger, encrypted_request_path.read_text())

    logger.debug(f"Saving encrypted response to {encrypted_response_path}")
    encrypted_response_path.write_text(body)
    logger.info("Success!")


def generate_key_pair(
    name,
    output_path: pathlib.Path,
    key_size=DEFAULT_KEY_SIZE,
    validity_days=DEFAULT_VALIDITY_DAYS,
    pkcs8=False,
):
    """
    Generate an MLE RSA key pair with openssl: '<name>-private.pem' (PKCS#1 unless pkcs8 is set) which the party keeps
    secret and '<name>-public.pem', a self-signed certificate handed over to the counterparty.
    """
    output_path.mkdir(parents=True, exist_ok=True)
    private_key_path = output_path / f"{name}-private.pem"
    certificate_path = output_path / f"{name}-public.pem"

    tmpdir_root = get_tmpdir_root()
    with tempfile.TemporaryDirectory(dir=tmpdir_root) as tmpdir_name:
        raw_key_path = pathlib.Path(tmpdir_name) / f"{name}.key"

        logger.info(f"Generating {key_size}-bit MLE RSA key pair '{name}'")
        run_openssl("genrsa", "-out", raw_key_path, key_size)

        logger.info(f"Creating self-signed certificate {certificate_path}")
        run_openssl(
            "req",
            "-new",
            "-x509",
            "-key",
            raw_key_path,
            "-out",
            certificate_path,
            "-days",
            validity_days,
            "-subj",
            f"/CN={name}",
        )

        if pkcs8:
            logger.info(f"Saving PKCS#8 private key to {private_key_path}")
            run_openssl(
                "pkcs8", "-topk8", "-nocrypt", "-in", raw_key_path, "-out", private_key_path
            )
        else:
            # openssl 3 writes PKCS#8 unless asked for the traditional format
            logger.info(f"Saving PKCS#1 private key to {private_key_path}")
            run_openssl(
                "rsa", "-in", raw_key_path, "-out", private_key_path, "-traditional"
            )

    logger.info("Success!")
    return private_key_path, certificate_path
