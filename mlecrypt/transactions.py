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

import datetime
import json
import logging
import random
import threading

from .exceptions import TransactionProcessingError


logger = logging.getLogger(__name__)

ACTION_CODE_APPROVED = "00"
RESPONSE_CODE = "5"
FEE_PROGRAM_INDICATOR = "123"
TRANSMISSION_DATE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


class TransactionLedger:
    """In-memory store of processed push funds transactions, keyed by transaction identifier."""

    def __init__(self):
        self._transactions = {}
        self._lock = threading.Lock()

    def save(self, transaction_identifier: str, record: dict):
        with self._lock:
            self._transactions[transaction_identifier] = record
        logger.info(f"Transaction stored: {transaction_identifier}")

    def find(self, transaction_identifier: str, acquiring_bin: str):
        with self._lock:
            record = self._transactions.get(transaction_identifier)
        if record is not None and str(record.get("acquiringBin")) == acquiring_bin:
            return record
        return None

    def __len__(self):
        with self._lock:
            return len(self._transactions)


def mask_pan(pan):
    if pan is not None and len(pan) > 8:
        return pan[:4] + "****" + pan[-4:]
    return pan


def generate_transaction_identifier():
    return str(100000000000000 + random.randrange(900000000000000))


def generate_approval_code():
    return f"{random.randrange(999999):06d}"


def _parse_request(request_bytes: bytes) -> dict:
    try:
        request = json.loads(request_bytes.decode("utf-8"))
    except (ValueError, RecursionError):
        raise TransactionProcessingError("Request is not valid UTF-8 JSON") from None
    if not isinstance(request, dict):
        raise TransactionProcessingError("Request is not a JSON object")
    return request


def _to_json_bytes(data: dict) -> bytes:
    return json.dumps(data).encode("utf-8")


def process_push_funds(request_bytes: bytes, ledger: TransactionLedger) -> bytes:
    """
    Approve a push funds transaction (OCT) described by the decrypted request and return the response payload.

    Business fields are not validated, they are echoed back. The merged request and response is saved in the ledger so
    that the transaction can be queried later.
    """
    request = _parse_request(request_bytes)

    transaction_identifier = request.get("transactionIdentifier")
    if transaction_identifier is None:
        transaction_identifier = generate_transaction_identifier()
    transaction_identifier = str(transaction_identifier)
    pan = request.get("recipientPrimaryAccountNumber")

    response = {
        "transactionIdentifier": transaction_identifier,
        "actionCode": ACTION_CODE_APPROVED,
        "approvalCode": generate_approval_code(),
        "responseCode": RESPONSE_CODE,
        "transmissionDateTime": datetime.datetime.now().strftime(
            TRANSMISSION_DATE_TIME_FORMAT
        ),
        "amount": request.get("amount"),
        "recipientPrimaryAccountNumber": mask_pan(None if pan is None else str(pan)),
        "senderName": request.get("senderName"),
        "recipientName": request.get("recipientName"),
        "merchantCategoryCode": request.get("merchantCategoryCode"),
        "acquiringBin": request.get("acquiringBin"),
        "feeProgramIndicator": FEE_PROGRAM_INDICATOR,
    }

    record = dict(response)
    record.update(request)
    record["approvalCode"] = response["approvalCode"]
    record["transmissionDateTime"] = response["transmissionDateTime"]
    ledger.save(transaction_identifier, record)

    logger.info(
        f"Transaction processed: id={transaction_identifier}, actionCode={ACTION_CODE_APPROVED} (approved)"
    )
    return _to_json_bytes(response)


def query_transaction(
    ledger: TransactionLedger, acquiring_bin: str, transaction_identifier: str
) -> bytes:
    record = ledger.find(transaction_identifier, acquiring_bin)

    if record is not None:
        pan = record.get("recipientPrimaryAccountNumber")
        response = {
            "statusIdentifier": "COMPLETED",
            "transactionIdentifier": transaction_identifier,
            "acquiringBin": acquiring_bin,
            "actionCode": ACTION_CODE_APPROVED,
            "approvalCode": record.get("approvalCode"),
            "responseCode": RESPONSE_CODE,
            "transmissionDateTime": record.get("transmissionDateTime"),
            "originalAmount": record.get("amount"),
            "recipientPrimaryAccountNumber": mask_pan(None if pan is None else str(pan)),
        }
    else:
        logger.warning(
            f"Transaction not found: id={transaction_identifier}, acquiringBin={acquiring_bin}"
        )
        response = {
            "statusIdentifier": "NOT_FOUND",
            "transactionIdentifier": transaction_identifier,
            "acquiringBin": acquiring_bin,
            "errorMessage": "Transaction not found",
        }
    return _to_json_bytes(response)
