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


class MleCryptError(Exception):
    pass


class MleCryptConfigError(MleCryptError):
    pass


class KeyMaterialError(MleCryptError):
    pass


class CertificateParseError(KeyMaterialError):
    pass


class KeyParseError(KeyMaterialError):
    pass


class EncryptFailureError(MleCryptError):
    pass


# Both kinds are reported to the remote party the same way, see core.py
class EnvelopeError(MleCryptError):
    pass


class TokenMalformedError(EnvelopeError):
    pass


class DecryptFailureError(EnvelopeError):
    # a single message for every cause so that the error surface is not an oracle
    MESSAGE = "Unable to decrypt JWE token"

    def __init__(self):
        super().__init__(DecryptFailureError.MESSAGE)


class TransactionProcessingError(MleCryptError):
    pass


class RequestRejectedError(MleCryptError):
    MESSAGE = "Unable to process request"

    def __init__(self):
        super().__init__(RequestRejectedError.MESSAGE)
