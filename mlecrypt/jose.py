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

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jose.constants import ALGORITHMS


# RSA-OAEP-256 as per https://datatracker.ietf.org/doc/html/rfc7518#section-4.3
def rsa_oaep_256_padding():
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


# This class provides JSON Object Signing and Encryption (JOSE) implementation of operations which deal with private key
# material. Currently it relies on having the private keys in memory, but the idea is that it could be integrated with
# a HSM at some point, so that private keys would not be accessible outside of HSM. When that happens, the content
# encryption key unwrapping will need to be delegated to the HSM, but the rest like base64url transformations for JWE
# Compact Serialization and the AES-GCM content decryption will still be implemented in envelope.py.
class JOSESecureOperations:
    def jwe_unwrap_key(
        self, encrypted_key: bytes, key: rsa.RSAPrivateKey, algorithm: str
    ) -> bytes:
        if algorithm != ALGORITHMS.RSA_OAEP_256:
            raise ValueError(f"Unsupported key management algorithm '{algorithm}'")
        return key.decrypt(encrypted_key, rsa_oaep_256_padding())


JOSE_SECURE_OPS = JOSESecureOperations()
