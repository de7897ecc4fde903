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

import enum
import logging
import os
import pathlib

from cryptography.hazmat.primitives.asymmetric import rsa

from .exceptions import MleCryptConfigError
from .keys import load_private_key, load_public_key, load_public_key_pem


logger = logging.getLogger(__name__)


class KeyPairRole(enum.Enum):
    # private key of the local party, used to decrypt what the counterparty sent
    FOR_DECRYPTION = "forDecryption"
    # public key (certificate) of the counterparty, used to encrypt what is sent to it
    FOR_ENCRYPTION = "forEncryption"


class KeyStore:
    @staticmethod
    def get_root_path():
        return pathlib.Path(os.environ.get("MLECRYPT_KEYSDIR", "/keys"))

    def __init__(self, config_path: pathlib.Path, keys_mapping: dict):
        self._config_path = config_path
        self._keys_mapping = keys_mapping
        self._root_path = KeyStore.get_root_path()
        self._validate()

    def get_key(self, key_id: str, role: KeyPairRole):
        if role is KeyPairRole.FOR_DECRYPTION:
            return self.get_private_key(key_id)
        return self.get_public_key(key_id)

    def get_private_key(self, key_id: str) -> rsa.RSAPrivateKey:
        keys_info = self._get_keys_info(key_id)
        property_name = "key-pem"
        key_filename = keys_info.get(property_name)
        if key_filename is None:
            raise MleCryptConfigError(
                f"Failed to find '{property_name}' in key definition '{key_id}' in '{self._config_path}'"
            )
        key_path = self._root_path / key_filename
        logger.debug(f"Loading private key '{key_id}' from {key_path}")
        return load_private_key(self._read_pem(key_path), source=key_path)

    def get_public_key(self, key_id: str) -> rsa.RSAPublicKey:
        keys_info = self._get_keys_info(key_id)
        if "cert-pem" in keys_info:
            key_path = self._root_path / keys_info["cert-pem"]
            logger.debug(f"Loading certificate '{key_id}' from {key_path}")
            return load_public_key(self._read_pem(key_path), source=key_path)
        if "pubkey-pem" in keys_info:
            key_path = self._root_path / keys_info["pubkey-pem"]
            logger.debug(f"Loading public key '{key_id}' from {key_path}")
            return load_public_key_pem(self._read_pem(key_path), source=key_path)
        raise MleCryptConfigError(
            f"Failed to find 'cert-pem'/'pubkey-pem' in key definition '{key_id}' in '{self._config_path}'"
        )

    def _read_pem(self, key_path: pathlib.Path):
        try:
            return key_path.read_text()
        except OSError as error:
            raise MleCryptConfigError(
                f"Failed to read '{key_path}' referenced in '{self._config_path}': {error.strerror}"
            ) from None

    def _get_keys_info(self, key_id):
        keys_info = self._keys_mapping.get(key_id)
        if keys_info is None:
            raise MleCryptConfigError(
                f"Failed to find '{key_id}' in 'keys' in '{self._config_path}'"
            )
        return keys_info

    def _validate(self):
        for key_id, key_info in self._keys_mapping.items():
            if "cert-pem" in key_info and "pubkey-pem" in key_info:
                raise MleCryptConfigError(
                    f"Invalid configuration for key '{key_id}' - if cert-pem is present, pubkey-pem should not be present"
                )
