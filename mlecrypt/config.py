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

import importlib.resources
import json
import logging
import pathlib
from typing import NamedTuple

import jsonschema
from cryptography.hazmat.primitives.asymmetric import rsa

from .exceptions import MleCryptConfigError
from .keystore import KeyPairRole, KeyStore


logger = logging.getLogger(__name__)


class PartyKeys(NamedTuple):
    """Key material of one party, loaded once and shared read-only by all requests."""

    party: str
    kid: str
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey


class MleCryptConfig:
    @staticmethod
    def parse(config_path: pathlib.Path, party_id: str):
        schema = json.loads(MleCryptConfig.get_schema())
        config = json.loads(config_path.read_text())

        jsonschema.validate(instance=config, schema=schema)

        key_store = KeyStore(config_path, config["keys"])

        if party_id is not None:
            party_config = config["parties"].get(party_id)
            if party_config is None:
                raise MleCryptConfigError(
                    f"Failed to find '{party_id}' in 'parties' in '{config_path}'"
                )
            logger.debug(f"Party configuration: {party_config}")
            return MleCryptConfig(config_path, party_id, party_config, key_store)
        else:
            return key_store

    @staticmethod
    def get_schema():
        return importlib.resources.read_text("mlecrypt", "config-schema.json")

    def __init__(self, config_path, party_id, party_config, key_store: KeyStore):
        self._config_path = config_path
        self._party_id = party_id
        self._party_config = party_config
        self._key_store = key_store

    def get_party_id(self):
        return self._party_id

    def get_key_id(self):
        return self._party_config["kid"]

    def get_role_key_name(self, role: KeyPairRole):
        return self._party_config[role.value]

    def get_role_key(self, role: KeyPairRole):
        return self._key_store.get_key(self.get_role_key_name(role), role)

    def load_party_keys(self) -> PartyKeys:
        logger.info(
            f"Loading MLE keys for '{self._party_id}': "
            f"private key '{self.get_role_key_name(KeyPairRole.FOR_DECRYPTION)}', "
            f"counterparty key '{self.get_role_key_name(KeyPairRole.FOR_ENCRYPTION)}'"
        )
        party_keys = PartyKeys(
            party=self._party_id,
            kid=self.get_key_id(),
            private_key=self.get_role_key(KeyPairRole.FOR_DECRYPTION),
            public_key=self.get_role_key(KeyPairRole.FOR_ENCRYPTION),
        )
        logger.info(f"MLE keys loaded successfully. Key ID: {party_keys.kid}")
        return party_keys
