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
import pathlib

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from mlecrypt.config import MleCryptConfig, PartyKeys
from mlecrypt.keystore import KeyStore


def generate_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def create_self_signed_certificate(private_key, common_name):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture
def self_signed_certificate():
    return create_self_signed_certificate


@pytest.fixture(scope="session")
def server_private_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def client_private_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def unrelated_private_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def server_certificate(server_private_key):
    return create_self_signed_certificate(server_private_key, "mle-server")


@pytest.fixture(scope="session")
def client_certificate(client_private_key):
    return create_self_signed_certificate(client_private_key, "mle-client")


@pytest.fixture
def pkcs1_pem():
    def to_pem(private_key):
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    return to_pem


@pytest.fixture
def pkcs8_pem():
    def to_pem(private_key):
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    return to_pem


@pytest.fixture
def public_key_pem():
    def to_pem(public_key):
        return public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    return to_pem


@pytest.fixture
def certificate_pem():
    def to_pem(certificate):
        return certificate.public_bytes(serialization.Encoding.PEM).decode()

    return to_pem


@pytest.fixture
def fixtures_path(tmp_path):
    fixtures_path = tmp_path / "fixtures"
    fixtures_path.mkdir()
    return fixtures_path


@pytest.fixture(autouse=True)
def keys_path(
    fixtures_path,
    monkeypatch,
    server_private_key,
    client_private_key,
    server_certificate,
    client_certificate,
    pkcs1_pem,
    pkcs8_pem,
    public_key_pem,
    certificate_pem,
):
    keys_path = fixtures_path / "keys"
    (keys_path / "server").mkdir(parents=True)
    (keys_path / "client").mkdir(parents=True)

    # the server key is in PKCS#1 format, the client key in PKCS#8 format
    (keys_path / "server" / "mle-server-private.pem").write_text(
        pkcs1_pem(server_private_key)
    )
    (keys_path / "server" / "mle-server-public.pem").write_text(
        certificate_pem(server_certificate)
    )
    (keys_path / "client" / "mle-client-private.pem").write_text(
        pkcs8_pem(client_private_key)
    )
    (keys_path / "client" / "mle-client-public.pem").write_text(
        certificate_pem(client_certificate)
    )
    (keys_path / "client" / "mle-client-pubkey.pem").write_text(
        public_key_pem(client_private_key.public_key())
    )

    monkeypatch.setenv("MLECRYPT_KEYSDIR", str(keys_path))
    return keys_path


@pytest.fixture
def valid_config_dict():
    return {
        "keys": {
            "mle-server": {
                "cert-pem": "server/mle-server-public.pem",
                "key-pem": "server/mle-server-private.pem",
            },
            "mle-client": {
                "cert-pem": "client/mle-client-public.pem",
                "key-pem": "client/mle-client-private.pem",
            },
            "mle-client-pubkey": {"pubkey-pem": "client/mle-client-pubkey.pem"},
        },
        "parties": {
            "server": {
                "kid": "mle-server-kid",
                "forDecryption": "mle-server",
                "forEncryption": "mle-client",
            },
            "client": {
                "kid": "mle-client-kid",
                "forDecryption": "mle-client",
                "forEncryption": "mle-server",
            },
        },
    }


@pytest.fixture
def valid_config_path(fixtures_path, valid_config_dict):
    config_path: pathlib.Path = fixtures_path / "mlecrypt-config.json"
    config_path.write_text(json.dumps(valid_config_dict))
    return config_path


@pytest.fixture
def valid_config_pair(valid_config_path):
    party_id = "server"
    return valid_config_path, party_id


@pytest.fixture
def valid_config(valid_config_pair):
    config_path, party_id = valid_config_pair
    return MleCryptConfig.parse(config_path, party_id)


@pytest.fixture
def key_store(valid_config_path, valid_config_dict):
    return KeyStore(valid_config_path, valid_config_dict["keys"])


@pytest.fixture
def server_party_keys(server_private_key, client_private_key):
    return PartyKeys(
        party="server",
        kid="mle-server-kid",
        private_key=server_private_key,
        public_key=client_private_key.public_key(),
    )


@pytest.fixture
def client_party_keys(server_private_key, client_private_key):
    return PartyKeys(
        party="client",
        kid="mle-client-kid",
        private_key=client_private_key,
        public_key=server_private_key.public_key(),
    )
