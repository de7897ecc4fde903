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

import pathlib

import click

from .core import (
    DEFAULT_KEY_SIZE,
    DEFAULT_VALIDITY_DAYS,
    decrypt_file as decrypt_impl,
    encrypt_file as encrypt_impl,
    generate_key_pair as keygen_impl,
    push_funds_file as push_funds_impl,
)
from .utils import configure_logging


config_option = click.option(
    "--config",
    "mlecrypt_config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
    help="path to mlecrypt config file",
)

party_option = click.option(
    "--party",
    "party_id",
    required=True,
    help="identifier of the party (in 'parties' of the config file) whose keys are used",
)

verbose_option = click.option(
    "--verbose",
    "verbose_logging",
    default=False,
    help="enable verbose logging",
    is_flag=True,
)


@click.group()
def cli():
    pass  # pragma: no cover


@cli.command()
@config_option
@party_option
@click.argument(
    "plaintext-path",
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
)
@click.argument(
    "encrypted-payload-path",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
)
@verbose_option
def encrypt(
    mlecrypt_config_path,
    party_id,
    plaintext_path,
    encrypted_payload_path,
    verbose_logging,
):
    """Encrypt a payload for the counterparty into an {"encData": ...} document."""
    configure_logging(verbose_logging)

    encrypt_impl(
        mlecrypt_config_path,
        party_id,
        plaintext_path,
        encrypted_payload_path,
    )


@cli.command()
@config_option
@party_option
@click.argument(
    "encrypted-payload-path",
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
)
@click.argument(
    "plaintext-path",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
)
@verbose_option
def decrypt(
    mlecrypt_config_path,
    party_id,
    encrypted_payload_path,
    plaintext_path,
    verbose_logging,
):
    """Decrypt an {"encData": ...} document with the party's private key."""
    configure_logging(verbose_logging)

    decrypt_impl(
        mlecrypt_config_path,
        party_id,
        encrypted_payload_path,
        plaintext_path,
    )


@cli.command("push-funds")
@config_option
@party_option
@click.argument(
    "encrypted-request-path",
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
)
@click.argument(
    "encrypted-response-path",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
)
@verbose_option
def push_funds(
    mlecrypt_config_path,
    party_id,
    encrypted_request_path,
    encrypted_response_path,
    verbose_logging,
):
    """Process an encrypted push funds request the way the API server does."""
    configure_logging(verbose_logging)

    push_funds_impl(
        mlecrypt_config_path,
        party_id,
        encrypted_request_path,
        encrypted_response_path,
    )


@cli.command()
@click.argument("name")
@click.argument(
    "output-path",
    type=click.Path(file_okay=False, path_type=pathlib.Path),
)
@click.option(
    "--key-size",
    "key_size",
    type=int,
    default=DEFAULT_KEY_SIZE,
    show_default=True,
    help="RSA key size in bits",
)
@click.option(
    "--days",
    "validity_days",
    type=int,
    default=DEFAULT_VALIDITY_DAYS,
    show_default=True,
    help="validity of the self-signed certificate",
)
@click.option(
    "--pkcs8",
    "pkcs8",
    default=False,
    help="write the private key as PKCS#8 instead of PKCS#1",
    is_flag=True,
)
@verbose_option
def keygen(name, output_path, key_size, validity_days, pkcs8, verbose_logging):
    """Generate an MLE key pair (private key + self-signed certificate) with openssl."""
    configure_logging(verbose_logging)

    keygen_impl(name, output_path, key_size, validity_days, pkcs8)


if __name__ == "__main__":
    cli()  # pragma: no cover
