# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import datetime
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from azure.iot.device.aio import IoTHubDeviceClient, IoTHubModuleClient
from edge_twins_module import session as session_module

FAKE_MODULE_CONNECTION_STRING = (
    "HostName=fake.azure-devices.net;GatewayHostName=fake-gateway;"
    "DeviceId=fake-device;ModuleId=fake-module;SharedAccessKey=Zm9vYmFy"
)
FAKE_GATEWAY_CONNECTION_STRING = (
    "HostName=fake.azure-devices.net;DeviceId=fake-gateway-device;SharedAccessKey=YmFyYmF6"
)

"""
NOTE: Tests needing a non-specific, arbitrary exception should use the following fixture.
It guarantees the exception is unexpected and unhandled except by broad handling.
"""


@pytest.fixture
def arbitrary_exception():
    class ArbitraryException(Exception):
        pass

    e = ArbitraryException("arbitrary description")
    return e


@pytest.fixture
def module_connection_string():
    return FAKE_MODULE_CONNECTION_STRING


@pytest.fixture
def gateway_connection_string():
    return FAKE_GATEWAY_CONNECTION_STRING


@pytest.fixture
def edge_environment(ca_cert_file):
    return {
        "EdgeHubConnectionString": FAKE_MODULE_CONNECTION_STRING,
        "EdgeHubGwDeviceConnectionString": FAKE_GATEWAY_CONNECTION_STRING,
        "EdgeModuleCACertificateFile": str(ca_cert_file),
    }


def _make_sdk_client_mock(mocker, spec):
    client = mocker.MagicMock(spec=spec)
    client.connect = mocker.AsyncMock()
    client.shutdown = mocker.AsyncMock()
    client.get_twin = mocker.AsyncMock(
        return_value={"desired": {"$version": 1}, "reported": {"$version": 1}}
    )
    client.patch_twin_reported_properties = mocker.AsyncMock()
    client.send_message_to_output = mocker.AsyncMock()
    client.connected = True
    return client


# Mock out the device SDK clients in order to not do network operations
@pytest.fixture
def mock_module_client(mocker):
    client = _make_sdk_client_mock(mocker, IoTHubModuleClient)
    mocker.patch.object(
        session_module.IoTHubModuleClient, "create_from_connection_string", return_value=client
    )
    return client


@pytest.fixture
def mock_device_client(mocker):
    client = _make_sdk_client_mock(mocker, IoTHubDeviceClient)
    mocker.patch.object(
        session_module.IoTHubDeviceClient, "create_from_connection_string", return_value=client
    )
    return client


def make_key_and_certificate(common_name, issuer=None, ca=True, dns_names=()):
    """Return (private key, certificate). Self-signed unless issuer, a (key, certificate)
    pair, is provided"""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    if issuer is None:
        signing_key, issuer_name, issuer_public_key = key, name, key.public_key()
    else:
        signing_key, issuer_name = issuer[0], issuer[1].subject
        issuer_public_key = issuer[0].public_key()
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key), critical=False
        )
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]), critical=False
        )
    return key, builder.sign(signing_key, hashes.SHA256())


def make_certificate(common_name):
    return make_key_and_certificate(common_name)[1]


@pytest.fixture
def ca_cert():
    return make_certificate("Fake Edge CA")


@pytest.fixture
def ca_cert_file(tmp_path, ca_cert):
    path = tmp_path / "edge_ca.pem"
    path.write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    return path


@pytest.fixture
def certificate_factory():
    return make_certificate


@pytest.fixture
def edge_ca():
    return make_key_and_certificate("Fake Edge CA")


@pytest.fixture
def edge_hub_key_and_certificate(edge_ca):
    return make_key_and_certificate("localhost", issuer=edge_ca, ca=False, dns_names=["localhost"])
