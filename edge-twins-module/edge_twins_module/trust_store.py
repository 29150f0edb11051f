# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the trust store used to secure connections to the IoT Edge hub.

The device SDK does not consult an OS certificate store. Instead, the trusted certificate
chain is handed to each client as a PEM string (`server_verification_cert`). The
TrustStore collects the certificates the module has been told to trust, and produces that
chain.
"""
import logging
import os
import socket
import ssl
import threading
from typing import Dict, List, Optional
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from . import constant
from .custom_typing import Environment
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PEM_BEGIN_MARKER = b"-----BEGIN CERTIFICATE-----"


class TrustStore:
    """A set of trusted root certificates, keyed by SHA-256 fingerprint"""

    def __init__(self) -> None:
        self._certificates: Dict[bytes, x509.Certificate] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._certificates)

    def __contains__(self, certificate: x509.Certificate) -> bool:
        return _fingerprint(certificate) in self._certificates

    def add(self, certificate: x509.Certificate) -> bool:
        """Add a certificate to the store.

        Adding a certificate that is already present has no effect.

        :returns: True if the certificate was added, False if it was already present
        """
        fingerprint = _fingerprint(certificate)
        with self._lock:
            if fingerprint in self._certificates:
                logger.debug("Certificate already trusted: {}".format(certificate.subject))
                return False
            self._certificates[fingerprint] = certificate
        logger.debug("Certificate trusted: {}".format(certificate.subject))
        return True

    def certificates(self) -> List[x509.Certificate]:
        with self._lock:
            return list(self._certificates.values())

    def pem_bundle(self) -> Optional[str]:
        """Return all trusted certificates as a single PEM string, or None if there are none"""
        certificates = self.certificates()
        if not certificates:
            return None
        return "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in certificates
        )

    def clear(self) -> None:
        with self._lock:
            self._certificates.clear()


# The trusted root store of the current user, for the lifetime of the process
_user_trust_store = TrustStore()


def get_user_trust_store() -> TrustStore:
    return _user_trust_store


def install_certificate_from_environment(
    environ: Optional[Environment] = None, store: Optional[TrustStore] = None
) -> List[x509.Certificate]:
    """Add the certificate named by the EdgeModuleCACertificateFile variable to the trust store

    :param environ: Mapping to read from. Defaults to os.environ
    :param store: The store to add to. Defaults to the trusted root store of the current user

    :raises: ConfigurationError if the variable is unset or blank, or the file does not exist
    :raises: ConfigurationError if the file does not contain a certificate
    """
    if environ is None:
        environ = os.environ
    cert_path = environ.get(constant.CA_CERTIFICATE_FILE_ENV)
    if not cert_path or not cert_path.strip():
        # We cannot proceed further without a proper cert file
        logger.error("Missing path to certificate collection file: {}".format(cert_path))
        raise ConfigurationError("Missing path to certificate file.")
    return install_certificate(cert_path, store=store)


def install_certificate(
    cert_path: str, store: Optional[TrustStore] = None
) -> List[x509.Certificate]:
    """Load the certificate(s) in a file and add them to the trust store.

    PEM files may contain a bundle of certificates. Otherwise the file is read as a single
    DER encoded certificate.

    :returns: The certificates loaded from the file
    :raises: ConfigurationError if the file does not exist or does not contain a certificate
    """
    if store is None:
        store = _user_trust_store
    if not os.path.isfile(cert_path):
        # We cannot proceed further without a proper cert file
        logger.error("Missing path to certificate collection file: {}".format(cert_path))
        raise ConfigurationError("Missing certificate file.")

    try:
        with open(cert_path, mode="rb") as cert_file:
            data = cert_file.read()
    except OSError as e:
        raise ConfigurationError("Unable to read certificate file: {}".format(cert_path)) from e

    certificates = load_certificates(data)
    for certificate in certificates:
        store.add(certificate)
    logger.info("Added Cert: {}".format(cert_path))
    return certificates


def load_certificates(data: bytes) -> List[x509.Certificate]:
    """Parse PEM (one or more certificates) or DER (exactly one certificate) data

    :raises: ConfigurationError if the data does not contain a certificate
    """
    try:
        if PEM_BEGIN_MARKER in data:
            return x509.load_pem_x509_certificates(data)
        return [x509.load_der_x509_certificate(data)]
    except ValueError as e:
        raise ConfigurationError("Invalid certificate file") from e


def fetch_presented_chain(
    hostname: str, port: int = constant.MQTT_TLS_PORT, timeout: Optional[float] = None
) -> str:
    """Return the certificate chain the server at hostname presents, without verifying it.

    Trusting the result makes a client accept whatever certificate chain that server
    presents, including a leaf signed by a CA the platform does not know.
    This exists for development environments only, and must never be used in production.

    :returns: Every certificate of the presented chain, PEM encoded, leaf first
    :raises: OSError if the server cannot be reached
    :raises: ssl.SSLError if the TLS handshake fails
    """
    logger.warning(
        "Certificate verification bypassed: trusting the certificate chain presented by {}:{}".format(
            hostname, port
        )
    )
    ssl_context = _permissive_ssl_context()
    with socket.create_connection((hostname, port), timeout=timeout) as sock:
        with ssl_context.wrap_socket(sock, server_hostname=hostname) as tls_sock:
            chain = _presented_chain(tls_sock)
    if not chain:
        raise ssl.SSLError("No certificate presented by {}:{}".format(hostname, port))
    logger.debug("{}:{} presented {} certificate(s)".format(hostname, port, len(chain)))
    return "".join(ssl.DER_cert_to_PEM_cert(der_cert) for der_cert in chain)


def _presented_chain(tls_sock: ssl.SSLSocket) -> List[bytes]:
    """Return the DER encoded certificates sent by the peer, leaf first"""
    if hasattr(tls_sock, "get_unverified_chain"):
        # Python 3.13+
        return list(tls_sock.get_unverified_chain() or [])

    # Earlier versions (3.10+) only expose the chain on the underlying SSLObject
    sslobj = getattr(tls_sock, "_sslobj", None)
    if sslobj is not None and hasattr(sslobj, "get_unverified_chain"):
        chain = sslobj.get_unverified_chain() or []
        # Certificate.public_bytes() defaults to PEM
        return [ssl.PEM_cert_to_DER_cert(cert.public_bytes()) for cert in chain]

    leaf = tls_sock.getpeercert(binary_form=True)
    return [leaf] if leaf else []


def _permissive_ssl_context() -> ssl.SSLContext:
    """Return an SSLContext that accepts any certificate"""
    ssl_context = ssl.SSLContext(protocol=ssl.PROTOCOL_TLS_CLIENT)
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    return ssl_context


def _fingerprint(certificate: x509.Certificate) -> bytes:
    return certificate.fingerprint(hashes.SHA256())
