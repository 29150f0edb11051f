# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------

import logging
import os
import sys
from typing import Any, Dict, Optional
from . import constant
from . import connection_string as cs
from .custom_typing import Environment
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")
_NO_TIMEOUT_VALUES = ("none", "0")


def cert_installation_supported() -> bool:
    """Cert verification is not yet fully functional when using Windows OS for the container"""
    return not sys.platform.startswith("win")


class TransportSettings:
    """
    Options for the single transport variant used by every session of the module:
    MQTT over TCP, secured by TLS.
    """

    def __init__(
        self,
        *,
        server_verification_cert: Optional[str] = None,
        keep_alive: int = constant.DEFAULT_KEEP_ALIVE,
        connect_timeout: Optional[float] = constant.DEFAULT_CONNECT_TIMEOUT,
        operation_timeout: Optional[float] = constant.DEFAULT_OPERATION_TIMEOUT,
        product_info: str = constant.PRODUCT_INFO,
    ) -> None:
        """Initializer for TransportSettings

        :param str server_verification_cert: PEM encoded trusted certificate chain. If not
            provided, the default trust roots of the platform are used
        :param int keep_alive: Maximum period in seconds between MQTT communications
        :param float connect_timeout: Seconds to wait for a connection to be established.
            None waits indefinitely
        :param float operation_timeout: Seconds to wait for a twin or message operation to
            complete. None waits indefinitely
        :param str product_info: Product information included in the User-Agent string

        :raises: ConfigurationError if a value is out of range or of the wrong type
        """
        self.server_verification_cert = server_verification_cert
        self.keep_alive = _sanitize_keep_alive(keep_alive)
        self.connect_timeout = _sanitize_timeout("connect_timeout", connect_timeout)
        self.operation_timeout = _sanitize_timeout("operation_timeout", operation_timeout)
        self.product_info = product_info
        # MQTT over TCP only
        self.websockets = False

    def with_server_verification_cert(
        self, server_verification_cert: Optional[str]
    ) -> "TransportSettings":
        """Return a copy of these settings trusting a different certificate chain"""
        return TransportSettings(
            server_verification_cert=server_verification_cert,
            keep_alive=self.keep_alive,
            connect_timeout=self.connect_timeout,
            operation_timeout=self.operation_timeout,
            product_info=self.product_info,
        )

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for the device SDK client factory methods"""
        kwargs: Dict[str, Any] = {
            "websockets": self.websockets,
            "keep_alive": self.keep_alive,
            "product_info": self.product_info,
            # Every fallible operation is attempted exactly once
            "connection_retry": False,
            "auto_connect": False,
        }
        if self.server_verification_cert:
            kwargs["server_verification_cert"] = self.server_verification_cert
        return kwargs


class ModuleConfig:
    """
    Class for storing all configuration of the edge module, as provided by the
    IoT Edge runtime.
    """

    def __init__(
        self,
        *,
        module_connection_string: str,
        gateway_connection_string: str,
        bypass_cert_verification: bool = False,
        transport: Optional[TransportSettings] = None,
    ) -> None:
        """Initializer for ModuleConfig

        :param str module_connection_string: Connection string of the module identity
        :param str gateway_connection_string: Connection string of the edge gateway device
        :param bool bypass_cert_verification: Accept any certificate presented by the gateway.
            Never enable this in production deployments
        :param transport: Transport options shared by both sessions
        :type transport: :class:`TransportSettings`

        :raises: ConfigurationError if a connection string is missing or invalid
        """
        self.module_connection_string = _parse_required(
            constant.MODULE_CONNECTION_STRING_ENV, module_connection_string
        )
        self.gateway_connection_string = _parse_required(
            constant.GATEWAY_CONNECTION_STRING_ENV, gateway_connection_string
        )
        if not self.module_connection_string.is_module:
            raise ConfigurationError(
                "{} does not contain a ModuleId".format(constant.MODULE_CONNECTION_STRING_ENV)
            )
        self.bypass_cert_verification = bypass_cert_verification
        self.transport = transport or TransportSettings()

    @classmethod
    def from_environment(
        cls,
        environ: Optional[Environment] = None,
        bypass_cert_verification: Optional[bool] = None,
    ) -> "ModuleConfig":
        """Instantiate a ModuleConfig from environment variables

        :param environ: Mapping to read from. Defaults to os.environ
        :param bool bypass_cert_verification: Overrides both the environment and the
            platform default when provided

        :raises: ConfigurationError if a required variable is missing or a value is invalid
        """
        if environ is None:
            environ = os.environ

        if bypass_cert_verification is None:
            bypass_cert_verification = _parse_bool(
                constant.BYPASS_CERT_VERIFICATION_ENV,
                environ.get(constant.BYPASS_CERT_VERIFICATION_ENV),
                default=not cert_installation_supported(),
            )

        transport = TransportSettings(
            keep_alive=_parse_number(
                constant.KEEP_ALIVE_ENV,
                environ.get(constant.KEEP_ALIVE_ENV),
                default=constant.DEFAULT_KEEP_ALIVE,
            ),
            connect_timeout=_parse_timeout(
                constant.CONNECT_TIMEOUT_ENV,
                environ.get(constant.CONNECT_TIMEOUT_ENV),
                default=constant.DEFAULT_CONNECT_TIMEOUT,
            ),
            operation_timeout=_parse_timeout(
                constant.OPERATION_TIMEOUT_ENV,
                environ.get(constant.OPERATION_TIMEOUT_ENV),
                default=constant.DEFAULT_OPERATION_TIMEOUT,
            ),
        )

        return cls(
            module_connection_string=environ.get(constant.MODULE_CONNECTION_STRING_ENV, ""),
            gateway_connection_string=environ.get(constant.GATEWAY_CONNECTION_STRING_ENV, ""),
            bypass_cert_verification=bypass_cert_verification,
            transport=transport,
        )


# Sanitization #


def _parse_required(name: str, value: str) -> cs.ConnectionString:
    if not value or not value.strip():
        logger.error("Missing connection string: {}".format(name))
        raise ConfigurationError("Missing connection string: {}".format(name))
    try:
        return cs.ConnectionString(value)
    except (ValueError, TypeError) as e:
        raise ConfigurationError("Invalid connection string: {}".format(name)) from e


def _parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError("Invalid boolean value for {}: '{}'".format(name, value))


def _parse_number(name: str, value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError("Invalid numeric value for {}: '{}'".format(name, value))


def _parse_timeout(name: str, value: Optional[str], default: float) -> Optional[float]:
    if value is not None and value.strip().lower() in _NO_TIMEOUT_VALUES:
        return None
    return _parse_number(name, value, default)


def _sanitize_keep_alive(keep_alive: Any) -> int:
    try:
        keep_alive = int(keep_alive)
    except (ValueError, TypeError):
        raise ConfigurationError("Invalid type for 'keep alive'. Must be a numeric value.")

    if keep_alive <= 0:
        # Not allowing a keep alive of 0 as this would mean frequent ping exchanges.
        raise ConfigurationError("'keep alive' must be greater than 0")

    if keep_alive > constant.MAX_KEEP_ALIVE_SECS:
        raise ConfigurationError("'keep_alive' cannot exceed 1740 seconds (29 minutes)")

    return keep_alive


def _sanitize_timeout(name: str, timeout: Any) -> Optional[float]:
    if timeout is None:
        return None
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ConfigurationError("Invalid type for '{}'. Must be a numeric value.".format(name))
    if timeout <= 0:
        raise ConfigurationError("'{}' must be greater than 0".format(name))
    return float(timeout)
