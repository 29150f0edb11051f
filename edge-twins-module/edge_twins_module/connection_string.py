# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains tools for inspecting the Connection Strings handed to the module
by the IoT Edge runtime.

The strings themselves are passed through to the device SDK untouched. Parsing them here
lets the module fail fast on malformed configuration, pick the right client type for an
identity, find the gateway it will connect to, and log an identity without leaking its
credentials.
"""
from typing import Dict, Optional

__all__ = ["ConnectionString"]

CS_DELIMITER = ";"
CS_VAL_SEPARATOR = "="

HOST_NAME = "HostName"
SHARED_ACCESS_KEY_NAME = "SharedAccessKeyName"
SHARED_ACCESS_KEY = "SharedAccessKey"
SHARED_ACCESS_SIGNATURE = "SharedAccessSignature"
DEVICE_ID = "DeviceId"
MODULE_ID = "ModuleId"
GATEWAY_HOST_NAME = "GatewayHostName"
X509 = "x509"

_valid_keys = [
    HOST_NAME,
    SHARED_ACCESS_KEY_NAME,
    SHARED_ACCESS_KEY,
    SHARED_ACCESS_SIGNATURE,
    DEVICE_ID,
    MODULE_ID,
    GATEWAY_HOST_NAME,
    X509,
]

# Values of these keys are never written to logs
_secret_keys = [SHARED_ACCESS_KEY, SHARED_ACCESS_SIGNATURE]
REDACTED = "<redacted>"


class ConnectionString:
    """Key/value mappings for connection details.
    Uses the same syntax as dictionary
    """

    def __init__(self, connection_string: str) -> None:
        """Initializer for ConnectionString

        :param str connection_string: String with connection details provided by Azure
        :raises: ValueError if provided connection_string is invalid
        :raises: TypeError if provided connection_string is not a string
        """
        self._dict = _parse_connection_string(connection_string)
        self._strrep = connection_string

    def __contains__(self, item: str) -> bool:
        return item in self._dict

    def __getitem__(self, key: str) -> str:
        return self._dict[key]

    def __str__(self) -> str:
        return self._strrep

    def __repr__(self) -> str:
        return "ConnectionString({})".format(self.redacted())

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the value for key if key is in the dictionary, else default

        :param str key: The key to retrieve a value for
        :param str default: The default value returned if a key is not found
        :returns: The value for the given key
        """
        return self._dict.get(key, default)

    def redacted(self) -> str:
        """Return the connection string with all credential values masked"""
        return CS_DELIMITER.join(
            "{}{}{}".format(key, CS_VAL_SEPARATOR, REDACTED if key in _secret_keys else value)
            for key, value in self._dict.items()
        )

    @property
    def device_id(self) -> str:
        return self._dict[DEVICE_ID]

    @property
    def module_id(self) -> Optional[str]:
        return self._dict.get(MODULE_ID)

    @property
    def is_module(self) -> bool:
        return bool(self.module_id)

    @property
    def via_gateway(self) -> bool:
        """True if the connection is made to an IoT Edge gateway rather than to IoT Hub"""
        return bool(self._dict.get(GATEWAY_HOST_NAME))

    @property
    def hostname(self) -> str:
        """The hostname the connection is actually made to (the gateway, if there is one)"""
        return self._dict.get(GATEWAY_HOST_NAME) or self._dict[HOST_NAME]

    @property
    def identity(self) -> str:
        if self.is_module:
            return "{}/{}".format(self.device_id, self.module_id)
        return self.device_id


def _parse_connection_string(connection_string: str) -> Dict[str, str]:
    """Return a dictionary of values contained in a given connection string"""
    try:
        cs_args = connection_string.strip().strip(CS_DELIMITER).split(CS_DELIMITER)
    except (AttributeError, TypeError):
        raise TypeError("Connection String must be of type str")
    try:
        d = dict(arg.split(CS_VAL_SEPARATOR, 1) for arg in cs_args)
    except ValueError:
        # This occurs in an extreme edge case where a dictionary cannot be formed because there
        # is only 1 token after the split (dict requires two in order to make a key/value pair)
        raise ValueError("Invalid Connection String - Unable to parse")
    if len(cs_args) != len(d):
        # various errors related to incorrect parsing - duplicate args, bad syntax, etc.
        raise ValueError("Invalid Connection String - Unable to parse")
    if not all(key in _valid_keys for key in d.keys()):
        raise ValueError("Invalid Connection String - Invalid Key")
    _validate_keys(d)
    return d


def _validate_keys(d: Dict[str, str]) -> None:
    """Raise ValueError if incorrect combination of keys in dict d"""
    x509 = d.get(X509)

    # Validate only one type of auth included
    auth_count = 0
    if d.get(SHARED_ACCESS_KEY):
        auth_count += 1
    if x509 and x509.lower() == "true":
        auth_count += 1
    if d.get(SHARED_ACCESS_SIGNATURE):
        auth_count += 1

    if auth_count > 1:
        raise ValueError("Invalid Connection String - Mixed authentication scheme")
    elif auth_count < 1:
        raise ValueError("Invalid Connection String - No authentication scheme")

    # Validate connection details
    if not d.get(HOST_NAME) or not d.get(DEVICE_ID):
        raise ValueError("Invalid Connection String - Missing connection details")
