# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module defines constants for use across the edge_twins_module package
"""

VERSION = "1.0.0"
PRODUCT_INFO = "edge-twins-module/" + VERSION

# Environment variables injected by the IoT Edge runtime (or the local debug harness)
MODULE_CONNECTION_STRING_ENV = "EdgeHubConnectionString"
GATEWAY_CONNECTION_STRING_ENV = "EdgeHubGwDeviceConnectionString"
CA_CERTIFICATE_FILE_ENV = "EdgeModuleCACertificateFile"
BYPASS_CERT_VERIFICATION_ENV = "EdgeModuleBypassCertVerification"
CONNECT_TIMEOUT_ENV = "EdgeModuleConnectTimeout"
OPERATION_TIMEOUT_ENV = "EdgeModuleOperationTimeout"
KEEP_ALIVE_ENV = "EdgeModuleKeepAlive"
LOG_LEVEL_ENV = "EdgeModuleLogLevel"

# Edge hub routes
INPUT_NAME = "input1"
OUTPUT_NAME = "output1"

# Transport
MQTT_TLS_PORT = 8883
DEFAULT_KEEP_ALIVE = 60
DEFAULT_CONNECT_TIMEOUT = 60
DEFAULT_OPERATION_TIMEOUT = 30
# The max keep alive is determined by the load balancer currently.
MAX_KEEP_ALIVE_SECS = 1740

# Twin reported properties
REPORTED_PROPERTY_PREFIX = "First Reported Property"
# Exclusive upper bound of the random suffix (max value of a signed 32-bit int)
REPORTED_PROPERTY_RANDOM_LIMIT = 2**31 - 1

ERROR_BRACKET = "--- ERROR ---"
DONE_MARKER = "--- Done ---"
SECTION_SEPARATOR = "--------------------------------------"
