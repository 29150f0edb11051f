# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""Define edge module exceptions to be shared across package"""


class ConfigurationError(Exception):
    """Represents a missing or invalid configuration value"""

    pass


class SessionError(Exception):
    """Represents a failure from the ModuleSession object"""

    pass


class RelayContextError(Exception):
    """Represents a message relay invoked with an unexpected context.

    This indicates a wiring defect and is not meant to be recovered from at runtime.
    """

    pass
