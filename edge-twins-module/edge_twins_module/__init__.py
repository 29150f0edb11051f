""" Azure IoT Edge Twins Module

This package provides an IoT Edge test module that synchronizes the twins of a module and its
edge gateway device, and pipes messages from one module input to one module output.
"""

from .constant import VERSION as __version__  # noqa: F401
from .config import ModuleConfig, TransportSettings  # noqa: F401
from .exceptions import ConfigurationError, SessionError, RelayContextError  # noqa: F401
from .session import ModuleSession  # noqa: F401
from .twin_sync import TwinSyncResult, SyncStatus, synchronize_twin  # noqa: F401
from .message_relay import MessageRelay, MessageResponse, AtomicCounter  # noqa: F401
from .edge_module import EdgeTestModule  # noqa: F401
from .trust_store import TrustStore  # noqa: F401
