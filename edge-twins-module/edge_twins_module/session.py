# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import asyncio
import functools
import logging
from types import TracebackType
from typing import Any, Awaitable, Dict, Optional, Tuple, Type, TypeVar, Union
from typing_extensions import Self
from azure.iot.device import Message
from azure.iot.device.aio import IoTHubDeviceClient, IoTHubModuleClient

from . import connection_string as cs
from . import custom_typing
from .config import TransportSettings
from .exceptions import SessionError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _requires_connection(f):
    """Decorator to indicate a method requires the Session to already be connected."""

    @functools.wraps(f)
    def check_connection_wrapper(*args, **kwargs):
        this = args[0]  # a.k.a. self
        if not this.connected:
            # The client is created with auto_connect disabled. Fail here rather than let the
            # SDK report a less obvious error.
            raise SessionError("ModuleSession '{}' not connected".format(this.label))
        else:
            return f(*args, **kwargs)

    return check_connection_wrapper


class ModuleSession:
    """A connection to the IoT Edge hub for a single identity.

    The underlying client is created and connected upon context manager entry, and shut down
    upon exit, on every exit path.
    """

    def __init__(
        self,
        connection_string: Union[str, cs.ConnectionString],
        transport: Optional[TransportSettings] = None,
        *,
        label: Optional[str] = None,
    ) -> None:
        """
        :param connection_string: Connection string of the identity (module or device)
        :param transport: Transport options. Defaults are used if not provided
        :type transport: :class:`TransportSettings`
        :param str label: Name of the session used in logs. Defaults to the identity

        :raises: ValueError if the provided connection string is invalid
        """
        if not isinstance(connection_string, cs.ConnectionString):
            connection_string = cs.ConnectionString(connection_string)
        self._connection_string = connection_string
        self._transport = transport or TransportSettings()
        self.label = label or connection_string.identity

        self._client: Optional[Union[IoTHubModuleClient, IoTHubDeviceClient]] = None
        self._input_handlers: Dict[str, Tuple[custom_typing.InputMessageHandler, Any]] = {}

    async def __aenter__(self) -> Self:
        """
        Create the client and connect it to the IoT Edge hub

        :raises: asyncio.TimeoutError if connecting does not complete within the connect timeout
        :raises: Any error raised by the client while connecting
        """
        logger.info(
            "Opening session '{}': {}".format(self.label, self._connection_string.redacted())
        )
        client_cls = IoTHubModuleClient if self._connection_string.is_module else IoTHubDeviceClient
        self._client = client_cls.create_from_connection_string(
            str(self._connection_string), **self._transport.client_kwargs()
        )
        try:
            await asyncio.wait_for(self._client.connect(), self._transport.connect_timeout)
        except (Exception, asyncio.CancelledError):
            # Release the client if something goes wrong
            await self._shutdown_client()
            raise
        logger.info("Session '{}' initialized.".format(self.label))
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Disconnect and release the client"""
        logger.info("Closing session '{}'".format(self.label))
        await self._shutdown_client()

    async def _shutdown_client(self) -> None:
        client, self._client = self._client, None
        self._input_handlers.clear()
        if client is not None:
            await client.shutdown()

    @_requires_connection
    async def get_twin(self) -> custom_typing.Twin:
        """Retrieve the full Twin document

        :returns: Twin as a JSON object
        :rtype: dict
        :raises: asyncio.TimeoutError if the operation does not complete within the operation timeout
        :raises: SessionError if there is no connection
        """
        return await self._with_operation_timeout(self._client.get_twin())

    @_requires_connection
    async def update_reported_properties(self, patch: custom_typing.TwinPatch) -> None:
        """Update the reported properties of the Twin

        :param dict patch: JSON object containing the updates to the Twin reported properties
        :raises: asyncio.TimeoutError if the operation does not complete within the operation timeout
        :raises: SessionError if there is no connection
        """
        await self._with_operation_timeout(self._client.patch_twin_reported_properties(patch))

    @_requires_connection
    async def send_message_to_output(self, message: Message, output_name: str) -> None:
        """Send a message to an output of the module

        :raises: asyncio.TimeoutError if the operation does not complete within the operation timeout
        :raises: SessionError if there is no connection, or this is not a module session
        """
        if not self.is_module:
            raise SessionError("Outputs are only available to module sessions")
        await self._with_operation_timeout(
            self._client.send_message_to_output(message, output_name)
        )

    @_requires_connection
    def set_input_message_handler(
        self, input_name: str, handler: custom_typing.InputMessageHandler, context: Any = None
    ) -> None:
        """Register a coroutine function to be called with (message, context) for every message
        received on the named input.

        :raises: SessionError if there is no connection, or this is not a module session
        """
        if not self.is_module:
            raise SessionError("Inputs are only available to module sessions")
        self._input_handlers[input_name] = (handler, context)
        # The client invokes this on its own handler event loop
        self._client.on_message_received = self._dispatch_input_message
        logger.info("Session '{}' listening on input '{}'".format(self.label, input_name))

    async def _dispatch_input_message(self, message: Message) -> None:
        try:
            handler, context = self._input_handlers[message.input_name]
        except KeyError:
            logger.warning(
                "Session '{}' dropped message received on unregistered input '{}'".format(
                    self.label, message.input_name
                )
            )
            return
        response = await handler(message, context)
        logger.debug("Message on input '{}' handled: {}".format(message.input_name, response))

    def _with_operation_timeout(self, coro: Awaitable[_T]) -> Awaitable[_T]:
        return asyncio.wait_for(coro, self._transport.operation_timeout)

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connected

    @property
    def is_module(self) -> bool:
        return self._connection_string.is_module

    @property
    def device_id(self) -> str:
        return self._connection_string.device_id

    @property
    def module_id(self) -> Optional[str]:
        return self._connection_string.module_id

    @property
    def hostname(self) -> str:
        return self._connection_string.hostname
