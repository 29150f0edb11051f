# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the handler that pipes messages from an input of the module to an
output, without any change.
"""
import enum
import logging
import threading
from typing import Optional
from azure.iot.device import Message
from . import constant
from .exceptions import RelayContextError
from .session import ModuleSession

logger = logging.getLogger(__name__)


class MessageResponse(enum.Enum):
    """Acknowledgement returned to the session for an inbound message"""

    COMPLETED = "completed"


class AtomicCounter:
    """An integer counter that can be incremented safely from multiple threads"""

    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Increment the counter by one, and return the new value"""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class MessageRelay:
    """Pipes every message received on an input to an output of the same module session.

    The counter is incremented once per received message and is only used to correlate
    log output.
    """

    def __init__(
        self,
        input_name: str = constant.INPUT_NAME,
        output_name: str = constant.OUTPUT_NAME,
        counter: Optional[AtomicCounter] = None,
    ) -> None:
        self.input_name = input_name
        self.output_name = output_name
        self.counter = counter if counter is not None else AtomicCounter()

    def register(self, session: ModuleSession) -> None:
        """Start relaying messages received by the session on the relay's input"""
        session.set_input_message_handler(self.input_name, self.handle_message, session)

    async def handle_message(self, message: Message, context: object) -> MessageResponse:
        """Handle a message received by the module.

        :param message: The received message
        :param context: The session the message was received on. Forwarded messages are sent
            on the same session
        :returns: MessageResponse.COMPLETED, whether or not the message was forwarded
        :raises: RelayContextError if context is not a ModuleSession
        """
        counter_value = self.counter.increment()

        if not isinstance(context, ModuleSession):
            raise RelayContextError("UserContext doesn't contain expected values")

        message_bytes = _payload_bytes(message.data)
        # Only used for logging. Forwarding always uses the raw bytes
        message_string = message_bytes.decode("utf-8", errors="replace")
        logger.info("Received message: {}, Body: [{}]".format(counter_value, message_string))

        if message_string:
            pipe_message = Message(message_bytes)
            for key, value in message.custom_properties.items():
                pipe_message.custom_properties[key] = value
            await context.send_message_to_output(pipe_message, self.output_name)
            logger.info("Received message sent")

        return MessageResponse.COMPLETED


def _payload_bytes(data: object) -> bytes:
    if data is None:
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")
    raise TypeError("Unsupported message payload type: {}".format(type(data).__name__))
