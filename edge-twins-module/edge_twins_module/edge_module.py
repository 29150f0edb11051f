# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import asyncio
import contextlib
import functools
import logging
from types import TracebackType
from typing import List, Optional, Type
from typing_extensions import Self
from . import constant
from . import connection_string as cs
from .config import ModuleConfig, TransportSettings
from .message_relay import MessageRelay
from .session import ModuleSession
from .trust_store import TrustStore, fetch_presented_chain, get_user_trust_store
from .twin_sync import TwinSyncResult, synchronize_twin

logger = logging.getLogger(__name__)

MODULE_LABEL = "module"
GATEWAY_LABEL = "gateway"


class EdgeTestModule:
    """The running module: two open sessions, their twin synchronization results, and the
    message relay registered on the module session.

    Entering the context opens both sessions, synchronizes both twins and starts the relay.
    Exiting it closes both sessions.
    """

    def __init__(
        self,
        config: ModuleConfig,
        trust_store: Optional[TrustStore] = None,
        relay: Optional[MessageRelay] = None,
    ) -> None:
        self._config = config
        self._trust_store = trust_store if trust_store is not None else get_user_trust_store()
        self.relay = relay if relay is not None else MessageRelay()

        self.module_session: Optional[ModuleSession] = None
        self.gateway_session: Optional[ModuleSession] = None
        self.twin_results: List[TwinSyncResult] = []
        self._exit_stack: Optional[contextlib.AsyncExitStack] = None

    async def __aenter__(self) -> Self:
        """
        Open both sessions, synchronize their twins, and register the message relay

        :raises: Any error raised while opening a session. Sessions already opened are closed
        """
        logger.info(
            "Module Connection String {}".format(self._config.module_connection_string.redacted())
        )
        logger.info(
            "Edge Gateway Connection String {}".format(
                self._config.gateway_connection_string.redacted()
            )
        )

        async with contextlib.AsyncExitStack() as stack:
            self.module_session = await stack.enter_async_context(
                ModuleSession(
                    self._config.module_connection_string,
                    await self._transport_for(self._config.module_connection_string),
                    label=MODULE_LABEL,
                )
            )
            logger.info("IoT Hub module client initialized.")

            self.gateway_session = await stack.enter_async_context(
                ModuleSession(
                    self._config.gateway_connection_string,
                    await self._transport_for(self._config.gateway_connection_string),
                    label=GATEWAY_LABEL,
                )
            )
            logger.info("IoT edge gateway device client initialized.")

            self.twin_results = []
            for title, session in (
                ("Module", self.module_session),
                ("Gateway", self.gateway_session),
            ):
                logger.info("Reading and Writing {} Device Twin".format(title))
                self.twin_results.append(await synchronize_twin(session))
                logger.info(constant.SECTION_SEPARATOR)
                logger.info("")

            self.relay.register(self.module_session)

            # Startup succeeded, so the sessions now belong to this object
            self._exit_stack = stack.pop_all()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Close both sessions, in reverse order of opening"""
        stack, self._exit_stack = self._exit_stack, None
        if stack is not None:
            await stack.aclose()

    async def _transport_for(self, connection_string: cs.ConnectionString) -> TransportSettings:
        transport = self._config.transport
        if not connection_string.via_gateway:
            # A server_verification_cert replaces the platform roots instead of adding to them
            return transport.with_server_verification_cert(None)
        if self._config.bypass_cert_verification:
            # During dev you might want to bypass the cert verification. It is highly
            # recommended to verify certs systematically in production
            presented_chain = await asyncio.get_running_loop().run_in_executor(
                None,
                functools.partial(
                    fetch_presented_chain,
                    connection_string.hostname,
                    timeout=transport.connect_timeout,
                ),
            )
            return transport.with_server_verification_cert(presented_chain)
        return transport.with_server_verification_cert(self._trust_store.pem_bundle())
