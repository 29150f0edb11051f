# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""Entry point of the edge module.

Reads configuration from the environment injected by the IoT Edge runtime, installs the
edge CA certificate, starts the module and runs until interrupted.
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional
from . import constant
from .config import ModuleConfig
from .edge_module import EdgeTestModule
from .exceptions import ConfigurationError
from .trust_store import TrustStore, get_user_trust_store, install_certificate_from_environment

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-5s (%(threadName)s) %(filename)s:%(funcName)s():%(message)s"

# Loggers of the messaging stack, which are very chatty below WARNING
_TRANSPORT_LOGGERS = ("azure.iot.device", "paho")


def configure_logging(level: str = "INFO") -> None:
    """Send all log output to the console"""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ConfigurationError("Invalid log level: '{}'".format(level))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)

    transport_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)


def install_cancellation_handlers(
    loop: asyncio.AbstractEventLoop, cancel_event: asyncio.Event
) -> None:
    """Set the event when the process is interrupted or asked to terminate"""
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel_event.set)
        except NotImplementedError:
            # The Windows event loops do not support signal handlers
            signal.signal(signum, lambda *args: loop.call_soon_threadsafe(cancel_event.set))


async def run(
    config: ModuleConfig,
    trust_store: Optional[TrustStore] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> EdgeTestModule:
    """Run the module until the cancel event is set. Both sessions are closed before returning.

    :param config: The module configuration
    :param trust_store: Store holding the certificates to trust
    :param cancel_event: Event that ends the run. If not provided, SIGINT and SIGTERM end it
    :returns: The module that ran
    """
    if cancel_event is None:
        cancel_event = asyncio.Event()
        install_cancellation_handlers(asyncio.get_running_loop(), cancel_event)

    async with EdgeTestModule(config, trust_store=trust_store) as module:
        # Wait until the app unloads or is cancelled
        await cancel_event.wait()
        logger.info("Cancellation requested, shutting down")
    return module


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        "edge-twins-module", description="IoT Edge twin and message pass-through test module"
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=os.environ.get(constant.LOG_LEVEL_ENV, "INFO"),
        help="Logging level (default: INFO)",
    )
    verification = parser.add_mutually_exclusive_group()
    verification.add_argument(
        "--bypass-cert-verification",
        dest="bypass_cert_verification",
        action="store_const",
        const=True,
        default=None,
        help="Accept any certificate presented by the edge hub. Development only",
    )
    verification.add_argument(
        "--verify-certs",
        dest="bypass_cert_verification",
        action="store_const",
        const=False,
        help="Install the edge CA certificate and verify the edge hub against it",
    )
    parser.add_argument("--version", action="version", version=constant.VERSION)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        configure_logging(args.log_level)
        config = ModuleConfig.from_environment(
            bypass_cert_verification=args.bypass_cert_verification
        )
        trust_store = get_user_trust_store()
        if config.bypass_cert_verification:
            logger.warning(
                "Certificate verification is bypassed. Never do this in production deployments"
            )
        else:
            install_certificate_from_environment(store=trust_store)
    except ConfigurationError as e:
        logger.error(constant.ERROR_BRACKET)
        logger.error("Configuration error: {}".format(e))
        logger.error(constant.ERROR_BRACKET)
        return 1

    asyncio.run(run(config, trust_store=trust_store))
    return 0


if __name__ == "__main__":
    sys.exit(main())
