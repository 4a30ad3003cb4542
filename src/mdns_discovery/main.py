"""
mDNS Discovery Main Entry Point

This script discovers responders for a service on the local network and
prints what they advertise until the timeout expires.
"""

import argparse
import asyncio
import contextlib
import dataclasses
import signal
import sys
from typing import Any, Dict, List, Optional

from mdns_discovery.config.loader import ConfigLoader
from mdns_discovery.core.errors import MDNSError
from mdns_discovery.core.response import Response
from mdns_discovery.discover import Discovery, discover_all
from mdns_discovery.discovery_logging import get_logger, log_exception, setup_logging


class DiscoveryApp:
    """mDNS Discovery Application"""

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.config_path = config_path
        self.overrides = overrides or {}
        self.config = None
        self.logger = None
        self.responses_seen = 0
        self.found: List[Response] = []
        self._shutdown_event = asyncio.Event()

    def initialize(self) -> None:
        """Load configuration and set up logging"""
        config = ConfigLoader(self.config_path).load_config()
        if self.overrides:
            # replace() re-runs the section validation
            config.discovery = dataclasses.replace(config.discovery, **self.overrides)
        self.config = config

        setup_logging(self.config.logging)
        self.logger = get_logger("mdns_discovery_app")
        self.logger.info(
            "Discovery configured",
            service_name=self.config.discovery.service_name,
            interface_address=self.config.discovery.interface_address,
            with_loopback=self.config.discovery.with_loopback,
            query_interval=self.config.discovery.query_interval,
            timeout=self.config.discovery.timeout,
        )

    def _report(self, response: Response) -> None:
        service_name = self.config.discovery.service_name
        host = response.hostname
        address = response.socket_address

        if host is not None and address is not None:
            self.found.append(response)
            print(f"found {service_name} responder {host} at {address}")
        else:
            print(f"{service_name} responder does not advertise address")

    async def _consume(self, discovery: Discovery) -> None:
        async with contextlib.aclosing(discovery.listen()) as responses:
            async for response in responses:
                self.responses_seen += 1
                self._report(response)

    async def run(self) -> None:
        """Run discovery until the timeout or a shutdown signal"""
        if self.config is None:
            self.initialize()

        settings = self.config.discovery
        discovery = discover_all(
            settings.service_name,
            settings.query_interval,
            settings.interface_address,
            settings.with_loopback,
        )

        loop = asyncio.get_running_loop()
        for sig in [signal.SIGTERM, signal.SIGINT]:
            loop.add_signal_handler(sig, self._signal_handler)

        consume_task = asyncio.create_task(self._consume(discovery))
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        try:
            done, pending = await asyncio.wait(
                {consume_task, shutdown_task},
                timeout=settings.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if consume_task in done:
                consume_task.result()
        finally:
            discovery.close()
            for sig in [signal.SIGTERM, signal.SIGINT]:
                loop.remove_signal_handler(sig)

        self.logger.info(
            "Discovery finished",
            responses=self.responses_seen,
            addresses_found=len(self.found),
        )

    def _signal_handler(self) -> None:
        """Handle shutdown signals"""
        self.logger.info("Received shutdown signal")
        self._shutdown_event.set()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="mDNS service discovery")
    parser.add_argument("--config", "-c", help="Configuration file path")
    parser.add_argument("--service", "-s", help="Service name, e.g. _rpc._tcp.local")
    parser.add_argument("--interface", "-i", help="IPv4 address of the interface")
    parser.add_argument(
        "--loopback",
        action="store_true",
        default=None,
        help="Also discover services advertised on this host",
    )
    parser.add_argument("--timeout", "-t", type=float, help="Seconds to listen for")
    parser.add_argument(
        "--interval", type=float, help="Seconds between repeated queries"
    )
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map command line options onto discovery config fields"""
    mapping = {
        "service_name": args.service,
        "interface_address": args.interface,
        "with_loopback": args.loopback,
        "timeout": args.timeout,
        "query_interval": args.interval,
    }
    return {key: value for key, value in mapping.items() if value is not None}


async def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    args = parse_args(argv)
    app = DiscoveryApp(args.config, overrides_from_args(args))

    try:
        app.initialize()
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}")
        return 2

    try:
        await app.run()
    except MDNSError as e:
        log_exception(app.logger, "Discovery failed", e)
        return 1

    return 0


def run() -> None:
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nDiscovery interrupted")


if __name__ == "__main__":
    run()
