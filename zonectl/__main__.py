# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
zonectl command line entry point.

    zonectl [--config PATH] [--ip HOST] [--port PORT] [--log-level LEVEL]

Without ``--ip`` the hosts listed under ``server.hosts`` in the config are
probed in order.  UI events are written to the log; a front end consumes the
same queue when it embeds ``ConnectionSupervisor``.
"""

import argparse
import asyncio
import logging
import signal

from .lib.config import cfg, config_path, set_config_path
from .lib.store import SettingsStore
from .supervisor import ConnectionSupervisor

logger = logging.getLogger("zonectl")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="zonectl", description="Music server zone controller")
    parser.add_argument("--config", help="path to config.json")
    parser.add_argument("--ip", help="connect directly to this server instead of probing")
    parser.add_argument("--port", type=int, help="server port")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


async def log_ui_events(ui: asyncio.Queue):
    while True:
        event = await ui.get()
        logger.info("UI <- %s: %s", event.type, event.data)


async def main(args) -> None:
    state_path = cfg("state", "path", default=None) or config_path()
    store = SettingsStore(state_path)
    ui = asyncio.Queue()
    intents = asyncio.Queue()
    supervisor = ConnectionSupervisor(store, ui, intents, ip=args.ip, port=args.port)

    tasks = [
        asyncio.ensure_future(supervisor.run()),
        asyncio.ensure_future(log_ui_events(ui)),
    ]

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def run(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    set_config_path(args.config)
    asyncio.run(main(args))


if __name__ == "__main__":
    run()
