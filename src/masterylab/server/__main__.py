"""MasteryLab JSON-lines server entry point.

Usage: python -m masterylab.server

Reads JSON requests from stdin (one per line), writes JSON responses to stdout.
All logging goes to stderr to keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import json
import sys

from loguru import logger

from .handler import ServerHandler
from .protocol import Notification, Request, Response


async def main() -> None:
    loop = asyncio.get_event_loop()

    # Log to stderr so stdout stays clean for protocol messages
    logger.remove()
    logger.add(sys.stderr, level="INFO")

    def write_line(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def write_notification(notification: Notification) -> None:
        write_line(notification.to_json_line())

    handler = ServerHandler(write_notification=write_notification)

    logger.info("masterylab-server: ready")

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    while True:
        line = await reader.readline()
        if not line:
            break  # stdin closed

        line_str = line.decode("utf-8", errors="replace").strip()
        if not line_str:
            continue

        try:
            req = Request.from_dict(json.loads(line_str))
        except ValueError as e:
            resp = Response.failure(0, f"Invalid request: {e}")
            write_line(resp.to_json_line())
            continue

        try:
            result = await handler.dispatch(req.to_message())
            resp = Response(id=req.id, result=result)
        except Exception as e:
            logger.error(f"masterylab-server: {req.method} failed: {e}")
            resp = Response.failure(req.id, e)

        write_line(resp.to_json_line())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
