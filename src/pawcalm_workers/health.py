"""Health and metrics HTTP endpoint for container healthchecks.

Served with asyncio.start_server; only GET /health and GET /metrics exist.
"""

import asyncio
import json
import logging

import psycopg

from .metrics import get_metrics

logger = logging.getLogger(__name__)

_STATUS_LINES = {
    200: "HTTP/1.1 200 OK",
    404: "HTTP/1.1 404 Not Found",
    503: "HTTP/1.1 503 Service Unavailable",
}


def _http_response(status: int, payload: dict) -> bytes:
    body = json.dumps(payload)
    return (
        f"{_STATUS_LINES[status]}\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n\r\n{body}"
    ).encode()


async def _database_status(db_url: str) -> str:
    """Run SELECT 1 with a 2s budget. Returns 'ok' or 'error'."""
    try:
        async with asyncio.timeout(2):
            async with await psycopg.AsyncConnection.connect(
                db_url, autocommit=True
            ) as conn:
                await conn.execute("SELECT 1")
        return "ok"
    except (OSError, TimeoutError, psycopg.Error):
        return "error"


async def _route(path: str, db_url: str) -> bytes:
    if path == "/health":
        db_status = await _database_status(db_url)
        metrics = get_metrics()
        status = "ok" if db_status == "ok" else "degraded"
        return _http_response(
            200 if status == "ok" else 503,
            {
                "status": status,
                "uptime_seconds": metrics["uptime_seconds"],
                "db": db_status,
            },
        )
    if path == "/metrics":
        return _http_response(200, get_metrics())
    return _http_response(404, {"error": "not_found"})


async def _serve(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    db_url: str,
) -> None:
    try:
        request_line = await asyncio.wait_for(reader.readline(), timeout=5)
        # "GET /health HTTP/1.1\r\n"
        parts = request_line.decode("utf-8", errors="replace").strip().split()
        path = parts[1] if len(parts) >= 2 else "/"
        writer.write(await _route(path, db_url))
        await writer.drain()
    except (OSError, TimeoutError, UnicodeError):
        logger.debug("Health endpoint request error", exc_info=True)
    finally:
        writer.close()
        await writer.wait_closed()


async def start_health_server(port: int, db_url: str) -> asyncio.Server:
    """Start the health HTTP server. Returns the asyncio.Server for lifecycle management."""

    async def handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await _serve(reader, writer, db_url)

    server = await asyncio.start_server(handler, "0.0.0.0", port)
    logger.info("Health endpoint listening on port %d", port)
    return server
