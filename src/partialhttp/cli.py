"""CLI implementation for partialhttp."""

import asyncio
import base64
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from . import open_reader, open_reader_async
from .io.base import BLOCK_SIZE
from .io.http_async import close_global_client

app = typer.Typer(add_completion=False, help="Read byte windows from URLs via HTTP Range requests.")

logger = logging.getLogger("partialhttp")


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(level)
    if debug:
        logger.debug("Debug logging enabled")


def iter_sources(urls: list[str]) -> list[str]:
    """Get list of URLs from the argument or stdin."""
    if "-" in urls:
        # stdin mode
        return [ln.strip() for ln in sys.stdin if ln.strip()]
    elif urls:
        return list(urls)
    return []


def _window(size: int, offset: int, length: Optional[int]) -> int:
    available = max(size - offset, 0)
    return available if length is None else min(length, available)


def _success(url: str, reader, offset: int, data: bytes) -> Dict[str, Any]:
    return {
        "success": True,
        "url": url,
        "size": reader.size,
        "offset": offset,
        "length": len(data),
        "data_b64": base64.b64encode(data).decode(),
        "bytes_fetched": reader.bytes_fetched,
        "requests_made": reader.requests_made,
    }


def _failure(url: str, exc: BaseException) -> Dict[str, Any]:
    return {"success": False, "url": url, "error": str(exc)}


def read_window_sync(url: str, offset: int, length: Optional[int], block_size: int) -> Dict[str, Any]:
    reader = open_reader(url, block_size=block_size)
    buf = bytearray(_window(reader.size, offset, length))
    n = reader.read_at(buf, offset)
    return _success(url, reader, offset, bytes(buf[:n]))


async def read_window(url: str, offset: int, length: Optional[int], block_size: int) -> Dict[str, Any]:
    reader = await open_reader_async(url, block_size=block_size)
    buf = bytearray(_window(reader.size, offset, length))
    n = await reader.read_at(buf, offset)
    return _success(url, reader, offset, bytes(buf[:n]))


async def _batch_read(sources: list[str], offset: int, length: Optional[int], block_size: int) -> list[Dict[str, Any]]:
    """Asynchronously read the same window from a list of URLs."""
    try:
        tasks = [read_window(src, offset, length, block_size) for src in sources]
        results = await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        await close_global_client()
    processed_results = []
    for src, res in zip(sources, results):
        if isinstance(res, Exception):
            processed_results.append(_failure(src, res))
        else:
            processed_results.append(res)
    return processed_results


def _select(obj: Dict[str, Any], fields: Optional[set]) -> Dict[str, Any]:
    if not fields:
        return obj
    return {k: v for k, v in obj.items() if k in fields or k == "success"}


@app.command()
def main(
    urls: list[str] = typer.Argument(None, help="URLs to read from, or '-' for stdin"),
    offset: int = typer.Option(0, "--offset", min=0, help="Absolute offset of the window"),
    length: Optional[int] = typer.Option(None, "--length", min=0, help="Window length (default: to end of resource)"),
    block_size: int = typer.Option(BLOCK_SIZE, "--block-size", min=1, help="Cache block size in bytes"),
    fields: Optional[str] = typer.Option(None, "--fields", help="Comma-separated subset of keys to emit"),
    jsonl: bool = typer.Option(False, "--jsonl", help="Force JSON-lines output"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    sync: bool = typer.Option(False, "--sync", help="Force synchronous I/O"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Read a byte window from one or many URLs and print it as JSON."""
    setup_logging(debug)
    sel_fields = set(fields.split(",")) if fields else None
    sources = iter_sources(urls or [])

    if not sources:
        typer.echo("No input URLs given.", err=True)
        raise typer.Exit(code=1)

    results: list[Dict[str, Any]] = []
    if sync:
        for src in sources:
            try:
                res = read_window_sync(src, offset, length, block_size)
            except Exception as e:
                logger.debug("Read of %s failed", src, exc_info=True)
                res = _failure(src, e)
            results.append(res)
    else:
        results = asyncio.run(_batch_read(sources, offset, length, block_size))

    # open output sink
    sink = open(output, "w", encoding="utf-8") if output else sys.stdout
    try:
        # choose output style
        if len(sources) == 1 and not jsonl:
            json.dump(_select(results[0], sel_fields), sink, indent=2)
            sink.write("\n")
        else:
            for res in results:
                sink.write(json.dumps(_select(res, sel_fields)))
                sink.write("\n")
    finally:
        if output:
            sink.close()

    # exit code
    if any(not r["success"] for r in results):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
