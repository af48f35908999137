"""
Stream plumbing shared by biomes that run subprocesses.

Invocation streams may be binary or text file objects (``sys.stdout``
is text, ``io.BytesIO`` is binary). Subprocess pipes are always
binary, so these helpers convert at the edge.
"""

from __future__ import annotations

import codecs
import io
import logging
import threading
from typing import IO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024


def is_text(stream: IO) -> bool:
    return isinstance(stream, io.TextIOBase)


def pump(src: IO[bytes], dst: IO, lock: threading.Lock | None = None) -> None:
    """Copy ``src`` to ``dst`` until EOF, then close ``src``.

    ``lock`` serialises writes when two pumps share one sink.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace") if is_text(dst) else None
    try:
        while True:
            chunk = src.read1(CHUNK_SIZE) if hasattr(src, "read1") else src.read(CHUNK_SIZE)
            if not chunk:
                break
            data = decoder.decode(chunk) if decoder else chunk
            if lock is None:
                _write(dst, data)
            else:
                with lock:
                    _write(dst, data)
        if decoder:
            tail = decoder.decode(b"", final=True)
            if tail:
                _write(dst, tail)
    finally:
        src.close()


def _write(dst: IO, data) -> None:
    dst.write(data)
    flush = getattr(dst, "flush", None)
    if flush is not None:
        flush()


def feed(src: IO, pipe: IO[bytes]) -> None:
    """Copy ``src`` into a subprocess's stdin pipe, then close the pipe.

    A child that exits without reading all of its input is not an
    error.
    """
    text = is_text(src)
    try:
        while True:
            chunk = src.read(CHUNK_SIZE)
            if not chunk:
                break
            pipe.write(chunk.encode("utf-8") if text else chunk)
    except BrokenPipeError:
        logger.debug("Subprocess closed stdin early")
    finally:
        try:
            pipe.close()
        except BrokenPipeError:
            pass


def start_daemon(target, *args) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread
