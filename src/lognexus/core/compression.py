"""gzip helpers: whole-buffer compression and incremental decompression."""

from __future__ import annotations

import gzip
import zlib

from lognexus.errors import DecompressionError

_GZIP_WBITS = zlib.MAX_WBITS | 16


def gzip_bytes(data: bytes, level: int = 6) -> bytes:
    """Compress ``data`` into a single gzip member."""
    return gzip.compress(data, compresslevel=level, mtime=0)


class GzipStreamDecoder:
    """
    Incremental gzip decoder for streamed object bodies.

    Handles concatenated members (what ``cat a.gz b.gz`` produces) and
    raises DecompressionError for non-gzip, truncated or empty input.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self._decomp = zlib.decompressobj(_GZIP_WBITS)
        self._seen_input = False

    def feed(self, chunk: bytes) -> bytes:
        out: list[bytes] = []
        data = chunk
        try:
            while data:
                if self._decomp.eof:
                    if not data.strip(b"\x00"):
                        break
                    self._decomp = zlib.decompressobj(_GZIP_WBITS)
                self._seen_input = True
                out.append(self._decomp.decompress(data))
                data = self._decomp.unused_data if self._decomp.eof else b""
        except zlib.error as exc:
            raise DecompressionError(self.key, str(exc)) from exc
        return b"".join(out)

    def finish(self) -> bytes:
        if not self._seen_input:
            raise DecompressionError(self.key, "empty body")
        if not self._decomp.eof:
            raise DecompressionError(self.key, "truncated gzip stream")
        try:
            return self._decomp.flush()
        except zlib.error as exc:
            raise DecompressionError(self.key, str(exc)) from exc


__all__ = ["gzip_bytes", "GzipStreamDecoder"]
