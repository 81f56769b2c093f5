"""Download, decompress and materialise shipped log objects locally."""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Union

from lognexus.config.settings import S3Settings
from lognexus.core.compression import GzipStreamDecoder
from lognexus.core.models import RemoteObject, RetrievalReport
from lognexus.errors import DecompressionError, NotFoundError, TransientTransferError
from lognexus.monitoring.metrics import RETRIEVED_OBJECTS
from lognexus.shipper.storage import DEFAULT_CHUNK_SIZE, ObjectStore, S3ObjectStore
from lognexus.utils.logging import get_logger, log_context

logger = get_logger(__name__)

DECOMPRESSED_SUFFIX = ".decompressed"


def local_name_for(key: str) -> str:
    """Local file name for an object: its base name plus ``.decompressed``."""
    return PurePosixPath(key).name + DECOMPRESSED_SUFFIX


class LogRetriever:
    """Lists a prefix and writes each object's gunzipped body to a directory."""

    def __init__(self, store: ObjectStore, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.store = store
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(
        cls, settings: Optional[S3Settings] = None, s3_client: Any = None
    ) -> "LogRetriever":
        settings = settings or S3Settings.from_env()
        settings.require(require_region=True)
        return cls(S3ObjectStore.from_settings(settings, s3_client))

    async def retrieve(
        self, prefix: str, local_dir: Union[str, os.PathLike[str]]
    ) -> RetrievalReport:
        """
        Materialise every object under ``prefix`` into ``local_dir``.

        Objects whose local file already exists are skipped, so repeated
        runs only fetch what is new. Per-object failures are logged and
        skipped; an empty listing raises NotFoundError and listing errors
        propagate.
        """
        if not prefix:
            raise ValueError("S3 prefix is required")
        if not local_dir:
            raise ValueError("Local download directory is required")

        target = Path(local_dir)
        target.mkdir(parents=True, exist_ok=True)

        with log_context(bucket=self.store.bucket, prefix=prefix):
            try:
                listing = await self.store.list_objects(prefix)
            except Exception as exc:
                logger.error("log_listing_failed", error=str(exc), exc_info=exc)
                raise

            objects = [obj for obj in listing if not obj.key.endswith("/")]
            if not objects:
                raise NotFoundError(self.store.bucket, prefix)

            report = RetrievalReport(prefix=prefix, listed=len(objects))
            for obj in objects:
                await self._retrieve_one(obj, target, report)

            logger.info(
                "log_retrieval_finished",
                listed=report.listed,
                downloaded=len(report.downloaded),
                skipped=len(report.skipped),
                failed=len(report.failed),
                local_dir=str(target),
            )
            return report

    async def _retrieve_one(
        self, obj: RemoteObject, target: Path, report: RetrievalReport
    ) -> None:
        dest = target / local_name_for(obj.key)
        if dest.exists():
            logger.info("log_object_skipped", key=obj.key, path=str(dest))
            report.skipped.append(obj.key)
            RETRIEVED_OBJECTS.labels(outcome="skipped").inc()
            return

        logger.info("log_object_downloading", key=obj.key, size=obj.size)
        try:
            written = await asyncio.to_thread(self._materialize, obj.key, dest)
        except DecompressionError as exc:
            logger.warning("log_object_decompression_failed", key=obj.key, error=exc.reason)
            report.failed.append(obj.key)
            RETRIEVED_OBJECTS.labels(outcome="decompression_failed").inc()
        except (TransientTransferError, OSError) as exc:
            logger.warning("log_object_download_failed", key=obj.key, error=str(exc))
            report.failed.append(obj.key)
            RETRIEVED_OBJECTS.labels(outcome="download_failed").inc()
        except Exception as exc:  # noqa: BLE001 - one bad object must not end the run
            logger.error("log_object_failed", key=obj.key, error=str(exc), exc_info=exc)
            report.failed.append(obj.key)
            RETRIEVED_OBJECTS.labels(outcome="failed").inc()
        else:
            logger.info("log_object_saved", key=obj.key, path=str(dest), bytes=written)
            report.downloaded.append(obj.key)
            RETRIEVED_OBJECTS.labels(outcome="downloaded").inc()

    def _materialize(self, key: str, dest: Path) -> int:
        """Stream, gunzip and atomically write one object. Blocking."""
        decoder = GzipStreamDecoder(key)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{dest.name}.", suffix=".part", dir=dest.parent
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in self.store.iter_chunks(key, self.chunk_size):
                    fh.write(decoder.feed(chunk))
                fh.write(decoder.finish())
                written = fh.tell()
            os.replace(tmp_path, dest)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
        return written


async def retrieve(
    prefix: str,
    local_dir: Union[str, os.PathLike[str]],
    settings: Optional[S3Settings] = None,
    *,
    s3_client: Any = None,
) -> RetrievalReport:
    """Download and decompress all log objects under ``prefix`` into ``local_dir``."""
    retriever = LogRetriever.from_settings(settings, s3_client=s3_client)
    return await retriever.retrieve(prefix, local_dir)


__all__ = ["LogRetriever", "retrieve", "local_name_for", "DECOMPRESSED_SUFFIX"]
