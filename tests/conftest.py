import asyncio
import sys
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import boto3
import pytest
from moto import mock_aws

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from lognexus.config import RotationPolicy, S3Settings, ShipperConfig  # noqa: E402
from lognexus.core.models import RemoteObject  # noqa: E402

TEST_BUCKET = "test-logs"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line(
        "markers",
        "integration: tests that require external services or are slower (S3, etc.)",
    )
    config.addinivalue_line("markers", "s3: tests that interact with S3 or moto S3")
    config.addinivalue_line("markers", "slow: slow-running tests")


class InMemoryObjectStore:
    """ObjectStore double recording every put; failures and a gate are scriptable."""

    def __init__(self, bucket: str = TEST_BUCKET) -> None:
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.puts: List[Tuple[str, bytes, str]] = []
        self.failures: List[BaseException] = []
        self.gate: Optional[asyncio.Event] = None
        self.calls = 0

    async def put(self, key: str, body: bytes, *, content_type: str) -> None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        self.objects[key] = body
        self.puts.append((key, body, content_type))

    async def list_objects(self, prefix: str) -> List[RemoteObject]:
        await asyncio.sleep(0)
        return [
            RemoteObject(key=key, size=len(body))
            for key, body in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    def iter_chunks(self, key: str, chunk_size: int = 1024) -> Iterator[bytes]:
        data = self.objects[key]
        for start in range(0, len(data), chunk_size):
            yield data[start : start + chunk_size]


@pytest.fixture
def s3_settings() -> S3Settings:
    return S3Settings(
        bucket=TEST_BUCKET,
        access_key_id="testing",
        secret_access_key="testing",
        region="us-east-1",
    )


@pytest.fixture
def memory_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def make_config(s3_settings: S3Settings):
    """Build a ShipperConfig with fast retries; policy fields via keywords."""

    def _make(
        *,
        max_in_flight: int = 1,
        upload_max_attempts: int = 3,
        upload_every: Optional[float] = None,
        **policy: object,
    ) -> ShipperConfig:
        policy.setdefault("compress", False)
        policy.setdefault("rotate_every", "1h")
        return ShipperConfig(
            s3=s3_settings,
            app_id="testapp",
            policy=RotationPolicy(**policy),
            upload_every=upload_every,
            max_in_flight=max_in_flight,
            upload_max_attempts=upload_max_attempts,
            upload_backoff_base=0.0,
        )

    return _make


@pytest.fixture
def s3_client_mock():
    """Moto-backed S3 client with the test bucket."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket=TEST_BUCKET)
        yield s3
