import asyncio
import sys
import unittest
from pathlib import Path

from starlette.requests import Request

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (PROJECT_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import FakeBlobStore, FakeInference, FakeRecordStore  # noqa: E402
from resumind.core.platform import Platform, PlatformReadiness  # noqa: E402
from resumind.core.rate_limit import caller_key  # noqa: E402
from resumind.core.security import ApiKeyIdentity  # noqa: E402


class InitTrackingStore(FakeRecordStore):
    def __init__(self):
        super().__init__()
        self.initialized = False
        self.closed = False

    def init(self) -> None:
        self.initialized = True

    def close(self) -> None:
        self.closed = True


class PlatformReadinessTests(unittest.IsolatedAsyncioTestCase):
    async def test_wait_times_out_when_never_ready(self):
        readiness = PlatformReadiness()
        self.assertFalse(await readiness.wait(0.01))
        self.assertFalse(readiness.is_ready())

    async def test_wait_resolves_once_marked_ready(self):
        readiness = PlatformReadiness()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, readiness.mark_ready)
        self.assertTrue(await readiness.wait(2.0))
        self.assertTrue(readiness.is_ready())

    async def test_ready_flag_short_circuits(self):
        self.assertTrue(await PlatformReadiness(ready=True).wait(0))


class PlatformStartTests(unittest.IsolatedAsyncioTestCase):
    async def test_start_initializes_stores_and_marks_ready(self):
        records = InitTrackingStore()
        platform = Platform(blob_store=FakeBlobStore(), record_store=records, inference=FakeInference())
        await platform.start()
        self.assertTrue(records.initialized)
        self.assertTrue(platform.readiness.is_ready())
        platform.close()
        self.assertTrue(records.closed)

    async def test_unconfigured_inference_keeps_platform_not_ready(self):
        platform = Platform(
            blob_store=FakeBlobStore(),
            record_store=FakeRecordStore(),
            inference=FakeInference(configured=False),
        )
        await platform.start()
        self.assertFalse(platform.readiness.is_ready())


class ApiKeyIdentityTests(unittest.TestCase):
    def test_public_mode_is_always_authenticated(self):
        self.assertTrue(ApiKeyIdentity(None, auth_mode="public").is_authenticated())

    def test_protected_mode_compares_keys(self):
        self.assertTrue(ApiKeyIdentity("secret", auth_mode="protected", api_key="secret").is_authenticated())
        self.assertFalse(ApiKeyIdentity("wrong", auth_mode="protected", api_key="secret").is_authenticated())
        self.assertFalse(ApiKeyIdentity(None, auth_mode="protected", api_key="secret").is_authenticated())
        self.assertFalse(ApiKeyIdentity("anything", auth_mode="protected", api_key="").is_authenticated())


class CallerKeyTests(unittest.TestCase):
    def _request(self, headers):
        return Request({"type": "http", "headers": headers, "client": ("10.0.0.7", 5123)})

    def test_presented_key_is_hashed(self):
        key = caller_key(self._request([(b"x-api-key", b"secret")]))
        self.assertTrue(key.startswith("key:"))
        self.assertNotIn("secret", key)
        self.assertEqual(key, caller_key(self._request([(b"x-api-key", b"secret")])))

    def test_falls_back_to_remote_address(self):
        self.assertEqual(caller_key(self._request([])), "ip:10.0.0.7")


if __name__ == "__main__":
    unittest.main()
