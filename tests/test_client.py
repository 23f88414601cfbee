import asyncio
import threading
import unittest
from unittest.mock import patch

from fakes import CountingLoader, FakeEngine

from ffconvert.client import ConverterClient
from ffconvert.exceptions import BoundaryError, InitializationError
from ffconvert.models import EngineVariant

class TestConverterClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.loader = CountingLoader()
        self.client = ConverterClient(
            {EngineVariant.PRIMARY: self.loader, EngineVariant.FALLBACK: self.loader},
            min_boot_memory_mb=0
        )

    def tearDown(self):
        self.client.close()

    async def test_worker_spawned_lazily(self):
        self.assertIsNone(self.client._worker)
        output = await self.client.convert(b"0123456789", "clip.mp4")
        self.assertEqual(output, b"9876543210")
        self.assertTrue(self.client._worker.running)

    async def test_engine_work_off_caller_thread(self):
        await self.client.convert(b"abc", "clip.mp4")
        self.assertNotIn(threading.get_ident(), self.loader.engines[0].threads)

    async def test_caller_buffer_is_copied(self):
        data = bytearray(b"abc")
        result = await self.client.convert_job(data, "clip.mp4")
        data[:] = b"zzz"
        self.assertEqual(result.output, b"cba")

    async def test_metrics_across_calls(self):
        await self.client.convert(b"abc", "clip.mp4")
        await self.client.convert(b"abcd", "clip.mp4")
        metrics = await self.client.get_metrics()
        self.assertEqual([m.job_index for m in metrics], [0, 1])
        self.assertEqual((await self.client.get_summary())["input_bytes"], 7)

    async def test_errors_propagate(self):
        with self.assertRaises(BoundaryError):
            await self.client.convert(b"", "clip.mp4")

    async def test_close_restarts_with_fresh_engines(self):
        await self.client.convert(b"abc", "clip.mp4")
        self.client.close()
        self.assertEqual(await self.client.get_metrics(), ())
        await self.client.convert(b"abc", "clip.mp4")
        self.assertEqual(self.loader.calls, 2)

    async def test_async_context_manager(self):
        async with self.client as client:
            await client.list_encoders()
        self.assertIsNone(self.client._worker)

    async def test_context_exit_closes_off_loop(self):
        threads = []
        close = self.client.close

        def recording_close():
            threads.append(threading.get_ident())
            close()

        with patch.object(self.client, "close", recording_close):
            async with self.client as client:
                await client.list_encoders()
        self.assertEqual(len(threads), 1)
        self.assertNotEqual(threads[0], threading.get_ident())
        self.assertIsNone(self.client._worker)

class TestClientCancellation(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.loader = CountingLoader(lambda: FakeEngine(delay=0.3))
        self.client = ConverterClient({EngineVariant.PRIMARY: self.loader}, min_boot_memory_mb=0)

    def tearDown(self):
        self.client.close()

    async def test_timed_out_call_still_records_metric(self):
        await self.client.list_encoders()
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(self.client.convert(b"0123456789", "clip.mp4"), 0.05)
        await asyncio.sleep(0.6)
        metrics = await self.client.get_metrics()
        self.assertEqual(len(metrics), 1)
        self.assertEqual(metrics[0].output_size, 10)

    async def test_next_call_waits_for_abandoned_job(self):
        await self.client.list_encoders()
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(self.client.convert(b"first", "clip.mp4"), 0.05)
        output = await self.client.convert(b"second", "clip.mp4")
        self.assertEqual(output, b"dnoces")
        self.assertEqual(self.loader.engines[0].max_active, 1)
        self.assertEqual([m.job_index for m in await self.client.get_metrics()], [0, 1])
        self.assertIsNone(self.client._worker)

class TestClientBootFailure(unittest.IsolatedAsyncioTestCase):
    async def test_initialization_error_propagates(self):
        failing = CountingLoader(error=RuntimeError("corrupt image"))
        healthy = CountingLoader(lambda: FakeEngine())
        client = ConverterClient({EngineVariant.PRIMARY: failing, EngineVariant.FALLBACK: healthy},
                                 min_boot_memory_mb=0)
        try:
            with self.assertRaises(InitializationError):
                await client.convert(b"abc", "clip.mp4")
            output = await client.convert(b"abc", "clip.mp4", {"variant": EngineVariant.FALLBACK})
            self.assertEqual(output, b"cba")
        finally:
            client.close()

if __name__ == "__main__":
    unittest.main()
