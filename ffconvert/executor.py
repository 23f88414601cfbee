"""Conversion job execution

Responsibilities:
- Stage input bytes into the engine's private working directory
- Build the engine argv and invoke conversion
- Copy the result out of engine memory and always release it
- Time the invocation and record a metric for every successful job

Jobs against one engine instance run strictly one after another under the
instance lock; the lock is held until the metric is recorded so that
metrics for a (file, variant) pair land in completion order.
"""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from .config import INPUT_NAME, OUTPUT_NAME, WORK_DIR_NAME
from .engine.handle import EngineInstance
from .exceptions import EngineAbortedError
from .metrics import MetricsLedger
from .models import ConversionRequest, ConversionResult, Metric

logger = logging.getLogger(__name__)

def build_argv(request: ConversionRequest) -> List[str]:
    """Engine argv for ``request``; extra options go verbatim before the output name."""
    return [
        "-loglevel", "verbose" if request.verbose else "quiet",
        "-i", INPUT_NAME,
        "-vcodec", request.video_encoder,
        "-acodec", request.audio_encoder,
        "-f", request.output_format,
        *request.extra_options,
        OUTPUT_NAME,
    ]

class ConversionExecutor:
    """Drives conversion jobs against engine instances."""

    def __init__(self, ledger: MetricsLedger):
        self.ledger = ledger

    async def execute(self, instance: EngineInstance, request: ConversionRequest) -> ConversionResult:
        """Run one job; failures come back as a result without output.

        The instance stays usable after a failed job unless the engine
        itself aborted. Once started, a job runs to completion and records
        its metric even if the awaiting caller is cancelled.
        """
        return await asyncio.shield(self._execute(instance, request))

    async def _execute(self, instance: EngineInstance, request: ConversionRequest) -> ConversionResult:
        async with instance.lock:
            try:
                output, elapsed = await instance.call(self._run_job, instance, request)
            except EngineAbortedError as e:
                instance.mark_failed(e)
                logger.error("Conversion of %s failed: %s", request.filename, e)
                return ConversionResult()
            except Exception as e:
                logger.error("Conversion of %s failed: %s", request.filename, e)
                return ConversionResult()

            if output is None:
                return ConversionResult()

            metric = Metric(
                file=request.filename,
                elapsed_seconds=elapsed,
                input_size=len(request.input_bytes),
                output_size=len(output),
                format=request.output_format,
                video_codec=request.video_encoder,
                audio_codec=request.audio_encoder,
                variant=request.variant,
                job_index=self.ledger.next_index(request.filename, request.variant),
            )
            self.ledger.record(metric)
            logger.info("Converted %s with %s engine in %.2fs (%d -> %d bytes)",
                        request.filename, request.variant.value, elapsed,
                        metric.input_size, metric.output_size)
            return ConversionResult(output=output, metric=metric)

    def _prepare_workdir(self, instance: EngineInstance) -> None:
        if instance.workdir_ready:
            return
        fs = instance.engine.fs
        fs.mkdir(WORK_DIR_NAME)
        fs.chdir(WORK_DIR_NAME)
        instance.workdir_ready = True

    def _run_job(self, instance: EngineInstance, request: ConversionRequest) -> Tuple[Optional[bytes], float]:
        """Engine-thread part of a job. Returns (output or None, elapsed seconds)."""
        engine = instance.engine
        argv = build_argv(request)
        try:
            self._prepare_workdir(instance)
            engine.fs.write(INPUT_NAME, request.input_bytes)
            if engine.fs.exists(OUTPUT_NAME):
                engine.fs.remove(OUTPUT_NAME)

            start = time.perf_counter()
            engine.convert(argv)
            elapsed = time.perf_counter() - start

            if not engine.fs.exists(OUTPUT_NAME):
                logger.warning("Engine produced no output for %s", request.filename)
                return None, elapsed

            view = engine.read_result(OUTPUT_NAME)
            return bytes(view), elapsed
        finally:
            engine.free_result()
