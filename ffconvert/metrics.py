"""Conversion metrics ledger"""

import logging
from collections import Counter
from typing import Dict, List, Tuple

from .models import EngineVariant, Metric

logger = logging.getLogger(__name__)

class MetricsLedger:
    """Append-only record of completed conversions, kept for the gateway lifetime."""

    def __init__(self):
        self._records: List[Metric] = []
        self._counts: Counter = Counter()

    def __len__(self) -> int:
        return len(self._records)

    def next_index(self, file: str, variant: EngineVariant) -> int:
        """Job index the next completed job for (file, variant) receives."""
        return self._counts[(file, variant)]

    def record(self, metric: Metric) -> None:
        key = (metric.file, metric.variant)
        expected = self._counts[key]
        if metric.job_index != expected:
            raise ValueError(
                f"Metric for {metric.file} ({metric.variant.value}) has index "
                f"{metric.job_index}, expected {expected}"
            )
        self._records.append(metric)
        self._counts[key] += 1
        logger.debug("Recorded metric #%d for %s (%s): %.3fs",
                     metric.job_index, metric.file, metric.variant.value, metric.elapsed_seconds)

    def drain(self) -> Tuple[Metric, ...]:
        """All records so far, in completion order. Does not clear the ledger."""
        return tuple(self._records)

    def summary(self) -> Dict[str, float]:
        """Aggregate totals over every recorded job."""
        jobs = len(self._records)
        total_elapsed = sum(m.elapsed_seconds for m in self._records)
        return {
            "jobs": jobs,
            "input_bytes": sum(m.input_size for m in self._records),
            "output_bytes": sum(m.output_size for m in self._records),
            "total_elapsed_seconds": total_elapsed,
            "mean_elapsed_seconds": total_elapsed / jobs if jobs else 0.0,
        }
