import unittest

from ffconvert.metrics import MetricsLedger
from ffconvert.models import EngineVariant, Metric

def make_metric(file="clip.mp4", job_index=0, variant=EngineVariant.PRIMARY, elapsed=1.0, size=10):
    return Metric(
        file=file, elapsed_seconds=elapsed, input_size=size, output_size=size * 2,
        format="matroska", video_codec="mpeg4", audio_codec="aac",
        variant=variant, job_index=job_index,
    )

class TestMetricsLedger(unittest.TestCase):
    def setUp(self):
        self.ledger = MetricsLedger()

    def test_indexes_start_at_zero_per_key(self):
        self.assertEqual(self.ledger.next_index("clip.mp4", EngineVariant.PRIMARY), 0)
        self.ledger.record(make_metric())
        self.assertEqual(self.ledger.next_index("clip.mp4", EngineVariant.PRIMARY), 1)
        self.assertEqual(self.ledger.next_index("clip.mp4", EngineVariant.FALLBACK), 0)
        self.assertEqual(self.ledger.next_index("other.mp4", EngineVariant.PRIMARY), 0)

    def test_out_of_order_index_rejected(self):
        with self.assertRaises(ValueError):
            self.ledger.record(make_metric(job_index=1))
        self.ledger.record(make_metric(job_index=0))
        with self.assertRaises(ValueError):
            self.ledger.record(make_metric(job_index=0))
        self.assertEqual(len(self.ledger), 1)

    def test_drain_keeps_completion_order(self):
        metrics = [
            make_metric(file="b.mp4"),
            make_metric(file="a.mp4"),
            make_metric(file="b.mp4", job_index=1),
        ]
        for metric in metrics:
            self.ledger.record(metric)
        self.assertEqual(self.ledger.drain(), tuple(metrics))
        # Draining does not clear
        self.assertEqual(len(self.ledger.drain()), 3)

    def test_summary(self):
        self.assertEqual(self.ledger.summary()["mean_elapsed_seconds"], 0.0)
        self.ledger.record(make_metric(elapsed=1.0, size=10))
        self.ledger.record(make_metric(job_index=1, elapsed=3.0, size=30))
        summary = self.ledger.summary()
        self.assertEqual(summary["jobs"], 2)
        self.assertEqual(summary["input_bytes"], 40)
        self.assertEqual(summary["output_bytes"], 80)
        self.assertEqual(summary["total_elapsed_seconds"], 4.0)
        self.assertEqual(summary["mean_elapsed_seconds"], 2.0)

if __name__ == "__main__":
    unittest.main()
