import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from ffconvert.__main__ import main, parse_args
from ffconvert.engine.ffmpeg import FFMPEG_CONSTANTS
from ffconvert.capabilities import decode_codec_capabilities
from ffconvert.models import (
    CodecDescriptor, CodecType, ConversionResult, EngineVariant, Metric,
    MuxerDescriptor
)

def make_metric(file="clip.mp4"):
    return Metric(
        file=file, elapsed_seconds=0.5, input_size=4, output_size=3,
        format="matroska", video_codec="mpeg4", audio_codec="aac",
        variant=EngineVariant.PRIMARY, job_index=0,
    )

class TestParseArgs(unittest.TestCase):
    def test_convert_defaults(self):
        args = parse_args(["convert", "clip.mp4"])
        self.assertEqual(args.command, "convert")
        self.assertEqual(args.output_format, "matroska")
        self.assertEqual(args.video_encoder, "mpeg4")
        self.assertEqual(args.audio_encoder, "aac")
        self.assertFalse(args.fallback)
        self.assertEqual(args.repeat, 1)
        self.assertTrue(args.write_output)
        self.assertEqual(args.extra, [])

    def test_extra_engine_options(self):
        args = parse_args(["convert", "clip.mp4", "-f", "webm", "--", "-b:v", "1M"])
        self.assertEqual(args.output_format, "webm")
        self.assertEqual(args.extra, ["-b:v", "1M"])

    def test_engine_options_after_positional(self):
        args = parse_args(["convert", "clip.mp4", "--", "-an", "-sn"])
        self.assertEqual(args.input.name, "clip.mp4")
        self.assertEqual(args.extra, ["-an", "-sn"])

    def test_extra_only_for_convert(self):
        with self.assertRaises(SystemExit):
            parse_args(["muxers", "--", "-an"])

    def test_encoder_type_filter(self):
        self.assertEqual(parse_args(["encoders", "--type", "audio"]).codec_type, "audio")
        with self.assertRaises(SystemExit):
            parse_args(["encoders", "--type", "data"])

@patch("ffconvert.__main__.configure_logging")
@patch("ffconvert.__main__.ConverterClient")
class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.input = Path(self.tmp.name) / "clip.mp4"
        self.input.write_bytes(b"data")
        self.client = AsyncMock()
        self.client.get_metrics.return_value = (make_metric(),)
        self.client.get_summary.return_value = {
            "jobs": 1, "input_bytes": 4, "output_bytes": 3,
            "total_elapsed_seconds": 0.5, "mean_elapsed_seconds": 0.5,
        }
        self.client.list_muxers.return_value = (
            MuxerDescriptor("matroska", "Matroska", "video/x-matroska", ("mkv",)),
        )

    def tearDown(self):
        self.tmp.cleanup()

    def wire(self, client_cls):
        client_cls.return_value.__aenter__.return_value = self.client

    def test_convert_writes_output(self, client_cls, _):
        self.wire(client_cls)
        self.client.convert_job.return_value = ConversionResult(output=b"out", metric=make_metric())
        self.assertEqual(main(["--no-log-file", "convert", str(self.input)]), 0)
        self.assertEqual((Path(self.tmp.name) / "clip.mkv").read_bytes(), b"out")
        options = self.client.convert_job.call_args[0][2]
        self.assertIs(options.variant, EngineVariant.PRIMARY)

    def test_convert_repeat_without_output(self, client_cls, _):
        self.wire(client_cls)
        self.client.convert_job.return_value = ConversionResult(output=b"out", metric=make_metric())
        code = main(["convert", str(self.input), "--repeat", "3", "--no-output", "--fallback"])
        self.assertEqual(code, 0)
        self.assertEqual(self.client.convert_job.await_count, 3)
        self.assertIs(self.client.convert_job.call_args[0][2].variant, EngineVariant.FALLBACK)
        self.assertFalse((Path(self.tmp.name) / "clip.mkv").exists())

    def test_convert_failure(self, client_cls, _):
        self.wire(client_cls)
        self.client.convert_job.return_value = ConversionResult()
        self.assertEqual(main(["convert", str(self.input)]), 1)

    def test_missing_input(self, client_cls, _):
        self.wire(client_cls)
        self.assertEqual(main(["convert", str(Path(self.tmp.name) / "missing.mp4")]), 1)
        self.client.convert_job.assert_not_called()

    def test_encoders(self, client_cls, _):
        self.wire(client_cls)
        caps = decode_codec_capabilities(0, FFMPEG_CONSTANTS)
        self.client.list_encoders.return_value = (
            CodecDescriptor(1, "mpeg4", "MPEG-4 part 2", CodecType.VIDEO, caps),
            CodecDescriptor(2, "aac", "AAC", CodecType.AUDIO, caps),
        )
        self.assertEqual(main(["encoders", "--type", "video"]), 0)

    def test_options_unknown_encoder(self, client_cls, _):
        self.wire(client_cls)
        self.client.list_encoders.return_value = ()
        self.assertEqual(main(["options", "libnothing"]), 1)
        self.client.list_codec_options.assert_not_called()

if __name__ == "__main__":
    unittest.main()
