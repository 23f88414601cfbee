import unittest
from fractions import Fraction

from ffconvert.capabilities import (
    CODEC_CAPABILITY_CONSTANTS, capability_names, decode_codec,
    decode_codec_capabilities, decode_default_value, decode_encoders,
    decode_muxer, decode_option, decode_option_flags, split_extensions
)
from ffconvert.engine.base import RawCodec, RawMuxer, RawOption, RawOptionDefault
from ffconvert.engine.ffmpeg import FFMPEG_CONSTANTS
from ffconvert.exceptions import DecodingError
from ffconvert.models import CodecType, OptionType

def raw_codec(codec_id=1, name="mpeg4", codec_type=0, caps=0):
    return RawCodec(id=codec_id, type=codec_type, name=name, long_name=name.upper(), capabilities=caps)

def raw_option(option_type=1, flags=0, default=None, name="bitrate"):
    return RawOption(
        name=name, help="set bitrate", unit="", offset=3, type=option_type,
        default_val=default or RawOptionDefault(), min=0.0, max=100.0, flags=flags
    )

class TestBitmasks(unittest.TestCase):
    def test_every_capability_matches_its_constant(self):
        for raw in (0, 1, 0x40000000 | (1 << 12), 0x80000000, 0xFFFFFFFF, 1 << 3):
            caps = decode_codec_capabilities(raw, FFMPEG_CONSTANTS)
            for field_name, constant in CODEC_CAPABILITY_CONSTANTS:
                self.assertEqual(
                    getattr(caps, field_name),
                    (raw & FFMPEG_CONSTANTS[constant]) != 0,
                    f"{field_name} for {raw:#x}"
                )

    def test_truncated_bit(self):
        truncated = FFMPEG_CONSTANTS["AV_CODEC_CAP_TRUNCATED"]
        self.assertTrue(decode_codec_capabilities(truncated, FFMPEG_CONSTANTS).truncated)
        self.assertFalse(decode_codec_capabilities(0, FFMPEG_CONSTANTS).truncated)

    def test_missing_constant_is_loud(self):
        constants = dict(FFMPEG_CONSTANTS)
        del constants["AV_CODEC_CAP_HYBRID"]
        with self.assertRaises(DecodingError):
            decode_codec_capabilities(0, constants)

    def test_option_flags(self):
        raw = FFMPEG_CONSTANTS["AV_OPT_FLAG_ENCODING_PARAM"] | FFMPEG_CONSTANTS["AV_OPT_FLAG_VIDEO_PARAM"]
        flags = decode_option_flags(raw, FFMPEG_CONSTANTS)
        self.assertTrue(flags.encoding_param)
        self.assertTrue(flags.video_param)
        self.assertFalse(flags.audio_param)
        self.assertEqual(capability_names(flags), ["encoding_param", "video_param"])

class TestCodecDecoding(unittest.TestCase):
    def test_decoding_is_deterministic(self):
        raw = raw_codec(caps=0xFFFF)
        self.assertEqual(decode_codec(raw, FFMPEG_CONSTANTS), decode_codec(raw, FFMPEG_CONSTANTS))

    def test_media_types(self):
        expected = {
            -1: CodecType.UNKNOWN, 0: CodecType.VIDEO, 1: CodecType.AUDIO,
            2: CodecType.DATA, 3: CodecType.SUBTITLE, 4: CodecType.ATTACHMENT,
        }
        for raw_type, codec_type in expected.items():
            self.assertIs(decode_codec(raw_codec(codec_type=raw_type), FFMPEG_CONSTANTS).type, codec_type)

    def test_media_type_count_is_rejected(self):
        with self.assertRaises(DecodingError):
            decode_codec(raw_codec(codec_type=5), FFMPEG_CONSTANTS)

    def test_duplicate_ids_keep_first(self):
        raws = [
            raw_codec(codec_id=5, name="libx264"),
            raw_codec(codec_id=7, name="aac", codec_type=1),
            raw_codec(codec_id=5, name="h264_nvenc"),
        ]
        decoded = decode_encoders(raws, FFMPEG_CONSTANTS)
        self.assertEqual([c.id for c in decoded], [5, 7])
        self.assertEqual(decoded[0].name, "libx264")

class TestOptionDecoding(unittest.TestCase):
    def test_const_type(self):
        self.assertIs(decode_option(raw_option(option_type=10), FFMPEG_CONSTANTS).type, OptionType.CONST)

    def test_bool_type(self):
        self.assertIs(decode_option(raw_option(option_type=18), FFMPEG_CONSTANTS).type, OptionType.BOOL)

    def test_unknown_type_is_rejected(self):
        for bad in (19, -1):
            with self.assertRaises(DecodingError):
                decode_option(raw_option(option_type=bad), FFMPEG_CONSTANTS)

    def test_fields_copied(self):
        option = decode_option(raw_option(default=RawOptionDefault(i64=42)), FFMPEG_CONSTANTS)
        self.assertEqual(option.name, "bitrate")
        self.assertEqual(option.offset, 3)
        self.assertEqual(option.default_value, 42)
        self.assertEqual((option.min, option.max), (0.0, 100.0))

class TestDefaultValue(unittest.TestCase):
    def test_first_populated_member_wins(self):
        self.assertEqual(decode_default_value(RawOptionDefault(i64=3, dbl=1.5)), 3)
        self.assertEqual(decode_default_value(RawOptionDefault(dbl=1.5, str="x")), 1.5)
        self.assertEqual(decode_default_value(RawOptionDefault(str="medium")), "medium")

    def test_rational(self):
        self.assertEqual(decode_default_value(RawOptionDefault(q=Fraction(30000, 1001))), Fraction(30000, 1001))

    def test_empty_union(self):
        self.assertEqual(decode_default_value(RawOptionDefault()), 0)

class TestMuxerDecoding(unittest.TestCase):
    def test_split_extensions(self):
        self.assertEqual(split_extensions("mkv,webm"), ("mkv", "webm"))
        self.assertEqual(split_extensions(""), ())
        self.assertEqual(split_extensions(None), ())

    def test_codec_id_none(self):
        muxer = decode_muxer(RawMuxer("null", "raw null", "", "", 0, 0))
        self.assertIsNone(muxer.default_video_codec_id)
        self.assertIsNone(muxer.default_audio_codec_id)
        self.assertEqual(muxer.extensions, ())

    def test_codec_ids_kept(self):
        muxer = decode_muxer(RawMuxer("matroska", "Matroska", "video/x-matroska", "mkv", 27, 86))
        self.assertEqual(muxer.default_video_codec_id, 27)
        self.assertEqual(muxer.default_audio_codec_id, 86)
        self.assertEqual(muxer.mime_type, "video/x-matroska")

if __name__ == "__main__":
    unittest.main()
