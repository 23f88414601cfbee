import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from ffconvert.utils import format_size, output_filename, resolve_executable, run_cmd

class TestOutputFilename(unittest.TestCase):
    def test_replaces_last_suffix(self):
        self.assertEqual(output_filename("clip.mp4", ("mkv",)), "clip.mkv")
        self.assertEqual(output_filename("my.holiday.mov", ("webm", "weba")), "my.holiday.webm")

    def test_no_input_suffix(self):
        self.assertEqual(output_filename("clip", ("mkv",)), "clip.mkv")

    def test_muxer_without_extensions(self):
        self.assertEqual(output_filename("clip.mp4", ()), "clip")

class TestHelpers(unittest.TestCase):
    def test_format_size(self):
        self.assertEqual(format_size(10), "10.0B")
        self.assertEqual(format_size(2048), "2.0KiB")

    def test_resolve_executable_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            binary = Path(tmp) / "ffmpeg"
            binary.write_text("")
            self.assertEqual(resolve_executable(str(binary)), str(binary))
            self.assertIsNone(resolve_executable(str(Path(tmp) / "missing")))

    @patch("ffconvert.utils.shutil.which", return_value=None)
    def test_resolve_executable_name(self, mock_which):
        self.assertIsNone(resolve_executable("ffmpeg"))
        mock_which.assert_called_once_with("ffmpeg")

    @patch("ffconvert.utils.subprocess.run")
    def test_run_cmd_reraises(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="boom")
        with self.assertRaises(subprocess.CalledProcessError):
            run_cmd(["ffmpeg", "-version"])

    @patch("ffconvert.utils.subprocess.run")
    def test_run_cmd_passes_options(self, mock_run):
        run_cmd(["ffmpeg"], check=False, timeout=5)
        kwargs = mock_run.call_args[1]
        self.assertFalse(kwargs["check"])
        self.assertEqual(kwargs["timeout"], 5)
        self.assertTrue(kwargs["capture_output"])

if __name__ == "__main__":
    unittest.main()
