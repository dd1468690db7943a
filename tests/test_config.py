import json
import tempfile
import unittest
from pathlib import Path

from vision_kit.config import load_preprocess_profile
from vision_kit.errors import UnsupportedFormat
from vision_kit.runtime import PixelDataOptions, ResizeOptions


class TestPreprocessProfile(unittest.TestCase):
    def _write_profile(self, payload) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "profile.json"
        path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
        return path

    def test_load_ok(self) -> None:
        path = self._write_profile(
            {
                "schema_version": 1,
                "color_format": "rgb",
                "data_layout": "nchw",
                "normalization": {"preset": "imagenet"},
                "resize": {"width": 640, "height": 640, "strategy": "letterbox", "stride": 32},
                "notes": "yolo input",
            }
        )
        options = load_preprocess_profile(path)
        self.assertIsInstance(options, PixelDataOptions)
        self.assertEqual(options.data_layout, "nchw")
        self.assertEqual(options.normalization.preset, "imagenet")
        self.assertEqual(options.resize, ResizeOptions(width=640, height=640, strategy="letterbox", stride=32))
        self.assertIsNone(options.roi)

    def test_minimal_profile_uses_defaults(self) -> None:
        options = load_preprocess_profile(self._write_profile({"schema_version": 1}))
        self.assertEqual(options, PixelDataOptions())

    def test_unknown_keys_rejected(self) -> None:
        path = self._write_profile({"schema_version": 1, "extra": 123})
        with self.assertRaises(ValueError):
            load_preprocess_profile(path)

    def test_schema_version_checked(self) -> None:
        with self.assertRaises(ValueError):
            load_preprocess_profile(self._write_profile({"schema_version": 2}))
        with self.assertRaises(ValueError):
            load_preprocess_profile(self._write_profile({"color_format": "rgb"}))

    def test_section_types_checked(self) -> None:
        with self.assertRaises(ValueError):
            load_preprocess_profile(self._write_profile({"schema_version": 1, "resize": [640, 640]}))
        with self.assertRaises(UnsupportedFormat):
            load_preprocess_profile(self._write_profile({"schema_version": 1, "color_format": "cmyk"}))

    def test_invalid_json_and_missing_file(self) -> None:
        with self.assertRaises(ValueError):
            load_preprocess_profile(self._write_profile("{not json"))
        with self.assertRaises(FileNotFoundError):
            load_preprocess_profile(Path(tempfile.gettempdir()) / "vision-kit-missing-profile.json")


if __name__ == "__main__":
    unittest.main()
