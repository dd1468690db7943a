import unittest

import numpy as np

from vision_kit.color import channel_count, convert_buffer, convert_color
from vision_kit.errors import InvalidInput, UnsupportedFormat
from vision_kit.types import PixelBuffer


def _pixel(r: int, g: int, b: int, a: int = 255) -> np.ndarray:
    return np.array([[[r, g, b, a]]], dtype=np.uint8)


class TestConvertColor(unittest.TestCase):
    def test_channel_counts(self) -> None:
        self.assertEqual(channel_count("grayscale"), 1)
        self.assertEqual(channel_count("RGBA"), 4)
        self.assertEqual(channel_count("lab"), 3)

    def test_channel_reordering(self) -> None:
        px = _pixel(10, 20, 30, 40)
        self.assertEqual(convert_color(px, "rgb")[0, 0].tolist(), [10, 20, 30])
        self.assertEqual(convert_color(px, "bgr")[0, 0].tolist(), [30, 20, 10])
        self.assertEqual(convert_color(px, "bgra")[0, 0].tolist(), [30, 20, 10, 40])
        self.assertEqual(convert_color(px, "rgba", as_bytes=True).dtype, np.uint8)

    def test_grayscale_uses_bt601_weights(self) -> None:
        out = convert_color(_pixel(100, 150, 200), "grayscale")
        self.assertEqual(out.shape, (1, 1, 1))
        self.assertAlmostEqual(float(out[0, 0, 0]), 0.299 * 100 + 0.587 * 150 + 0.114 * 200, places=3)

    def test_hsv_primaries(self) -> None:
        red = convert_color(_pixel(255, 0, 0), "hsv")[0, 0]
        green = convert_color(_pixel(0, 255, 0), "hsv")[0, 0]
        blue = convert_color(_pixel(0, 0, 255), "hsv")[0, 0]
        np.testing.assert_allclose(red, [0.0, 255.0, 255.0], atol=1e-4)
        np.testing.assert_allclose(green, [120.0, 255.0, 255.0], atol=1e-4)
        np.testing.assert_allclose(blue, [240.0, 255.0, 255.0], atol=1e-4)

    def test_hsv_gray_has_no_hue_or_saturation(self) -> None:
        out = convert_color(_pixel(128, 128, 128), "hsv")[0, 0]
        np.testing.assert_allclose(out, [0.0, 0.0, 128.0], atol=1e-4)

    def test_hue_is_halved_in_byte_mode(self) -> None:
        out = convert_color(_pixel(0, 0, 255), "hsv", as_bytes=True)[0, 0]
        self.assertEqual(out.tolist(), [120, 255, 255])

    def test_hsl_red(self) -> None:
        out = convert_color(_pixel(255, 0, 0), "hsl")[0, 0]
        np.testing.assert_allclose(out, [0.0, 255.0, 127.5], atol=1e-4)
        # 127.5 rounds away from zero
        self.assertEqual(convert_color(_pixel(255, 0, 0), "hsl", as_bytes=True)[0, 0, 2], 128)

    def test_lab_black_and_white(self) -> None:
        white = convert_color(_pixel(255, 255, 255), "lab")[0, 0]
        black = convert_color(_pixel(0, 0, 0), "lab")[0, 0]
        np.testing.assert_allclose(white, [100.0, 128.0, 128.0], atol=0.05)
        np.testing.assert_allclose(black, [0.0, 128.0, 128.0], atol=1e-4)
        self.assertEqual(convert_color(_pixel(255, 255, 255), "lab", as_bytes=True)[0, 0, 0], 255)

    def test_ycbcr_studio_range(self) -> None:
        white = convert_color(_pixel(255, 255, 255), "ycbcr")[0, 0]
        black = convert_color(_pixel(0, 0, 0), "ycbcr")[0, 0]
        np.testing.assert_allclose(white, [235.0, 128.0, 128.0], atol=1e-3)
        np.testing.assert_allclose(black, [16.0, 128.0, 128.0], atol=1e-3)

    def test_yuv_gray_has_neutral_chroma(self) -> None:
        out = convert_color(_pixel(255, 255, 255), "yuv")[0, 0]
        np.testing.assert_allclose(out, [255.0, 128.0, 128.0], atol=0.01)

    def test_shape_and_format_validation(self) -> None:
        with self.assertRaises(InvalidInput):
            convert_color(np.zeros((2, 2, 3), dtype=np.uint8), "rgb")
        with self.assertRaises(UnsupportedFormat):
            convert_color(_pixel(0, 0, 0), "cmyk")

    def test_convert_buffer(self) -> None:
        buf = PixelBuffer.from_hwc(np.tile(_pixel(1, 2, 3), (2, 3, 1)), "rgba")
        out = convert_buffer(buf, "bgr", as_bytes=True)
        self.assertEqual((out.width, out.height, out.channels), (3, 2, 3))
        self.assertEqual(out.color_format, "bgr")
        self.assertEqual(out.data[:3].tolist(), [3, 2, 1])
        with self.assertRaises(InvalidInput):
            convert_buffer(out, "rgb")


if __name__ == "__main__":
    unittest.main()
