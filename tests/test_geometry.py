import unittest

import numpy as np

from vision_kit.errors import DimensionMismatch, InvalidInput, UnsupportedFormat
from vision_kit.geometry import LETTERBOX_FILL, apply_plan, plan_resize


class TestPlanResize(unittest.TestCase):
    def test_letterbox_full_hd_to_square(self) -> None:
        plan = plan_resize(1920, 1080, 640, 640, "letterbox")
        self.assertAlmostEqual(plan.uniform_scale, 1.0 / 3.0, places=9)
        self.assertEqual(plan.scaled_size, (640, 360))
        self.assertEqual(plan.padding, (0, 140, 0, 140))
        self.assertEqual(plan.draw_rect, (0, 140, 640, 360))
        self.assertEqual(plan.offset, (0, 140))
        self.assertEqual(plan.fill_color, LETTERBOX_FILL)

    def test_stride_rounds_scaled_size_up(self) -> None:
        plan = plan_resize(1920, 1080, 640, 640, "letterbox", stride=32)
        self.assertEqual(plan.scaled_size, (640, 384))
        self.assertEqual(plan.padding, (0, 128, 0, 128))

    def test_stride_that_cannot_fit_is_rejected(self) -> None:
        with self.assertRaises(InvalidInput):
            plan_resize(100, 100, 16, 16, "letterbox", stride=32)

    def test_no_scale_up_keeps_small_images(self) -> None:
        plan = plan_resize(100, 50, 640, 640, "contain", scale_up=False)
        self.assertEqual(plan.scale, (1.0, 1.0))
        self.assertEqual(plan.scaled_size, (100, 50))
        self.assertEqual(plan.padding, (270, 295, 270, 295))
        self.assertEqual(plan.fill_color, (0, 0, 0))

    def test_uncentered_padding_goes_to_trailing_edges(self) -> None:
        plan = plan_resize(1920, 1080, 640, 640, "letterbox", center=False)
        self.assertEqual(plan.padding, (0, 0, 0, 280))
        self.assertEqual(plan.draw_rect, (0, 0, 640, 360))

    def test_cover_crops_centered(self) -> None:
        plan = plan_resize(200, 100, 100, 100, "cover")
        self.assertEqual(plan.scale, (1.0, 1.0))
        self.assertEqual(plan.scaled_size, (200, 100))
        self.assertEqual(plan.crop_offset, (50, 0))
        self.assertEqual(plan.draw_rect, (0, 0, 100, 100))

    def test_stretch_scales_axes_independently(self) -> None:
        plan = plan_resize(200, 100, 50, 50, "stretch")
        self.assertEqual(plan.scale, (0.25, 0.5))
        self.assertEqual(plan.scaled_size, (50, 50))
        self.assertEqual(plan.padding, (0, 0, 0, 0))
        with self.assertRaises(InvalidInput):
            _ = plan.uniform_scale

    def test_padding_plus_scaled_size_fills_canvas(self) -> None:
        for src in [(1, 1), (7, 3), (1280, 720), (333, 999)]:
            for strategy in ("contain", "letterbox"):
                plan = plan_resize(src[0], src[1], 320, 256, strategy, stride=8)
                left, top, right, bottom = plan.padding
                self.assertEqual(left + plan.scaled_size[0] + right, 320)
                self.assertEqual(top + plan.scaled_size[1] + bottom, 256)
                self.assertGreaterEqual(min(plan.padding), 0)

    def test_bad_arguments(self) -> None:
        with self.assertRaises(UnsupportedFormat):
            plan_resize(10, 10, 5, 5, "squash")
        with self.assertRaises(InvalidInput):
            plan_resize(0, 10, 5, 5)
        with self.assertRaises(InvalidInput):
            plan_resize(10, 10, 5, 5, stride=0)
        with self.assertRaises(InvalidInput):
            plan_resize(10, 10, 5, 5, fill_color=(0, 300, 0))


class TestApplyPlan(unittest.TestCase):
    def test_letterbox_canvas_is_filled_around_image(self) -> None:
        img = np.full((2, 4, 3), 200, dtype=np.uint8)
        plan = plan_resize(4, 2, 8, 8, "letterbox")
        out = apply_plan(img, plan)
        self.assertEqual(out.shape, (8, 8, 3))
        self.assertTrue(np.all(out[:2] == 114))
        self.assertTrue(np.all(out[2:6] == 200))
        self.assertTrue(np.all(out[6:] == 114))

    def test_rgba_fill_is_opaque(self) -> None:
        img = np.full((2, 4, 4), 10, dtype=np.uint8)
        plan = plan_resize(4, 2, 4, 4, "contain", fill_color=(1, 2, 3))
        out = apply_plan(img, plan)
        self.assertEqual(out[0, 0].tolist(), [1, 2, 3, 255])

    def test_cover_and_stretch_output_target_size(self) -> None:
        img = np.zeros((30, 60, 3), dtype=np.uint8)
        for strategy in ("cover", "stretch"):
            out = apply_plan(img, plan_resize(60, 30, 16, 24, strategy))
            self.assertEqual(out.shape, (24, 16, 3))

    def test_single_channel_keeps_channel_axis(self) -> None:
        img = np.zeros((10, 20, 1), dtype=np.uint8)
        out = apply_plan(img, plan_resize(20, 10, 8, 8, "letterbox"))
        self.assertEqual(out.shape, (8, 8, 1))

    def test_plan_for_other_size_is_rejected(self) -> None:
        img = np.zeros((10, 10, 3), dtype=np.uint8)
        with self.assertRaises(DimensionMismatch):
            apply_plan(img, plan_resize(20, 10, 8, 8))

    def test_float_images_are_rejected(self) -> None:
        img = np.zeros((10, 10, 3), dtype=np.float32)
        with self.assertRaises(InvalidInput):
            apply_plan(img, plan_resize(10, 10, 8, 8))


if __name__ == "__main__":
    unittest.main()
