import unittest

import numpy as np

from vision_kit.boxes import box_iou_matrix, clip_boxes, convert_format, iou, scale_boxes
from vision_kit.errors import InvalidInput, UnsupportedFormat
from vision_kit.types import Box


class TestConvertFormat(unittest.TestCase):
    def test_cxcywh_to_xyxy(self) -> None:
        out = convert_format([320, 240, 100, 80], "cxcywh", "xyxy")
        self.assertEqual(out.tolist(), [270.0, 200.0, 370.0, 280.0])

    def test_round_trips(self) -> None:
        boxes = np.array([[10.0, 20.0, 50.0, 80.0], [0.0, 0.0, 1.5, 2.5]])
        for fmt in ("xywh", "cxcywh"):
            there = convert_format(boxes, "xyxy", fmt)
            np.testing.assert_allclose(convert_format(there, fmt, "xyxy"), boxes)
        np.testing.assert_allclose(convert_format(boxes, "xyxy", "xywh")[0], [10.0, 20.0, 40.0, 60.0])

    def test_empty_and_invalid_input(self) -> None:
        self.assertEqual(convert_format(np.zeros((0, 4)), "xyxy", "xywh").shape, (0, 4))
        self.assertEqual(convert_format([], "xyxy", "xywh").shape, (0, 4))
        self.assertEqual(convert_format([], "cxcywh", "xyxy").shape, (0, 4))
        with self.assertRaises(InvalidInput):
            convert_format([[1, 2, 3]], "xyxy", "xywh")
        with self.assertRaises(UnsupportedFormat):
            convert_format([1, 2, 3, 4], "yxyx", "xyxy")

    def test_box_record(self) -> None:
        box = Box((320, 240, 100, 80), fmt="cxcywh", score=0.5)
        self.assertEqual(box.as_xyxy(), (270.0, 200.0, 370.0, 280.0))
        self.assertEqual(box.area, 8000.0)
        self.assertEqual(box.convert("xywh").coords, (270.0, 200.0, 100.0, 80.0))
        self.assertEqual(box.convert("xyxy").score, 0.5)


class TestScaleAndClip(unittest.TestCase):
    def test_scale_boxes_round_trip(self) -> None:
        boxes = np.array([[10.0, 20.0, 110.0, 220.0]])
        there = scale_boxes(boxes, (640, 480), (1280, 720))
        np.testing.assert_allclose(there, [[20.0, 30.0, 220.0, 330.0]])
        np.testing.assert_allclose(scale_boxes(there, (1280, 720), (640, 480)), boxes)

    def test_scale_boxes_keeps_format(self) -> None:
        out = scale_boxes([5.0, 5.0, 2.0, 2.0], (10, 10), (20, 40), fmt="cxcywh")
        np.testing.assert_allclose(out, [10.0, 20.0, 4.0, 8.0])

    def test_scale_boxes_empty_list(self) -> None:
        self.assertEqual(scale_boxes([], (10, 10), (20, 20)).shape, (0, 4))
        self.assertEqual(scale_boxes([], (10, 10), (20, 20), fmt="xywh", clip=True).shape, (0, 4))

    def test_clip_to_image(self) -> None:
        result = clip_boxes([-10, 50, 700, 500], 640, 480)
        self.assertEqual(result.boxes.tolist(), [[0.0, 50.0, 640.0, 480.0]])
        self.assertEqual(result.removed_count, 0)

    def test_clip_can_drop_collapsed_boxes(self) -> None:
        boxes = [[10, 10, 20, 20], [700, 10, 800, 20]]
        kept = clip_boxes(boxes, 640, 480, remove_invalid=True)
        self.assertEqual(kept.boxes.tolist(), [[10.0, 10.0, 20.0, 20.0]])
        self.assertEqual(kept.removed_count, 1)
        self.assertEqual(clip_boxes(boxes, 640, 480).boxes.shape, (2, 4))


class TestIoU(unittest.TestCase):
    def test_partial_overlap(self) -> None:
        self.assertAlmostEqual(iou([0, 0, 100, 100], [50, 50, 150, 150]), 2500.0 / 17500.0, places=6)

    def test_identity_and_disjoint(self) -> None:
        self.assertEqual(iou([3, 4, 10, 20], [3, 4, 10, 20]), 1.0)
        self.assertEqual(iou([0, 0, 10, 10], [20, 20, 30, 30]), 0.0)
        self.assertEqual(iou([0, 0, 0, 0], [0, 0, 0, 0]), 0.0)

    def test_other_formats(self) -> None:
        self.assertAlmostEqual(iou([0, 0, 100, 100], [50, 50, 100, 100], fmt="xywh"), 2500.0 / 17500.0, places=6)

    def test_matrix_shape(self) -> None:
        m = box_iou_matrix([[0, 0, 10, 10], [0, 0, 5, 5]], [[0, 0, 10, 10], [100, 100, 110, 110], [0, 0, 5, 10]])
        self.assertEqual(m.shape, (2, 3))
        self.assertAlmostEqual(m[1, 0], 0.25)
        self.assertAlmostEqual(m[0, 2], 0.5)
        self.assertEqual(m[0, 1], 0.0)

    def test_bad_length(self) -> None:
        with self.assertRaises(InvalidInput):
            iou([0, 0, 1], [0, 0, 1, 1])


if __name__ == "__main__":
    unittest.main()
