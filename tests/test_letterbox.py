import unittest

import numpy as np

from vision_kit.boxes import convert_format
from vision_kit.errors import InvalidInput
from vision_kit.geometry import plan_resize
from vision_kit.letterbox import (
    LetterboxConfig,
    LetterboxRecord,
    letterbox,
    letterbox_record,
    letterbox_with_config,
    reverse_letterbox,
)


class TestLetterbox(unittest.TestCase):
    def test_full_hd_frame(self) -> None:
        img = np.zeros((1080, 1920, 3), dtype=np.uint8)
        padded, record = letterbox(img, new_shape=(640, 640))
        self.assertEqual(padded.shape, (640, 640, 3))
        self.assertAlmostEqual(record.scale, 1.0 / 3.0, places=9)
        self.assertEqual(record.offset, (0, 140))
        self.assertEqual(record.padding, (0, 140, 0, 140))
        self.assertEqual(record.original_size, (1920, 1080))
        self.assertEqual(record.letterboxed_size, (640, 640))
        self.assertTrue(np.all(padded[:140] == 114))
        self.assertTrue(np.all(padded[140:500] == 0))
        self.assertTrue(np.all(padded[500:] == 114))

    def test_int_shape_and_config(self) -> None:
        img = np.zeros((100, 50, 3), dtype=np.uint8)
        padded, record = letterbox(img, new_shape=64)
        self.assertEqual(padded.shape, (64, 64, 3))
        cfg = LetterboxConfig(new_shape=(64, 64), color=(1, 2, 3))
        padded_cfg, record_cfg = letterbox_with_config(img, cfg)
        self.assertEqual(record_cfg, record)
        self.assertEqual(padded_cfg[0, 0].tolist(), [1, 2, 3])

    def test_record_requires_letterbox_plan(self) -> None:
        with self.assertRaises(InvalidInput):
            letterbox_record(plan_resize(10, 10, 20, 20, "contain"))

    def test_record_dict_round_trip(self) -> None:
        record = LetterboxRecord(scale=0.5, offset=(3, 4), original_size=(100, 50), letterboxed_size=(64, 64))
        payload = record.to_dict()
        self.assertEqual(payload["originalSize"], [100, 50])
        self.assertEqual(LetterboxRecord.from_dict(payload), record)
        with self.assertRaises(InvalidInput):
            LetterboxRecord.from_dict({"scale": 1.0})
        with self.assertRaises(InvalidInput):
            LetterboxRecord(scale=0.0, offset=(0, 0), original_size=(1, 1), letterboxed_size=(1, 1))


class TestReverseLetterbox(unittest.TestCase):
    RECORD = LetterboxRecord(
        scale=1.0 / 3.0,
        offset=(0, 140),
        original_size=(1920, 1080),
        letterboxed_size=(640, 640),
        padding=(0, 140, 0, 140),
    )

    def test_matches_direct_formula(self) -> None:
        boxes = np.array([[100.0, 200.0, 300.0, 400.0], [10.0, 150.0, 20.0, 160.0]])
        out = reverse_letterbox(boxes, self.RECORD)
        expected = (boxes - np.array([0, 140, 0, 140])) / (1.0 / 3.0)
        np.testing.assert_allclose(out, expected)
        np.testing.assert_allclose(out[0], [300.0, 180.0, 900.0, 780.0])

    def test_clips_to_original_image(self) -> None:
        out = reverse_letterbox([0.0, 100.0, 640.0, 640.0], self.RECORD)
        np.testing.assert_allclose(out, [0.0, 0.0, 1920.0, 1080.0])
        raw = reverse_letterbox([0.0, 100.0, 640.0, 640.0], self.RECORD, clip=False)
        np.testing.assert_allclose(raw, [0.0, -120.0, 1920.0, 1500.0])

    def test_keeps_box_format(self) -> None:
        xyxy = np.array([[100.0, 200.0, 300.0, 400.0]])
        out = reverse_letterbox(convert_format(xyxy, "xyxy", "cxcywh"), self.RECORD, fmt="cxcywh")
        np.testing.assert_allclose(convert_format(out, "cxcywh", "xyxy"), [[300.0, 180.0, 900.0, 780.0]])

    def test_empty_list(self) -> None:
        self.assertEqual(reverse_letterbox([], self.RECORD).shape, (0, 4))
        self.assertEqual(reverse_letterbox([], self.RECORD, fmt="cxcywh", clip=False).shape, (0, 4))

    def test_forward_then_reverse_recovers_source_box(self) -> None:
        img = np.zeros((480, 640, 3), dtype=np.uint8)
        _, record = letterbox(img, new_shape=(320, 320))
        source_box = np.array([64.0, 48.0, 320.0, 240.0])
        forward = source_box * record.scale + np.array(record.offset * 2, dtype=np.float64)
        np.testing.assert_allclose(reverse_letterbox(forward, record), source_box)


if __name__ == "__main__":
    unittest.main()
