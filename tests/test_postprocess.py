import unittest

import numpy as np

from helmet_kit.classes import ClassEntry, ClassRegistry
from helmet_kit.config import DetectionConfig
from helmet_kit.errors import InvalidThresholdError, ShapeMismatchError, UnknownClassError
from helmet_kit.postprocess import DetectionPostprocessor, postprocess, scale_boxes
from helmet_kit.types import DetectedObject, RawDetections


def _raw(boxes, scores, classes, width=200, height=100) -> RawDetections:
    return RawDetections.from_flat(
        np.array(boxes, dtype=np.float32),
        np.array(scores, dtype=np.float32),
        np.array(classes, dtype=np.float32),
        width,
        height,
    )


class TestScaleBoxes(unittest.TestCase):
    def test_normalized_to_pixel_xywh(self) -> None:
        out = scale_boxes(np.array([[0.1, 0.2, 0.5, 0.6]]), width=200, height=100)
        self.assertTrue(np.allclose(out, np.array([[40.0, 10.0, 80.0, 40.0]])))

    def test_degenerate_box_kept_with_non_positive_size(self) -> None:
        out = scale_boxes(np.array([[0.5, 0.6, 0.4, 0.6]]), width=100, height=100)
        self.assertAlmostEqual(out[0, 2], 0.0)
        self.assertAlmostEqual(out[0, 3], -10.0)


class TestPostprocess(unittest.TestCase):
    def test_single_candidate(self) -> None:
        dets = postprocess(_raw([[0.1, 0.2, 0.5, 0.6]], [0.9], [2]))
        self.assertEqual(len(dets), 1)
        det = dets[0]
        self.assertIsInstance(det, DetectedObject)
        self.assertTrue(np.allclose(det.bbox, (40.0, 10.0, 80.0, 40.0)))
        self.assertEqual(det.label, "helmet")
        self.assertEqual(det.class_id, 2)
        self.assertAlmostEqual(det.score, 0.9, places=6)

    def test_empty_input(self) -> None:
        raw = _raw(np.zeros((0, 4)), [], [])
        self.assertEqual(postprocess(raw), [])

    def test_all_below_score_threshold(self) -> None:
        self.assertEqual(postprocess(_raw([[0.1, 0.1, 0.2, 0.2]], [0.1], [1])), [])

    def test_score_threshold_disabled(self) -> None:
        dets = postprocess(_raw([[0.1, 0.1, 0.2, 0.2]], [0.1], [1]), score_threshold=None)
        self.assertEqual([d.label for d in dets], ["person"])

    def test_overlap_suppressed_and_order_follows_selection(self) -> None:
        raw = _raw(
            [
                [0.10, 0.10, 0.50, 0.50],
                [0.60, 0.60, 0.90, 0.90],
                [0.11, 0.11, 0.51, 0.51],
            ],
            [0.6, 0.7, 0.95],
            [1, 2, 1],
        )
        dets = postprocess(raw)
        self.assertEqual([d.label for d in dets], ["person", "helmet"])
        self.assertEqual([round(d.score, 2) for d in dets], [0.95, 0.7])

    def test_max_outputs(self) -> None:
        boxes = [[0.1 * i, 0.0, 0.1 * i + 0.05, 0.05] for i in range(8)]
        raw = _raw(boxes, [0.9 - 0.01 * i for i in range(8)], [1] * 8)
        self.assertEqual(len(postprocess(raw, max_outputs=3)), 3)
        self.assertEqual(len(postprocess(raw, max_outputs=100)), 8)

    def test_unknown_class_raises(self) -> None:
        raw = _raw([[0.1, 0.1, 0.2, 0.2], [0.5, 0.5, 0.6, 0.6]], [0.9, 0.8], [1, 999])
        with self.assertRaises(UnknownClassError) as ctx:
            postprocess(raw)
        self.assertEqual(ctx.exception.class_id, 999)

    def test_custom_registry(self) -> None:
        registry = ClassRegistry([ClassEntry(id=2, name="hat", display_name="helmet")])
        dets = postprocess(_raw([[0.1, 0.1, 0.2, 0.2]], [0.9], [2]), registry=registry)
        self.assertEqual(dets[0].label, "helmet")

    def test_degenerate_box_emitted(self) -> None:
        dets = postprocess(_raw([[0.5, 0.5, 0.5, 0.5]], [0.9], [1]))
        self.assertEqual(len(dets), 1)
        self.assertAlmostEqual(dets[0].bbox[2], 0.0)
        self.assertAlmostEqual(dets[0].bbox[3], 0.0)

    def test_invalid_thresholds(self) -> None:
        raw = _raw([[0.1, 0.1, 0.2, 0.2]], [0.9], [1])
        with self.assertRaises(InvalidThresholdError):
            postprocess(raw, iou_threshold=1.5)
        with self.assertRaises(InvalidThresholdError):
            postprocess(raw, score_threshold=-0.1)
        with self.assertRaises(InvalidThresholdError):
            postprocess(raw, iou_threshold=None)

    def test_negative_max_outputs_rejected(self) -> None:
        raw = _raw([[0.1, 0.1, 0.2, 0.2]], [0.9], [1])
        with self.assertRaises(ValueError):
            postprocess(raw, max_outputs=-1)
        with self.assertRaises(ValueError):
            postprocess(raw, max_outputs=2.5)
        self.assertEqual(postprocess(raw, max_outputs=0), [])

    def test_nan_class_id_is_unknown(self) -> None:
        raw = _raw([[0.1, 0.1, 0.2, 0.2]], [0.9], [np.nan])
        with self.assertRaises(UnknownClassError):
            postprocess(raw)

    def test_multiclass_without_background(self) -> None:
        # columns: person, helmet
        raw = RawDetections.from_multiclass(
            np.array([[0.1, 0.1, 0.5, 0.5], [0.6, 0.6, 0.9, 0.9]], dtype=np.float32),
            np.array([[0.9, 0.1], [0.2, 0.8]], dtype=np.float32),
            10,
            10,
            background_class=False,
        )
        dets = postprocess(raw)
        self.assertEqual([d.label for d in dets], ["person", "helmet"])
        self.assertEqual([d.class_id for d in dets], [1, 2])

    def test_shape_mismatch(self) -> None:
        raw = RawDetections(
            boxes=np.zeros((3, 4), dtype=np.float32),
            scores=np.zeros((2,), dtype=np.float32),
            classes=np.zeros((2,), dtype=np.float32),
            width=10,
            height=10,
        )
        with self.assertRaises(ShapeMismatchError):
            postprocess(raw)

    def test_to_dict_shape(self) -> None:
        det = postprocess(_raw([[0.1, 0.2, 0.5, 0.6]], [0.5], [1]))[0]
        payload = det.to_dict()
        self.assertEqual(sorted(payload), ["bbox", "class", "score"])
        self.assertEqual(payload["class"], "person")
        self.assertEqual(len(payload["bbox"]), 4)


class TestDetectionPostprocessor(unittest.TestCase):
    def test_uses_config(self) -> None:
        boxes = [[0.1 * i, 0.0, 0.1 * i + 0.05, 0.05] for i in range(5)]
        raw = _raw(boxes, [0.9, 0.8, 0.7, 0.3, 0.2], [1, 2, 1, 2, 1])
        post = DetectionPostprocessor(DetectionConfig(max_outputs=10, score_threshold=0.5))
        dets = post.process(raw)
        self.assertEqual([d.label for d in dets], ["person", "helmet", "person"])


if __name__ == "__main__":
    unittest.main()
