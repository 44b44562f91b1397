import json
import tempfile
import unittest
from pathlib import Path

from helmet_kit.config import DetectionConfig, load_detection_config
from helmet_kit.errors import InvalidThresholdError


class TestDetectionConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = DetectionConfig()
        self.assertEqual(cfg.max_outputs, 100)
        self.assertEqual(cfg.iou_threshold, 0.4)
        self.assertEqual(cfg.score_threshold, 0.4)
        self.assertEqual(cfg.nms_backend, "numpy")
        self.assertEqual(cfg.warmup_shape, (1, 300, 300, 3))

    def test_threshold_bounds(self) -> None:
        DetectionConfig(iou_threshold=0.0, score_threshold=1.0)
        DetectionConfig(score_threshold=None)
        with self.assertRaises(InvalidThresholdError):
            DetectionConfig(iou_threshold=1.01)
        with self.assertRaises(InvalidThresholdError):
            DetectionConfig(score_threshold=-0.5)
        with self.assertRaises(InvalidThresholdError):
            DetectionConfig(iou_threshold=None)

    def test_other_fields_validated(self) -> None:
        with self.assertRaises(ValueError):
            DetectionConfig(max_outputs=-1)
        with self.assertRaises(ValueError):
            DetectionConfig(nms_backend="webgl")
        with self.assertRaises(ValueError):
            DetectionConfig(input_size=(0, 300))


class TestLoadDetectionConfig(unittest.TestCase):
    def _write_config(self, payload) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "detection.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load_ok(self) -> None:
        path = self._write_config(
            {
                "max_outputs": 20,
                "iou_threshold": 0.5,
                "score_threshold": None,
                "input_size": [300, 300],
                "warmup": False,
            }
        )
        cfg = load_detection_config(path)
        self.assertEqual(cfg.max_outputs, 20)
        self.assertEqual(cfg.iou_threshold, 0.5)
        self.assertIsNone(cfg.score_threshold)
        self.assertEqual(cfg.input_size, (300, 300))
        self.assertFalse(cfg.warmup)

    def test_missing_keys_use_defaults(self) -> None:
        cfg = load_detection_config(self._write_config({}))
        self.assertEqual(cfg, DetectionConfig())

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_detection_config(self._write_config({"maxNumBoxes": 20}))

    def test_out_of_range_threshold(self) -> None:
        with self.assertRaises(InvalidThresholdError):
            load_detection_config(self._write_config({"score_threshold": 2}))

    def test_wrong_types_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_detection_config(self._write_config({"max_outputs": "10"}))
        with self.assertRaises(ValueError):
            load_detection_config(self._write_config({"input_size": [300]}))

    def test_not_an_object(self) -> None:
        with self.assertRaises(ValueError):
            load_detection_config(self._write_config([1, 2]))

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_detection_config(Path("/nonexistent/detection.json"))


if __name__ == "__main__":
    unittest.main()
