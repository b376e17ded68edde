"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.frame import FrameData


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingSink:
    """Presentation sink that records every event in order."""

    def __init__(self):
        self.events = []

    def on_scanning_started(self):
        self.events.append(("scanning_started",))

    def on_classified(self, category):
        self.events.append(("classified", category))

    def on_message_hidden(self):
        self.events.append(("message_hidden",))

    def on_confirmed(self):
        self.events.append(("confirmed",))

    def on_confirmation_hidden(self):
        self.events.append(("confirmation_hidden",))

    def on_camera_error(self, message):
        self.events.append(("camera_error", message))

    def on_frame_ready(self, frame):
        self.events.append(("frame_ready", frame.frame_index))

    def names(self):
        return [e[0] for e in self.events if e[0] != "frame_ready"]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_frame():
    """Factory for FrameData objects with a blank BGR image."""
    def _make(width=640, height=480, frame_index=0):
        image = np.zeros((height, width, 3), dtype=np.uint8)
        return FrameData.from_numpy(image, timestamp=1000.0 + frame_index, frame_index=frame_index)
    return _make


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_index: 0
  resolution: [640, 480]
  capture_interval_ms: 33

detection:
  model_path: "model/YOLO/best.onnx"
  labels: ["bottle"]
  conf_threshold: 0.4
  iou_threshold: 0.45
  min_confidence: 0.5

timing:
  poll_interval_ms: 100
  message_duration_s: 4.0
  confirmation_duration_s: 3.0
  restart_delay_s: 3.5

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_index": 0,
            "resolution": [1280, 720],
            "capture_interval_ms": 33,
        },
        "detection": {
            "model_path": "model/YOLO/best.onnx",
            "input_size": [640, 640],
            "labels": ["bottle"],
            "conf_threshold": 0.4,
            "iou_threshold": 0.45,
            "min_confidence": 0.5,
        },
        "timing": {
            "poll_interval_ms": 100,
            "message_duration_s": 4.0,
            "confirmation_duration_s": 3.0,
            "restart_delay_s": 3.5,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
