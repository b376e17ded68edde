"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CameraConfig:
    """Camera configuration."""
    device_index: int = 0
    resolution: List[int] = field(default_factory=lambda: [640, 480])
    capture_interval_ms: int = 33
    max_retries: int = 3
    buffer_size: int = 1

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            device_index=d.get("device_index", 0),
            resolution=d.get("resolution", [640, 480]),
            capture_interval_ms=d.get("capture_interval_ms", 33),
            max_retries=d.get("max_retries", 3),
            buffer_size=d.get("buffer_size", 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_index": self.device_index,
            "resolution": self.resolution,
            "capture_interval_ms": self.capture_interval_ms,
            "max_retries": self.max_retries,
            "buffer_size": self.buffer_size,
        }


@dataclass
class DetectorConfig:
    """Object detector configuration."""
    model_path: str = "model/YOLO/best.onnx"
    input_size: List[int] = field(default_factory=lambda: [640, 640])
    labels: List[str] = field(default_factory=lambda: ["bottle"])
    conf_threshold: float = 0.4
    iou_threshold: float = 0.45
    min_confidence: float = 0.5
    debug: bool = False
    num_threads: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            model_path=d.get("model_path", "model/YOLO/best.onnx"),
            input_size=d.get("input_size", [640, 640]),
            labels=d.get("labels") or ["bottle"],
            conf_threshold=d.get("conf_threshold", 0.4),
            iou_threshold=d.get("iou_threshold", 0.45),
            min_confidence=d.get("min_confidence", 0.5),
            debug=d.get("debug", False),
            num_threads=d.get("num_threads"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "model_path": self.model_path,
            "input_size": self.input_size,
            "labels": self.labels,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "min_confidence": self.min_confidence,
            "debug": self.debug,
        }
        if self.num_threads is not None:
            d["num_threads"] = self.num_threads
        return d


@dataclass
class TimingConfig:
    """Detection loop cadence and display durations."""
    poll_interval_ms: int = 100
    message_duration_s: float = 4.0
    confirmation_duration_s: float = 3.0
    restart_delay_s: float = 3.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimingConfig":
        return cls(
            poll_interval_ms=d.get("poll_interval_ms", 100),
            message_duration_s=d.get("message_duration_s", 4.0),
            confirmation_duration_s=d.get("confirmation_duration_s", 3.0),
            restart_delay_s=d.get("restart_delay_s", 3.5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poll_interval_ms": self.poll_interval_ms,
            "message_duration_s": self.message_duration_s,
            "confirmation_duration_s": self.confirmation_duration_s,
            "restart_delay_s": self.restart_delay_s,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectorConfig = field(default_factory=DetectorConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    log_path: str = "logs/kiosk.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            detection=DetectorConfig.from_dict(d.get("detection") or {}),
            timing=TimingConfig.from_dict(d.get("timing") or {}),
            log_path=d.get("log_path", "logs/kiosk.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "timing": self.timing.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
