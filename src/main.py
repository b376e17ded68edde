"""
Headless runner for the waste sorting kiosk.

Opens the camera feed, loads the detection model and runs the detection
loop, logging every presentation event until interrupted.

Usage:
    python src/main.py --config config/config.yaml --scan

Arguments:
    --config: Path to configuration file
    --scan: Start scanning as soon as the feed is up
    --simulate: Show the instructions for a label instead of detecting
"""

import os
import sys
import argparse
import logging
import signal
import threading
import yaml
from typing import Dict, Any, Tuple, Optional

from models.config import Config
from ops.logging import setup_logging
from runtime.context import build_context
from runtime.sink import LoggingSink


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'timing', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    camera = config.get('camera') or {}
    device_index = camera.get('device_index', 0)
    if not isinstance(device_index, int) or isinstance(device_index, bool) or device_index < 0:
        return False, "camera.device_index must be a non-negative integer"
    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in resolution):
            return False, "camera.resolution values must be positive integers"
    interval = camera.get('capture_interval_ms', 33)
    if not isinstance(interval, int) or interval <= 0:
        return False, "camera.capture_interval_ms must be a positive integer"

    detection = config.get('detection') or {}
    model_path = detection.get('model_path')
    if not isinstance(model_path, str) or not model_path:
        return False, "detection.model_path is required"
    for key in ('conf_threshold', 'iou_threshold', 'min_confidence'):
        if key in detection:
            value = detection[key]
            if not _is_number(value) or not (0 <= value <= 1):
                return False, f"detection.{key} must be a number between 0 and 1"
    if 'input_size' in detection:
        size = detection['input_size']
        if not isinstance(size, list) or len(size) != 2 or not all(isinstance(x, int) and x > 0 for x in size):
            return False, "detection.input_size must be a list of two positive integers"
    labels = detection.get('labels')
    if labels is not None and (not isinstance(labels, list) or not all(isinstance(x, str) for x in labels)):
        return False, "detection.labels must be a list of strings"

    timing = config.get('timing') or {}
    poll = timing.get('poll_interval_ms', 100)
    if not isinstance(poll, int) or poll <= 0:
        return False, "timing.poll_interval_ms must be a positive integer"
    for key in ('message_duration_s', 'confirmation_duration_s', 'restart_delay_s'):
        if key in timing and (not _is_number(timing[key]) or timing[key] < 0):
            return False, f"timing.{key} must be a non-negative number"

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Waste Sorting Kiosk - detection loop')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--scan', action='store_true',
                        help='Start scanning immediately')
    parser.add_argument('--simulate', type=str, default=None, metavar='LABEL',
                        help='Display the instructions for LABEL instead of detecting')
    args = parser.parse_args()

    raw_config = load_config(args.config)
    is_valid, error = validate_config(raw_config)
    if not is_valid:
        print(f"Configuration error: {error}", file=sys.stderr)
        sys.exit(1)

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting waste sorting kiosk")

    ctx = build_context(config, LoggingSink())
    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logging.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        ctx.start_feed()
        if args.simulate:
            ctx.controller.simulate_detection(args.simulate)
        elif args.scan:
            ctx.controller.start()

        while not stop_event.wait(60.0):
            logging.info(f"Status: {ctx.get_system_stats_copy()}")
    finally:
        ctx.shutdown()


if __name__ == "__main__":
    main()
