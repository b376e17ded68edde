"""
Tests for the detection loop state machine.

Timers run on a fake clock and ticks are driven directly, so every
transition is deterministic.
"""

import threading
import time

import pytest

from detection.detector import NullDetector
from models.category import WasteCategory
from models.config import TimingConfig
from models.detection import BoundingBox, Detection
from models.state import DetectionState
from runtime.controller import DetectionLoopController
from runtime.timers import CONFIRMATION, MESSAGE, RESTART, TimerService


def det(label="bottle", confidence=0.9):
    return Detection(label, confidence, BoundingBox(10, 10, 100, 100), class_id=0)


class FakeFrames:
    def __init__(self, frame):
        self.frame = frame

    def latest_frame(self):
        return self.frame


class ScriptedDetector:
    """Returns a fixed result (or raises it) for every call."""

    available = True

    def __init__(self, result=None):
        self.result = result
        self.calls = 0

    def detect_best(self, frame):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class BlockingDetector:
    """Blocks inside detect_best until released."""

    available = True

    def __init__(self, result):
        self.result = result
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect_best(self, frame):
        self.entered.set()
        self.release.wait(2.0)
        return self.result


@pytest.fixture
def timers(fake_clock):
    return TimerService(clock=fake_clock, autostart=False)


@pytest.fixture
def make_controller(make_frame, timers, sink):
    def _make(detector=None, timing=None, frame=None, **kwargs):
        return DetectionLoopController(
            frames=FakeFrames(frame if frame is not None else make_frame()),
            detector=detector or ScriptedDetector(det()),
            timers=timers,
            sink=sink,
            timing=timing or TimingConfig(),
            background=False,
            **kwargs,
        )
    return _make


def advance(clock, timers, seconds):
    clock.advance(seconds)
    timers.run_due()


class TestStartStop:
    def test_start_enters_scanning(self, make_controller, sink):
        controller = make_controller()

        assert controller.start() is True

        assert controller.state is DetectionState.SCANNING
        assert controller.is_scanning
        assert controller.is_polling
        assert sink.names() == ["scanning_started"]

    def test_start_twice(self, make_controller, sink):
        controller = make_controller()
        controller.start()

        assert controller.start() is False
        assert sink.names() == ["scanning_started"]

    def test_stop_from_any_state(self, make_controller, timers):
        controller = make_controller()
        controller.start()
        controller.tick()
        assert controller.state is DetectionState.CLASSIFIED

        controller.stop()

        assert controller.state is DetectionState.IDLE
        assert not controller.is_polling
        assert timers.pending_names() == []
        assert controller.last_recommended is None

    def test_stop_when_idle(self, make_controller):
        controller = make_controller()
        controller.stop()
        assert controller.state is DetectionState.IDLE

    def test_start_with_unavailable_detector(self, make_controller):
        controller = make_controller(detector=NullDetector())

        assert controller.start() is True
        assert controller.tick() is None
        assert controller.state is DetectionState.SCANNING


class TestTick:
    def test_confident_detection_classifies(self, make_controller, sink, timers):
        controller = make_controller()
        controller.start()

        assert controller.tick() is WasteCategory.RECYCLE

        assert controller.state is DetectionState.CLASSIFIED
        assert not controller.is_polling
        assert controller.last_recommended is WasteCategory.RECYCLE
        assert controller.last_detection.label == "bottle"
        assert sink.events[-1] == ("classified", WasteCategory.RECYCLE)
        assert timers.deadline(MESSAGE) == 4.0

    def test_below_min_confidence_ignored(self, make_controller, sink):
        controller = make_controller(detector=ScriptedDetector(det(confidence=0.45)))
        controller.start()

        assert controller.tick() is None
        assert controller.state is DetectionState.SCANNING
        assert "classified" not in sink.names()

    def test_min_confidence_inclusive(self, make_controller):
        controller = make_controller(detector=ScriptedDetector(det(confidence=0.5)))
        controller.start()
        assert controller.tick() is WasteCategory.RECYCLE

    def test_no_detection(self, make_controller):
        controller = make_controller(detector=ScriptedDetector(None))
        controller.start()

        assert controller.tick() is None
        assert controller.state is DetectionState.SCANNING

    def test_detector_error_is_non_fatal(self, make_controller):
        controller = make_controller(detector=ScriptedDetector(RuntimeError("forward failed")))
        controller.start()

        assert controller.tick() is None
        assert controller.state is DetectionState.SCANNING

    def test_no_frame_yet(self, make_controller, timers, sink):
        detector = ScriptedDetector(det())
        controller = DetectionLoopController(
            frames=FakeFrames(None), detector=detector, timers=timers, sink=sink, background=False,
        )
        controller.start()

        assert controller.tick() is None
        assert detector.calls == 0

    def test_tick_when_not_scanning(self, make_controller):
        detector = ScriptedDetector(det())
        controller = make_controller(detector=detector)

        assert controller.tick() is None
        assert detector.calls == 0

    def test_label_mapping(self, make_controller):
        controller = make_controller(detector=ScriptedDetector(det(label="battery")))
        controller.start()
        assert controller.tick() is WasteCategory.HAZARDOUS

    def test_stop_during_inference_discards_result(self, make_controller, sink):
        detector = BlockingDetector(det())
        controller = make_controller(detector=detector)
        controller.start()

        results = []
        worker = threading.Thread(target=lambda: results.append(controller.tick()))
        worker.start()
        assert detector.entered.wait(2.0)

        controller.stop()
        detector.release.set()
        worker.join(2.0)

        assert results == [None]
        assert controller.state is DetectionState.IDLE
        assert "classified" not in sink.names()

    def test_busy_tick_is_skipped(self, make_controller):
        detector = BlockingDetector(det())
        controller = make_controller(detector=detector)
        controller.start()

        worker = threading.Thread(target=controller.tick)
        worker.start()
        assert detector.entered.wait(2.0)

        assert controller.tick() is None
        assert controller.skipped_ticks == 1

        detector.release.set()
        worker.join(2.0)
        assert controller.state is DetectionState.CLASSIFIED


class TestTimerSequence:
    def test_full_cycle(self, make_controller, fake_clock, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()

        advance(fake_clock, timers, 3.9)
        assert sink.names()[-1] == "classified"

        advance(fake_clock, timers, 0.1)  # t=4.0
        assert sink.names()[-1] == "message_hidden"
        assert controller.state is DetectionState.CLASSIFIED
        assert timers.deadline(RESTART) == pytest.approx(7.5)

        advance(fake_clock, timers, 3.5)  # t=7.5
        assert controller.state is DetectionState.SCANNING
        assert controller.is_polling
        assert sink.names() == ["scanning_started", "classified", "message_hidden", "scanning_started"]

    def test_start_during_restart_delay(self, make_controller, fake_clock, timers):
        controller = make_controller()
        controller.start()
        controller.tick()
        advance(fake_clock, timers, 4.0)

        assert controller.start() is True

        assert controller.state is DetectionState.SCANNING
        assert not timers.is_pending(RESTART)


class TestDisposal:
    def test_correct_disposal_confirms(self, make_controller, fake_clock, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()

        assert controller.report_disposal(WasteCategory.RECYCLE) is True

        assert controller.state is DetectionState.CONFIRMING
        assert sink.names()[-1] == "confirmed"
        assert timers.deadline(CONFIRMATION) == 3.0

        advance(fake_clock, timers, 3.0)
        assert sink.names()[-1] == "confirmation_hidden"
        assert controller.state is DetectionState.CLASSIFIED

        advance(fake_clock, timers, 1.0)  # message expires at t=4
        assert sink.names()[-1] == "message_hidden"

    def test_mismatch_is_rejected(self, make_controller, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()

        assert controller.report_disposal(WasteCategory.TRASH) is False

        assert controller.state is DetectionState.CLASSIFIED
        assert "confirmed" not in sink.names()
        assert not timers.is_pending(CONFIRMATION)

    def test_no_recommendation_is_rejected(self, make_controller):
        controller = make_controller()
        assert controller.report_disposal(WasteCategory.RECYCLE) is False
        assert controller.state is DetectionState.IDLE

    def test_confirmation_while_scanning_resumes_scanning(self, make_controller, fake_clock, timers, sink):
        controller = make_controller(detector=ScriptedDetector(det()))
        controller.start()
        controller.tick()
        advance(fake_clock, timers, 4.0)
        advance(fake_clock, timers, 3.5)
        assert controller.state is DetectionState.SCANNING

        assert controller.report_disposal(WasteCategory.RECYCLE) is True
        assert not controller.is_polling

        advance(fake_clock, timers, 3.0)
        assert controller.state is DetectionState.SCANNING
        assert controller.is_polling
        assert sink.names()[-2:] == ["confirmation_hidden", "scanning_started"]

    def test_restart_during_confirmation_is_deferred(self, make_controller, fake_clock, timers):
        controller = make_controller(timing=TimingConfig(confirmation_duration_s=10.0))
        controller.start()
        controller.tick()
        controller.report_disposal(WasteCategory.RECYCLE)

        advance(fake_clock, timers, 4.0)  # message expires
        advance(fake_clock, timers, 3.5)  # restart while confirming
        assert controller.state is DetectionState.CONFIRMING

        advance(fake_clock, timers, 2.5)  # confirmation expires at t=10
        assert controller.state is DetectionState.SCANNING

    def test_repeat_disposal_extends_confirmation(self, make_controller, fake_clock, timers):
        controller = make_controller()
        controller.start()
        controller.tick()
        controller.report_disposal(WasteCategory.RECYCLE)
        fake_clock.advance(2.0)
        controller.report_disposal(WasteCategory.RECYCLE)

        advance(fake_clock, timers, 1.5)
        assert controller.state is DetectionState.CONFIRMING
        assert timers.deadline(CONFIRMATION) == 5.0


class TestManualMessages:
    def test_show_disposal_message_from_idle(self, make_controller, timers, sink):
        controller = make_controller()

        controller.show_disposal_message(WasteCategory.COMPOST)

        assert controller.state is DetectionState.CLASSIFIED
        assert controller.last_recommended is WasteCategory.COMPOST
        assert controller.last_detection is None
        assert sink.events[-1] == ("classified", WasteCategory.COMPOST)
        assert timers.is_pending(MESSAGE)

    def test_show_disposal_message_hides_confirmation(self, make_controller, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()
        controller.report_disposal(WasteCategory.RECYCLE)

        controller.show_disposal_message(WasteCategory.TRASH)

        assert sink.names()[-2:] == ["confirmation_hidden", "classified"]
        assert not timers.is_pending(CONFIRMATION)
        assert controller.state is DetectionState.CLASSIFIED

    def test_simulate_detection(self, make_controller):
        controller = make_controller()

        assert controller.simulate_detection("banana") is WasteCategory.COMPOST
        assert controller.state is DetectionState.CLASSIFIED

    def test_dismiss_message(self, make_controller, fake_clock, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()

        controller.dismiss_message()

        assert controller.state is DetectionState.IDLE
        assert sink.names()[-1] == "message_hidden"
        assert timers.pending_names() == []
        assert controller.last_recommended is WasteCategory.RECYCLE

        advance(fake_clock, timers, 10.0)
        assert controller.state is DetectionState.IDLE

    def test_dismiss_during_confirmation(self, make_controller, sink):
        controller = make_controller()
        controller.start()
        controller.tick()
        controller.report_disposal(WasteCategory.RECYCLE)

        controller.dismiss_message()

        assert sink.names()[-2:] == ["confirmation_hidden", "message_hidden"]
        assert controller.state is DetectionState.IDLE


class CapturingTimers(TimerService):
    """Records every scheduled callback so a superseded one can be fired late."""

    def __init__(self, clock):
        super().__init__(clock=clock, autostart=False)
        self.scheduled = []

    def schedule(self, name, delay_s, callback):
        self.scheduled.append((name, callback))
        return super().schedule(name, delay_s, callback)

    def last(self, name):
        return [cb for n, cb in self.scheduled if n == name][-1]


class TestSupersededTimers:
    """A timer callback already firing when its timer is re-armed or cancelled does nothing."""

    @pytest.fixture
    def timers(self, fake_clock):
        return CapturingTimers(fake_clock)

    def test_rearmed_message_ignores_old_expiry(self, make_controller, timers, sink):
        controller = make_controller()
        controller.show_disposal_message(WasteCategory.RECYCLE)
        old_expiry = timers.last(MESSAGE)

        controller.show_disposal_message(WasteCategory.TRASH)
        old_expiry()

        assert sink.names() == ["classified", "classified"]
        assert controller.state is DetectionState.CLASSIFIED
        assert timers.is_pending(MESSAGE)
        assert not timers.is_pending(RESTART)

    def test_rearmed_message_still_expires(self, make_controller, fake_clock, timers, sink):
        controller = make_controller()
        controller.show_disposal_message(WasteCategory.RECYCLE)
        old_expiry = timers.last(MESSAGE)
        fake_clock.advance(2.0)
        controller.show_disposal_message(WasteCategory.TRASH)
        old_expiry()

        advance(fake_clock, timers, 4.0)  # t=6, new message expires

        assert sink.names()[-1] == "message_hidden"
        assert timers.deadline(RESTART) == pytest.approx(9.5)

    def test_restart_after_stop_is_ignored(self, make_controller, fake_clock, timers):
        controller = make_controller()
        controller.start()
        controller.tick()
        advance(fake_clock, timers, 4.0)
        old_restart = timers.last(RESTART)

        controller.stop()
        old_restart()

        assert controller.state is DetectionState.IDLE
        assert not controller.is_polling

    def test_extended_confirmation_ignores_old_expiry(self, make_controller, timers, sink):
        controller = make_controller()
        controller.start()
        controller.tick()
        controller.report_disposal(WasteCategory.RECYCLE)
        old_expiry = timers.last(CONFIRMATION)

        controller.report_disposal(WasteCategory.RECYCLE)
        old_expiry()

        assert controller.state is DetectionState.CONFIRMING
        assert "confirmation_hidden" not in sink.names()
        assert timers.is_pending(CONFIRMATION)

    def test_expiry_fires_once(self, make_controller, timers, sink):
        controller = make_controller()
        controller.show_disposal_message(WasteCategory.COMPOST)
        expiry = timers.last(MESSAGE)

        expiry()
        expiry()

        assert sink.names().count("message_hidden") == 1


class TestSinkErrors:
    def test_sink_error_does_not_break_transition(self, make_controller, timers):
        class BrokenSink:
            def on_scanning_started(self):
                raise RuntimeError("render failed")

            def on_classified(self, category):
                raise RuntimeError("render failed")

        controller = DetectionLoopController(
            frames=FakeFrames(object()),
            detector=ScriptedDetector(det()),
            timers=timers,
            sink=BrokenSink(),
            background=False,
        )

        controller.start()
        assert controller.tick() is WasteCategory.RECYCLE
        assert controller.state is DetectionState.CLASSIFIED
        assert timers.is_pending(MESSAGE)


class TestBackgroundPolling:
    def test_poll_thread_classifies_and_stops(self, make_frame, sink):
        timers = TimerService()
        classified = threading.Event()

        class Sink(type(sink)):
            def on_classified(self, category):
                super().on_classified(category)
                classified.set()

        recording = Sink()
        controller = DetectionLoopController(
            frames=FakeFrames(make_frame()),
            detector=ScriptedDetector(det()),
            timers=timers,
            sink=recording,
            timing=TimingConfig(poll_interval_ms=10),
        )
        try:
            controller.start()
            assert classified.wait(2.0)
            assert controller.state is DetectionState.CLASSIFIED
        finally:
            controller.stop()
            timers.shutdown()

        assert controller.state is DetectionState.IDLE

    def test_stop_joins_poll_thread(self, make_frame, sink):
        timers = TimerService()
        controller = DetectionLoopController(
            frames=FakeFrames(make_frame()),
            detector=ScriptedDetector(None),
            timers=timers,
            sink=sink,
            timing=TimingConfig(poll_interval_ms=10),
        )
        try:
            controller.start()
            time.sleep(0.05)
            controller.stop()
            assert not controller.is_polling
            assert all(t.name != "detection-loop" or not t.is_alive() for t in threading.enumerate())
        finally:
            timers.shutdown()
