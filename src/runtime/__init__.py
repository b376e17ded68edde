"""
Runtime services: timers, the detection loop controller and wiring.

Import submodules directly (e.g. `from runtime.controller import
DetectionLoopController`); this package does not re-export them so the
observation layer can depend on runtime.channels without import cycles.
"""
