from particlegrid.config import EngineSettings
from particlegrid.controller.particle_system import ParticleSystemController
from particlegrid.model.particles import Species, SpeciesCounts, SpeciesColors
from PySide6.QtCore import QEventLoop, QTimer
import numpy as np
import pytest

MAX_TICKS = 500


def make_controller(**kwargs):
    kwargs.setdefault("rng", np.random.default_rng(0))
    return ParticleSystemController(width=272, max_height=140, **kwargs)


def run_ticks(controller, limit=MAX_TICKS):
    """Fire the timer slot by hand while the timer stays armed."""
    fired = 0
    while controller.is_ticking and fired < limit:
        controller._on_tick()
        fired += 1
    return fired


def test_idle_when_converged(qapp):
    controller = make_controller()
    assert not controller.is_ticking
    assert controller.observed == SpeciesCounts()
    assert len(controller.slots) == 190


def test_converges_in_two_ticks(qapp):
    controller = make_controller(liquid_height=71.5)
    settled = []
    controller.settled.connect(settled.append)

    controller.set_desired({"substance": 3, "primary": 0, "secondary": 0})
    assert controller.is_ticking

    assert run_ticks(controller) == 2
    assert controller.tick_count == 2
    assert controller.observed == SpeciesCounts(substance=3)
    assert settled == [True]


def test_counts_signal_and_callback(qapp):
    from_callback = []
    controller = make_controller(on_counts_change=from_callback.append)
    from_signal = []
    controller.counts_changed.connect(from_signal.append)

    controller.set_desired({"substance": 4})
    run_ticks(controller)
    assert from_signal == [SpeciesCounts(substance=2), SpeciesCounts(substance=4)]
    assert from_callback == [SpeciesCounts()] + from_signal


def test_drain_cancels_timer(qapp):
    controller = make_controller()
    controller.set_desired({"substance": 10, "primary": 2})
    run_ticks(controller)
    controller.set_desired({"substance": 20})
    controller._on_tick()
    assert controller.is_ticking

    slots_changed = []
    controller.slots_changed.connect(lambda: slots_changed.append(True))
    controller.set_desired({"substance": 0, "primary": 0, "secondary": 0})
    assert not controller.is_ticking
    assert controller.observed == SpeciesCounts()
    assert slots_changed == [True]


def test_new_target_replaces_pending_cycle(qapp):
    controller = make_controller()
    controller.set_desired({"substance": 8})
    controller._on_tick()
    assert controller.observed == SpeciesCounts(substance=2)

    controller.set_desired({"substance": 1})
    assert controller.is_ticking
    run_ticks(controller)
    assert controller.observed == SpeciesCounts(substance=1)
    assert not controller.is_ticking


def test_stall_stops_scheduling(qapp):
    controller = make_controller(liquid_height=0)
    settled = []
    controller.settled.connect(settled.append)
    snapshot = [slot.type for slot in controller.slots]

    controller.set_desired({"primary": 5, "secondary": 5})
    assert controller.is_ticking
    assert run_ticks(controller) == 1
    assert not controller.is_ticking
    assert settled == [False]
    assert [slot.type for slot in controller.slots] == snapshot


def test_rising_liquid_resumes_after_stall(qapp):
    controller = make_controller(liquid_height=0)
    controller.set_desired({"substance": 5})
    run_ticks(controller)
    assert controller.observed == SpeciesCounts()

    controller.set_liquid_height(30)
    assert controller.is_ticking
    run_ticks(controller)
    assert controller.observed == SpeciesCounts(substance=5)


def test_lowering_liquid_resets_synchronously(qapp):
    controller = make_controller()
    controller.set_desired({"substance": 50})
    run_ticks(controller)

    controller.set_liquid_height(14.3)
    assert controller.engine.active_count == 19
    assert all(slot.type is Species.WATER for slot in controller.slots[19:])
    run_ticks(controller)
    assert controller.observed == SpeciesCounts(substance=19)


def test_moving_surface_over_empty_rows_signals_renderer(qapp):
    controller = make_controller(liquid_height=14.3)
    slots_changed = []
    controller.slots_changed.connect(lambda: slots_changed.append(controller.engine.active_count))

    controller.set_liquid_height(140)
    assert slots_changed == [190]
    assert all(controller.engine.is_active(slot) for slot in controller.slots)

    # all water, so nothing is reset, but the wet/dry split still moves
    controller.set_liquid_height(30)
    assert slots_changed == [190, 57]

    # same window, no signal
    controller.set_liquid_height(29)
    assert slots_changed == [190, 57]


def test_water_level_drives_the_surface(qapp):
    controller = make_controller()
    slots_changed = []
    controller.slots_changed.connect(lambda: slots_changed.append(True))
    controller.set_desired({"substance": 200})

    controller.set_water_level(0, 0, 1)
    assert controller.engine.active_count == 7 * 19
    assert slots_changed == [True]
    run_ticks(controller)
    assert controller.observed == SpeciesCounts(substance=7 * 19)


def test_geometry_change_rebuilds(qapp):
    controller = make_controller()
    controller.set_desired({"secondary": 6})
    run_ticks(controller)

    controller.set_desired({"secondary": 7})
    assert controller.is_ticking
    controller.set_geometry(width=150, max_height=70)
    assert len(controller.slots) == 50
    assert controller.observed == SpeciesCounts()
    assert controller.is_ticking
    run_ticks(controller)
    assert controller.observed == SpeciesCounts(secondary=7)


def test_set_colors(qapp):
    controller = make_controller()
    controller.set_desired({"primary": 3})
    run_ticks(controller)
    controller.set_colors(SpeciesColors(substance="#000001", primary="#000002", secondary="#000003"))
    assert {slot.color for slot in controller.slots if slot.type is Species.PRIMARY_ION} == {"#000002"}


def test_event_loop_drives_ticks(qapp):
    controller = make_controller(settings=EngineSettings(tick_interval_ms=1))
    loop = QEventLoop()
    controller.settled.connect(loop.quit)
    # guard against a hung loop
    QTimer.singleShot(5000, loop.quit)

    controller.set_desired({"substance": 5, "primary": 2})
    loop.exec()

    assert controller.observed == SpeciesCounts(substance=5, primary=2)
    assert not controller.is_ticking
    assert controller.tick_count == 4


@pytest.mark.parametrize("liquid_height", [0, 30, 71.5, 140])
def test_random_updates_stay_bounded(qapp, liquid_height):
    controller = make_controller(liquid_height=liquid_height, rng=np.random.default_rng(11))
    driver = np.random.default_rng(int(liquid_height))
    for _ in range(50):
        controller.set_desired({
            "substance": int(driver.integers(0, 30)),
            "primary": int(driver.integers(0, 30)),
            "secondary": int(driver.integers(0, 30)),
        })
        controller.set_liquid_height(float(driver.uniform(0, 140)))
        run_ticks(controller, limit=int(driver.integers(0, 4)))
        observed = controller.observed
        assert min(observed.substance, observed.primary, observed.secondary) >= 0
        assert observed.total <= controller.engine.active_count
    assert run_ticks(controller) < MAX_TICKS
