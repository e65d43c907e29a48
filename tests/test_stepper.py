import numpy as np
import pytest

from clothpd.config import SimulationConfig
from clothpd.exceptions import ClothError, NumericalBreakdownError, UninitializedError
from clothpd.pre.topology import GridTopology
from clothpd.solvers.stepper import Stage, Stepper


@pytest.fixture
def stepper(small_config):
    return Stepper.from_config(small_config)


def test_uninitialized_stepper_rejects_use(small_config):
    stepper = Stepper(topology=GridTopology(nside=4, size=1.0), config=small_config)
    assert stepper.stage is Stage.UNINITIALIZED

    with pytest.raises(UninitializedError):
        stepper.add_fixed(0, 0)
    with pytest.raises(UninitializedError):
        stepper.step()
    with pytest.raises(UninitializedError):
        _ = stepper.positions


def test_initialize_once(small_config):
    stepper = Stepper(topology=GridTopology(nside=4, size=1.0), config=small_config)
    stepper.initialize()
    assert stepper.stage is Stage.READY
    assert stepper.topology.number_of_constraints == 2 * 4 * 3 + 2 * 9

    with pytest.raises(ClothError):
        stepper.initialize()


def test_local_step_preserves_rest_lengths(stepper):
    model = stepper.model
    rng = np.random.default_rng(11)
    model.x += 0.05 * rng.standard_normal(model.x.shape)

    stepper.local_step()

    magnitudes = np.linalg.norm(model.d.reshape(-1, 3), axis=1)
    np.testing.assert_allclose(magnitudes, model.rest_lengths, rtol=1e-10)
    assert stepper.degenerate_constraints == 0


def test_local_step_degenerate_edge_uses_rest_direction(stepper):
    model = stepper.model
    model.positions[1] = model.positions[0]

    stepper.local_step()

    assert stepper.degenerate_constraints == 1
    assert (model.starts[0], model.ends[0]) == (0, 1)
    np.testing.assert_allclose(model.d[:3], model.rest_directions[:3] * model.rest_lengths[0])
    assert np.all(np.isfinite(model.d))


def test_breakdown_rolls_back_the_frame(stepper):
    model = stepper.model
    stepper.step()
    model.x[4] = np.inf
    x_before = model.x.copy()
    x_prev_before = model.x_prev.copy()

    with pytest.raises(NumericalBreakdownError):
        stepper.step()

    np.testing.assert_array_equal(model.x, x_before)
    np.testing.assert_array_equal(model.x_prev, x_prev_before)
    assert stepper.frame == 1


def test_global_step_uses_stepper_owned_rhs(stepper):
    model = stepper.model
    model.y[:] = model.x
    stepper.local_step()
    result = stepper.global_step()

    cfg = stepper.config
    expected_b = cfg.dt2 * (model.j_global @ model.d) + cfg.dt2 * model.f_external + model.y
    np.testing.assert_allclose(model.b, expected_b)
    assert result.converged
    assert result.x is model.x
    assert np.linalg.norm(model.y_global @ model.x - model.b) < 1e-5


def test_inertial_prediction_snapshots_previous_state(stepper):
    model = stepper.model
    stepper.step()
    after_first = model.x.copy()
    stepper.step()
    np.testing.assert_array_equal(model.x_prev, after_first)


def test_pin_captures_current_position(stepper):
    for _ in range(5):
        stepper.step()

    vertex = stepper.index(3, 3)
    current = stepper.positions[vertex].copy()
    rest = stepper.topology.rest_positions().reshape(-1, 3)[vertex]
    assert not np.allclose(current, rest)

    pin = stepper.add_fixed(3, 3)
    assert pin.vertex == vertex
    np.testing.assert_array_equal(pin.position, current)


def test_pinned_vertices_hold_their_position(stepper):
    stepper.pin_corners()
    captured = [np.array(pin.position) for pin in stepper.pins]
    assert [pin.vertex for pin in stepper.pins] == [0, 3]

    for _ in range(30):
        stepper.step()

    for pin, position in zip(stepper.pins, captured):
        np.testing.assert_array_equal(stepper.positions[pin.vertex], position)
    assert stepper.frame == 30


def test_free_vertices_fall(stepper):
    stepper.pin_corners()
    for _ in range(10):
        stepper.step()
    assert stepper.positions[:, 1].mean() < 0.0


def test_steps_are_deterministic(small_config):
    first = Stepper.from_config(small_config)
    second = Stepper.from_config(small_config)
    for s in (first, second):
        s.pin_corners()
        for _ in range(5):
            s.step()
    np.testing.assert_array_equal(first.positions, second.positions)


def test_hanging_cloth_comes_to_rest():
    config = SimulationConfig(nside=6, size=1.0, stiffness=1000.0, n_iter=10, preservation=0.1)
    stepper = Stepper.from_config(config)
    stepper.pin_corners()

    change = np.inf
    for _ in range(400):
        before = stepper.positions.copy()
        stepper.step()
        change = np.abs(stepper.positions - before).max()

    assert np.all(np.isfinite(stepper.positions))
    assert change < 1e-3
    # The cloth hangs below its pinned edge
    assert stepper.positions[:, 1].min() < -0.5 * config.size
