"""
Behavioural tests for ParticleGrid through its public API.
"""

import numpy as np
import pytest

from affinity_ca import GridConfig, ParticleGrid, UpdateStatus, create, render_frame


def test_full_grid_with_positive_affinity_never_moves():
    grid = create(size=4, num_types=2, density=1.0, radius=1, affinity=[1] * 16, seed=3)
    assert grid.particle_count() == 16
    assert np.all(grid.affinity == 1)

    grid.step()

    # Nowhere to move: only relabelling can happen, and it keeps every cell full.
    snapshot = grid.grid
    assert np.all(snapshot != 0)
    assert np.all(snapshot <= 2)
    assert grid.particle_count() == 16
    counts = grid.type_counts()
    assert counts[0] == 0
    assert counts[1:].sum() == 16


def test_full_grid_relabelling_conserves_particles_over_many_steps():
    grid = create(size=8, num_types=3, density=1.0, radius=1, affinity=[1] * 16, seed=5)
    assert grid.particle_count() == 64

    for _ in range(25):
        grid.step()
        assert grid.particle_count() == 64
        assert grid.type_counts()[1:].sum() == 64


def test_num_types_is_capped_to_uint8_range():
    grid = create(size=64, num_types=300, density=0.8, radius=1, seed=2)
    before = grid.particle_count()

    assert grid.num_types == 255
    assert grid.affinity.shape == (256, 256)
    assert grid.colors.shape == (256, 3)
    assert np.all(grid.copy_targets[1:] != 0)
    assert np.all(grid.replace_targets[1:] != 0)

    grid.step(50)

    assert grid.particle_count() == before


def test_update_affinity_with_oversized_ints_does_not_raise():
    grid = create(size=4, num_types=2, density=0.5, radius=1, seed=6)

    status = grid.update_affinity([2 ** 70] * 9)

    assert status is UpdateStatus.OK
    assert np.all(grid.affinity == 0)


def test_update_copy_replace_with_oversized_ints_is_rejected():
    grid = create(size=4, num_types=2, density=0.5, radius=1, seed=6)
    copy_before = grid.copy_targets

    status = grid.update_copy_replace([1, 2 ** 70, 1], [1, 1, 1])

    assert status is UpdateStatus.INVALID_TYPE_ID
    np.testing.assert_array_equal(grid.copy_targets, copy_before)


def test_empty_grid_step_is_noop():
    grid = create(size=2, num_types=1, density=0.0, radius=1, seed=0)
    assert grid.export_grid() == bytes(4)

    for _ in range(5):
        grid.step()

    assert grid.export_grid() == bytes(4)


def test_step_is_noop_when_update_budget_is_zero():
    # floor(0.2 * 0.5 * 2 * 2) == 0
    grid = create(size=2, num_types=2, density=0.5, radius=1, seed=9)
    before = grid.export_grid()

    grid.step(10)

    assert grid.export_grid() == before


@pytest.mark.parametrize("seed", [11, 12, 13])
def test_particle_count_is_conserved(seed):
    grid = create(size=32, num_types=4, density=0.4, radius=2, seed=seed)
    before = grid.particle_count()

    for _ in range(20):
        grid.step()
        assert grid.particle_count() == before


def test_steps_actually_change_the_grid():
    grid = create(size=32, num_types=3, density=0.3, radius=2, seed=21)
    before = grid.grid

    grid.step(5)

    assert not np.array_equal(before, grid.grid)


def test_same_seed_same_run():
    a = create(size=24, num_types=4, density=0.35, radius=2, seed=42)
    b = create(size=24, num_types=4, density=0.35, radius=2, seed=42)
    assert a.export_grid() == b.export_grid()

    a.step(15)
    b.step(15)

    assert a.export_grid() == b.export_grid()


def test_injected_generator_is_used():
    config = GridConfig(size=16, num_types=3, density=0.5, radius=1)
    a = ParticleGrid(config, rng=np.random.default_rng(5))
    b = ParticleGrid(config, rng=np.random.default_rng(5))

    np.testing.assert_array_equal(a.grid, b.grid)
    np.testing.assert_array_equal(a.affinity, b.affinity)


def test_export_grid_layout():
    grid = create(size=7, num_types=5, density=0.6, radius=1, seed=4)
    grid.step(3)

    data = grid.export_grid()
    lattice = grid.grid

    assert isinstance(data, bytes)
    assert len(data) == 49
    for x in range(7):
        for y in range(7):
            assert data[y * 7 + x] == lattice[x, y]


def test_accessors_and_debug_info():
    grid = create(size=8, num_types=3, density=0.0, radius=2, seed=1)

    assert (grid.size, grid.num_types, grid.density, grid.radius) == (8, 3, 0.0, 2)
    assert grid.debug_info() == "Grid 8x8, 3 types, density 0.00, radius 2, particles: 0"

    counts = grid.type_counts()
    assert counts.shape == (4,)
    assert counts[0] == 64


def test_type_counts_cover_grid():
    grid = create(size=10, num_types=3, density=0.5, radius=1, seed=8)
    counts = grid.type_counts()

    assert counts.sum() == 100
    assert counts[1:].sum() == grid.particle_count()


def test_random_affinity_and_rule_tables():
    grid = create(size=8, num_types=5, density=0.5, radius=1, seed=17)
    affinity = grid.affinity
    copy_type = grid.copy_targets
    replace_type = grid.replace_targets

    assert affinity.shape == (6, 6)
    assert set(np.unique(affinity)) <= {-1, 1}
    for t in range(1, 6):
        assert copy_type[t] != t
        assert replace_type[t] != t
        assert replace_type[t] != copy_type[t]


def test_short_custom_affinity_falls_back_to_random():
    grid = create(size=4, num_types=3, density=0.5, radius=1, affinity=[7] * 15, seed=2)
    assert set(np.unique(grid.affinity)) <= {-1, 1}


def test_accessors_return_copies():
    grid = create(size=4, num_types=2, density=1.0, radius=1, seed=2)
    grid.grid[:] = 0
    grid.affinity[:] = 0

    assert grid.particle_count() == 16
    assert set(np.unique(grid.affinity)) <= {-1, 1}


def test_update_affinity():
    grid = create(size=4, num_types=2, density=0.5, radius=1, seed=6)
    before = grid.affinity

    status = grid.update_affinity([1] * 8)
    assert status is UpdateStatus.SIZE_MISMATCH
    assert not status
    np.testing.assert_array_equal(grid.affinity, before)

    status = grid.update_affinity([-1, 1, 1, 1, -1, 300, 1, 1, -1, 55])
    assert status is UpdateStatus.OK
    assert status
    np.testing.assert_array_equal(
        grid.affinity, [[-1, 1, 1], [1, -1, 44], [1, 1, -1]]
    )


def test_update_copy_replace_rejects_short_sequences():
    grid = create(size=4, num_types=3, density=0.5, radius=1, seed=6)
    copy_before = grid.copy_targets
    replace_before = grid.replace_targets

    assert grid.update_copy_replace([1, 2, 3], [1, 2, 3, 1]) is UpdateStatus.SIZE_MISMATCH
    assert grid.update_copy_replace([1, 2, 3, 1], [1, 2, 3]) is UpdateStatus.SIZE_MISMATCH

    np.testing.assert_array_equal(grid.copy_targets, copy_before)
    np.testing.assert_array_equal(grid.replace_targets, replace_before)


def test_update_copy_replace_rejects_out_of_range_types():
    grid = create(size=4, num_types=3, density=0.5, radius=1, seed=6)
    copy_before = grid.copy_targets
    replace_before = grid.replace_targets

    assert grid.update_copy_replace([1, 2, 3, 4], [1, 3, 1, 2]) is UpdateStatus.INVALID_TYPE_ID
    assert grid.update_copy_replace([1, 2, 0, 1], [1, 3, 1, 2]) is UpdateStatus.INVALID_TYPE_ID
    assert grid.update_copy_replace([1, 2, 3, 1], [1, 3, 1, 255]) is UpdateStatus.INVALID_TYPE_ID

    np.testing.assert_array_equal(grid.copy_targets, copy_before)
    np.testing.assert_array_equal(grid.replace_targets, replace_before)


def test_update_copy_replace_applies_and_drives_replacement():
    # Every type copies type 1 over type 2, so type 2 can only shrink.
    grid = create(size=16, num_types=2, density=0.9, radius=1, seed=10)
    status = grid.update_copy_replace([1, 1, 1, 7], [2, 2, 2, 7])
    assert status is UpdateStatus.OK
    np.testing.assert_array_equal(grid.copy_targets, [1, 1, 1])
    np.testing.assert_array_equal(grid.replace_targets, [2, 2, 2])

    before = grid.type_counts()
    grid.step(10)
    after = grid.type_counts()

    assert after[2] <= before[2]
    assert after[1:].sum() == before[1:].sum()


def test_no_types_degrades_to_inert_grid():
    grid = create(size=4, num_types=0, density=0.5, radius=1, seed=0)

    np.testing.assert_array_equal(grid.copy_targets, [0])
    np.testing.assert_array_equal(grid.replace_targets, [0])
    grid.step(3)
    assert grid.export_grid() == bytes(16)


def test_colors_and_render_frame():
    grid = create(size=6, num_types=3, density=0.7, radius=1, seed=14)
    colors = grid.colors
    assert colors.shape == (4, 3)
    np.testing.assert_allclose(colors[0], (0.1, 0.1, 0.1), rtol=1e-6)

    frame = render_frame(grid)
    lattice = grid.grid
    assert frame.shape == (6, 6, 3)
    for x in range(6):
        for y in range(6):
            np.testing.assert_array_equal(frame[y, x], colors[lattice[x, y]])


def test_config_from_dict_ignores_unknown_keys():
    config = GridConfig.from_dict(
        {"size": 12, "num_types": 2, "density": 0.25, "radius": 3, "fps": 60}
    )
    assert config == GridConfig(size=12, num_types=2, density=0.25, radius=3)
