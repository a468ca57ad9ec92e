import logging

import numpy as np
import pytest

import icegeom
from icegeom.mask import MaskValue

SHEET = int(MaskValue.SHEET)
DRAGGING = int(MaskValue.DRAGGING_SHEET)
FLOATING = int(MaskValue.FLOATING)
OCEAN0 = int(MaskValue.OCEAN_AT_TIME_0)


def step(cfg, state):
    icegeom.processes.thk.initialize(cfg, state)
    icegeom.processes.thk.update(cfg, state)
    return state.thk.gather()


def sheet(shape):
    return np.full(shape, SHEET)


def test_mass_balance_only(cfg, make_state):

    rng = np.random.default_rng(0)
    thk = (50.0 * rng.random((5, 6))).astype(np.float32)
    thk[2, :] = 0.0
    smb = np.full((5, 6), -5.0, dtype=np.float32)
    smb[:, :2] = 3.0

    state = make_state(thk, np.zeros((5, 6)), mask=sheet((5, 6)), dt=2.0, smb=smb, px=2, py=2)
    new = step(cfg, state)

    np.testing.assert_allclose(new, np.maximum(0.0, thk + 2.0 * smb), atol=1e-4)
    assert (new >= 0).all()


def test_grounded_cell_gains_surface_mass_balance(cfg, make_state):

    thk = np.full((3, 3), 100.0, dtype=np.float32)
    topg = np.zeros((3, 3), dtype=np.float32)
    smb = np.full((3, 3), 0.01, dtype=np.float32)
    state = make_state(thk, topg, mask=sheet((3, 3)), dt=1.0, smb=smb)

    icegeom.processes.geometry.initialize(cfg, state)
    new = step(cfg, state)
    icegeom.processes.geometry.update(cfg, state)

    np.testing.assert_allclose(new, 100.01, rtol=1e-6)
    np.testing.assert_allclose(state.usurf.gather(), 100.01, rtol=1e-6)
    assert (state.mask.gather() == SHEET).all()


def staggered_velocity(seed, ny, nx):
    """face velocities with no flow across the domain boundary"""
    rng = np.random.default_rng(seed)
    uvbar = rng.uniform(-1.0, 1.0, size=(2, ny, nx)).astype(np.float32)
    uvbar[0][:, -1] = 0.0
    uvbar[1][-1, :] = 0.0
    return uvbar


def test_sia_flux_conserves_mass(cfg, make_state):

    rng = np.random.default_rng(1)
    thk = (1000.0 + 100.0 * rng.random((6, 7))).astype(np.float32)
    uvbar = staggered_velocity(2, 6, 7)

    state = make_state(thk, np.zeros((6, 7)), mask=sheet((6, 7)), uvbar=uvbar, px=2, py=3)
    new = step(cfg, state)

    assert not np.allclose(new, thk)
    np.testing.assert_allclose(new.sum(), thk.sum(), rtol=1e-5)
    np.testing.assert_allclose(state.dvoldt, 0.0, atol=1e-2 * state.grid.dx * state.grid.dy)


def test_sia_flux_can_be_disabled(cfg, make_state):

    cfg.processes.thk.compute_sia_velocities = False

    thk = np.tile(np.linspace(100.0, 500.0, 7), (6, 1)).astype(np.float32)
    uvbar = staggered_velocity(2, 6, 7)

    state = make_state(thk, np.zeros((6, 7)), mask=sheet((6, 7)), uvbar=uvbar)
    new = step(cfg, state)

    np.testing.assert_allclose(new, thk)


@pytest.mark.parametrize("speed", [10.0, -10.0])
def test_sliding_is_upwinded(cfg, make_state, speed):

    thk = np.zeros((3, 6), dtype=np.float32)
    if speed > 0:
        thk[:, :3] = 100.0
        front, behind, ahead = 3, 2, 4
    else:
        thk[:, 3:] = 100.0
        front, behind, ahead = 2, 3, 1
    ub = np.full((3, 6), speed, dtype=np.float32)

    state = make_state(thk, np.zeros((3, 6)), mask=sheet((3, 6)), ub=ub)
    new = step(cfg, state)

    np.testing.assert_allclose(new[:, front], 1.0, rtol=1e-5)
    np.testing.assert_allclose(new[:, behind], 100.0, rtol=1e-6)
    np.testing.assert_allclose(new[:, ahead], 0.0)


def test_basal_mass_balance(cfg, make_state):

    thk = np.full((3, 4), 100.0, dtype=np.float32)
    mask = sheet((3, 4))
    mask[:, 2:] = FLOATING
    bmelt = np.full((3, 4), 2.0, dtype=np.float32)
    shelfbmassflux = np.full((3, 4), 5.0, dtype=np.float32)

    state = make_state(thk, np.zeros((3, 4)), mask=mask,
                       bmelt=bmelt, shelfbmassflux=shelfbmassflux)
    new = step(cfg, state)

    np.testing.assert_allclose(new[:, :2], 98.0)
    np.testing.assert_allclose(new[:, 2:], 95.0)

    cfg.processes.thk.include_bmr_in_continuity = False
    state = make_state(thk, np.zeros((3, 4)), mask=mask,
                       bmelt=bmelt, shelfbmassflux=shelfbmassflux)
    np.testing.assert_allclose(step(cfg, state), 100.0)


def test_ocean_kill(cfg, make_state):

    thk = np.full((3, 4), 50.0, dtype=np.float32)
    mask = sheet((3, 4))
    mask[:, -1] = OCEAN0

    new = step(cfg, make_state(thk, np.zeros((3, 4)), mask=mask))
    np.testing.assert_allclose(new, 50.0)

    cfg.processes.thk.ocean_kill = True
    new = step(cfg, make_state(thk, np.zeros((3, 4)), mask=mask))
    assert (new[:, -1] == 0).all()
    np.testing.assert_allclose(new[:, :-1], 50.0)


def test_floating_ice_killed(cfg, make_state):

    cfg.processes.thk.floating_ice_killed = True

    thk = np.full((3, 4), 50.0, dtype=np.float32)
    mask = sheet((3, 4))
    mask[:, 2] = FLOATING
    mask[:, 3] = OCEAN0

    new = step(cfg, make_state(thk, np.zeros((3, 4)), mask=mask))

    assert (new[:, 2:] == 0).all()
    np.testing.assert_allclose(new[:, :2], 50.0)


def test_diagnostics(cfg, make_state):

    thk = np.full((3, 4), 10.0, dtype=np.float32)
    thk[:, 0] = 0.0
    smb = np.ones((3, 4), dtype=np.float32)
    smb[:, 0] = 0.0
    smb[:, 1] = -20.0

    state = make_state(thk, np.zeros((3, 4)), mask=sheet((3, 4)), smb=smb)
    step(cfg, state)

    assert state.icecount == 9
    np.testing.assert_allclose(state.dvoldt, -24.0 * 1000.0**2, rtol=1e-6)
    np.testing.assert_allclose(state.dHdt_avg, -24.0 / 9.0, rtol=1e-6)

    dHdt = state.dHdt.gather()
    assert np.isnan(dHdt[:, :2]).all()
    np.testing.assert_allclose(dHdt[:, 2:], 1.0)


def test_no_ice_gives_zero_average(cfg, make_state):

    state = make_state(np.zeros((3, 3)), np.zeros((3, 3)), mask=sheet((3, 3)))
    step(cfg, state)

    assert state.icecount == 0
    assert state.dHdt_avg == 0.0


def test_superposition_reduces_sia_flux_of_fast_dragging_ice(cfg, make_state):

    thk = np.tile(np.linspace(100.0, 500.0, 7), (6, 1)).astype(np.float32)
    uvbar = staggered_velocity(4, 6, 7)
    fast = np.full((6, 7), 1.0e4, dtype=np.float32)

    def change(mask, superpose):
        cfg.processes.thk.do_superpose = superpose
        state = make_state(thk, np.zeros((6, 7)), mask=mask, uvbar=uvbar,
                           ubar_ssa=fast, vbar_ssa=np.zeros((6, 7)))
        return np.abs(step(cfg, state) - thk).max()

    dragging = np.full((6, 7), DRAGGING)

    assert change(dragging, True) < 1e-3 * change(dragging, False)
    np.testing.assert_allclose(change(sheet((6, 7)), True), change(sheet((6, 7)), False))


def test_same_result_on_any_tiling(cfg, make_state):

    rng = np.random.default_rng(9)
    shape = (8, 9)
    thk = (300.0 * rng.random(shape)).astype(np.float32)
    thk[:, :2] = 0.0
    fields = dict(
        uvbar=staggered_velocity(10, *shape),
        ub=rng.uniform(-50.0, 50.0, shape).astype(np.float32),
        vb=rng.uniform(-50.0, 50.0, shape).astype(np.float32),
        smb=rng.uniform(-2.0, 2.0, shape).astype(np.float32),
    )
    mask = rng.choice([SHEET, DRAGGING, FLOATING], size=shape)

    single = step(cfg, make_state(thk, np.zeros(shape), mask=mask, **fields))
    tiled = step(cfg, make_state(thk, np.zeros(shape), mask=mask, px=3, py=2, **fields))

    np.testing.assert_allclose(tiled, single, rtol=1e-5, atol=1e-4)


def test_non_positive_time_step(cfg, make_state):

    state = make_state(np.ones((3, 3)), np.zeros((3, 3)), mask=sheet((3, 3)), dt=0.0)
    icegeom.processes.thk.initialize(cfg, state)

    with pytest.raises(ValueError):
        icegeom.processes.thk.update(cfg, state)


def test_uniform_sliding_keeps_uniform_ice(cfg, make_state):

    thk = np.full((4, 6), 100.0, dtype=np.float32)
    ub = np.full((4, 6), 10.0, dtype=np.float32)
    vb = np.full((4, 6), -5.0, dtype=np.float32)

    state = make_state(thk, np.zeros((4, 6)), mask=sheet((4, 6)), ub=ub, vb=vb, px=2, py=2)
    new = step(cfg, state)

    np.testing.assert_allclose(new, 100.0)


def test_logging_without_model_time(cfg, make_state):

    state = make_state(np.full((3, 3), 10.0), np.zeros((3, 3)), mask=sheet((3, 3)))
    del state.t
    state.logger = logging.getLogger("icegeom")

    new = step(cfg, state)

    np.testing.assert_allclose(new, 10.0)
