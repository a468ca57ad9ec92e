import os

import numpy as np
import pytest
import tensorflow as tf

import icegeom


@pytest.fixture
def cfg():
    return icegeom.load_yaml_recursive(os.path.join(icegeom.__path__[0], "conf"))


@pytest.fixture
def make_state():
    """
    build a state on a grid with the given thickness and bed; extra keyword
    arguments become fields of the state (velocities, mass balance, ...)
    """

    def _make_state(thk, topg, mask=None, px=1, py=1, halo=1, periodic=False,
                    dx=1000.0, dt=1.0, **fields):
        state = icegeom.State()
        ny, nx = np.shape(thk)
        state.grid = icegeom.Grid(nx, ny, dx, px=px, py=py, halo=halo,
                                  periodic_x=periodic, periodic_y=periodic)
        state.thk = icegeom.TiledField.from_array(state.grid, "thk", thk)
        state.topg = icegeom.TiledField.from_array(state.grid, "topg", topg)
        if mask is not None:
            state.mask = icegeom.TiledField.from_array(state.grid, "mask", mask, dtype=tf.int32)
        for name, value in fields.items():
            # sliding velocities repeat their edge value, fluxes and mass balance are 0 outside
            fill = None if name in ["ub", "vb", "ubar_ssa", "vbar_ssa"] else 0.0
            setattr(state, name, icegeom.TiledField.from_array(state.grid, name, value, fill=fill))
        state.t = tf.Variable(0.0)
        state.dt = tf.Variable(float(dt))
        return state

    return _make_state
