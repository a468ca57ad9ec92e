#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

import tensorflow as tf

from icegeom.mask import MaskValue, is_floating
from icegeom.processes.utils import getmag


def initialize(cfg, state):

    # Initialize the time with starting time
    state.t = tf.Variable(float(cfg.processes.time.start))

    state.dt = tf.Variable(float(cfg.processes.time.step_max))

    state.dt_target = tf.Variable(float(cfg.processes.time.step_max))


def update(cfg, state):
    if hasattr(state, "logger"):
        state.logger.info(
            "Update DT from the CFL condition at time : " + str(state.t.numpy())
        )

    p = cfg.processes.time
    dx, dy = state.grid.dx, state.grid.dy

    dt_target = float(p.step_max)

    # advection by sliding, explicit upwinding is stable for dt < dx / |U_b|
    velomax = _max_sliding_speed(cfg, state)
    if (velomax > 0) & (p.cfl > 0):
        dt_target = min(p.cfl * min(dx, dy) / velomax, dt_target)

    # diffusion by the SIA, explicit stepping is stable for dt < 2 / (D (1/dx^2 + 1/dy^2))
    if hasattr(state, "diffusivity") & (p.cfl_diffusive > 0):
        Dmax = state.diffusivity.reduce_max()
        if Dmax > 0:
            dt_target = min(
                p.cfl_diffusive * 2.0 / (Dmax * (1.0 / dx**2 + 1.0 / dy**2)), dt_target
            )

    state.dt_target.assign(dt_target)

    # the last step ends exactly at the end time
    state.dt.assign(min(dt_target, float(p.end) - float(state.t)))

    state.t.assign(state.t + state.dt)


def finalize(cfg, state):
    pass


def _max_sliding_speed(cfg, state):
    """maximum sliding speed, ignoring cells where the ice is removed anyway"""

    if not (hasattr(state, "ub") & hasattr(state, "vb")):
        return 0.0

    ocean_kill = False
    floating_killed = False
    if "thk" in cfg.processes:
        ocean_kill = cfg.processes.thk.ocean_kill
        floating_killed = cfg.processes.thk.floating_ice_killed

    velomax = 0.0
    for tile in state.grid.tiles:
        speed = getmag(
            state.ub.local(tile.rank).interior(), state.vb.local(tile.rank).interior()
        )
        if hasattr(state, "mask"):
            m = state.mask.local(tile.rank).interior()
            if ocean_kill:
                speed = tf.where(tf.equal(m, int(MaskValue.OCEAN_AT_TIME_0)), 0.0, speed)
            if floating_killed:
                speed = tf.where(is_floating(m), 0.0, speed)
        velomax = max(velomax, float(tf.reduce_max(speed)))

    return velomax
