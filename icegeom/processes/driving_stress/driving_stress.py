#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
 Quick notes about the code below:

 This module computes the driving stress at the base of the ice

     taud = - rho g H grad(h)

 which is an input of the stress balance solvers (not of the thickness
 equation). Cells with no ice get exactly zero.

 With surface_gradient_transform, the surface gradient at grounded cells is
 obtained by differentiating eta = H^((2n+2)/n) (H^(8/3) for n = 3) with the
 chain rule and adding the bed gradient. eta is more regular than h at the
 ice margin, which gives a better gradient there. Below min_thk_eta_transform
 the thickness is floored in the chain-rule factor, which lowers the stress
 of very thin ice. Floating cells always use the plain gradient of h,
 centered or, with surface_gradient_inward, one-sided on domain edges.

 The result is written to the owned cells of state.taud (component 0 is x,
 component 1 is y); its ghosts are not updated.
"""

import tensorflow as tf

from icegeom.fields import TiledField
from icegeom.mask import is_grounded
from icegeom.processes.utils import neighbor, diff_x, diff_y, diff_x_p, diff_y_p


def initialize(cfg, state):

    if not hasattr(state, "thk"):
        raise ValueError("The 'driving_stress' module requires the ice thickness ('state.thk').")

    state.taud = TiledField(state.grid, "taud", ncomp=2)


def update(cfg, state):

    if hasattr(state, "logger") & hasattr(state, "t"):
        state.logger.info("Update DRIVING STRESS at time : " + str(state.t.numpy()))

    p = cfg.processes.driving_stress
    w = state.grid.halo

    for tile in state.grid.tiles:
        west, east, south, north = state.grid.domain_edges(tile)
        taudx, taudy = compute_driving_stress_tf(
            state.thk.local(tile.rank).padded(),
            state.topg.local(tile.rank).padded(),
            state.usurf.local(tile.rank).padded(),
            state.mask.local(tile.rank).padded(),
            w,
            state.grid.dx,
            state.grid.dy,
            p.ice_density * p.gravity_cst,
            float(p.exp_glen),
            float(p.min_thk_eta_transform),
            bool(p.surface_gradient_transform),
            bool(p.surface_gradient_inward),
            (west, east, south, north),
        )
        state.taud.local(tile.rank).assign_interior(tf.stack([taudx, taudy]))


def finalize(cfg, state):
    pass


@tf.function()
def compute_driving_stress_tf(thk, topg, usurf, mask, w, dx, dy, rhog, n,
                              min_thk, transform, inward, edges):

    H = neighbor(thk, w)
    pressure = rhog * H

    if inward:
        west, east, south, north = edges
        sx = diff_x_p(usurf, w, dx, west, east)
        sy = diff_y_p(usurf, w, dy, south, north)
    else:
        sx = diff_x(usurf, w, dx)
        sy = diff_y(usurf, w, dy)

    if transform:
        etapow = (2.0 * n + 2.0) / n  # = 8/3 if n = 3
        invpow = 1.0 / etapow  # = 3/8
        dinvpow = (-n - 2.0) / (2.0 * n + 2.0)  # = -5/8

        # d(eta^(1/etapow))/dx = invpow * eta^dinvpow * deta/dx
        factor = invpow * tf.pow(tf.pow(tf.maximum(H, min_thk), etapow), dinvpow)
        eta = tf.pow(thk, etapow)

        ex = tf.where(H > 0, factor * diff_x(eta, w, dx), 0.0) + diff_x(topg, w, dx)
        ey = tf.where(H > 0, factor * diff_y(eta, w, dy), 0.0) + diff_y(topg, w, dy)

        grounded = is_grounded(neighbor(mask, w))
        sx = tf.where(grounded, ex, sx)
        sy = tf.where(grounded, ey, sy)

    taudx = tf.where(pressure > 0, -pressure * sx, 0.0)
    taudy = tf.where(pressure > 0, -pressure * sy, 0.0)

    return taudx, taudy
