#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
 Quick notes about the code below:

 This module updates the ice thickness with one explicit step of

     dH/dt = M - S - div(q),      q = - D grad(h) + U_b H

 where M is the surface mass balance (state.smb), S the basal mass balance
 (state.shelfbmassflux below floating ice, state.bmelt below grounded ice)
 and q the map-plane ice flux, split into a non-sliding SIA part and a
 sliding part.

 - The SIA part is given by the stress balance solver as a velocity on the
   staggered grid (state.uvbar, component 0 on east faces, component 1 on
   north faces). It is multiplied by the thickness averaged onto the faces
   and differenced in the standard centered manner. With do_superpose, the
   thickness of DRAGGING_SHEET cells is weighted by f(v) = 1 - 2/pi atan(c |v|^2)
   so that fast-sliding ice is not moved twice.

 - The sliding part is expanded as div(U_b H) = U_b . grad(H) + div(U_b) H.
   The first term is upwinded, the second centered, which makes the scheme an
   advection equation with a source term (a centered div(U_b H) is unstable
   for advection-dominated flow). Beyond non-periodic domain edges the
   sliding velocity repeats its edge value while uvbar is 0, so a uniform
   sliding field has no dilation at the edges and no SIA flux crosses them.

 Negative thicknesses are set to zero, and ocean_kill / floating_ice_killed
 remove the ice at OCEAN_AT_TIME_0 cells / at floating cells (calving at the
 initial calving front / at the grounding line).

 All tiles read the old thickness before the new one is written. The rate of
 thickness change is kept in state.dHdt (NaN where there is no ice after the
 step) with its domain average state.dHdt_avg over the ice-covered cells and
 the rate of volume change state.dvoldt.
"""

import numpy as np
import tensorflow as tf

from icegeom.fields import TiledField
from icegeom.mask import MaskValue, is_floating
from icegeom.processes.utils import neighbor


def initialize(cfg, state):

    if not hasattr(state, "thk"):
        raise ValueError("The 'thk' module requires an initial ice thickness ('state.thk') to be defined.")

    if not hasattr(state, "mask"):
        raise ValueError("The 'thk' module requires the mask ('state.mask'), run the 'geometry' module first.")

    # fields not provided by the stress balance or the boundary models are set to zero,
    # the sliding velocities repeat their edge value beyond the domain
    for name in ["ub", "vb", "smb", "shelfbmassflux", "bmelt"]:
        if not hasattr(state, name):
            if hasattr(state, "logger"):
                state.logger.info(f"No '{name}' given, the 'thk' module sets it to zero")
            fill = None if name in ["ub", "vb"] else 0.0
            setattr(state, name, TiledField(state.grid, name, fill=fill))

    # no SIA flux through the domain boundary
    if not hasattr(state, "uvbar"):
        state.uvbar = TiledField(state.grid, "uvbar", ncomp=2, fill=0.0)

    state.dHdt = TiledField(state.grid, "dHdt")
    state.icecount = 0
    state.dHdt_avg = 0.0
    state.dvoldt = 0.0


def update(cfg, state):

    if hasattr(state, "logger") & hasattr(state, "t"):
        state.logger.info("Ice thickness equation at time : " + str(state.t.numpy()))

    p = cfg.processes.thk

    dt = float(state.dt)
    if dt <= 0:
        raise ValueError(f"The time step must be positive, got {dt}")

    w = state.grid.halo

    # the ice-covered area is counted on the old thickness
    state.icecount = state.thk.reduce_count(lambda H: H > 0)

    thk_new = []
    for tile in state.grid.tiles:
        r = tile.rank
        thk_new.append(
            mass_continuity_step_tf(
                state.thk.local(r).padded(),
                state.mask.local(r).padded(),
                state.uvbar.local(r).padded(),
                state.ub.local(r).padded(),
                state.vb.local(r).padded(),
                getattr(state, "ubar_ssa", state.ub).local(r).padded(),
                getattr(state, "vbar_ssa", state.vb).local(r).padded(),
                state.smb.local(r).interior(),
                state.shelfbmassflux.local(r).interior(),
                state.bmelt.local(r).interior(),
                w,
                tf.constant(dt, dtype=tf.float32),
                state.grid.dx,
                state.grid.dy,
                bool(p.compute_sia_velocities),
                bool(p.do_superpose),
                float(p.superpose_constant),
                bool(p.include_bmr_in_continuity),
                bool(p.ocean_kill),
                bool(p.floating_ice_killed),
            )
        )

    # compute dH/dt, then mask it out where there is no ice left
    for tile, H in zip(state.grid.tiles, thk_new):
        dHdt = (H - state.thk.local(tile.rank).interior()) / dt
        state.dHdt.local(tile.rank).assign_interior(dHdt)

    sum_dHdt = state.dHdt.reduce_sum()
    state.dvoldt = sum_dHdt * state.grid.dx * state.grid.dy
    state.dHdt_avg = sum_dHdt / state.icecount if state.icecount > 0 else 0.0

    for tile, H in zip(state.grid.tiles, thk_new):
        loc = state.dHdt.local(tile.rank)
        loc.assign_interior(tf.where(H > 0, loc.interior(), np.nan))
        state.thk.local(tile.rank).assign_interior(H)

    state.thk.exchange_halo()


def finalize(cfg, state):
    pass


@tf.function()
def mass_continuity_step_tf(thk, mask, uvbar, ub, vb, ubar_ssa, vbar_ssa,
                            smb, shelfbmassflux, bmelt, w, dt, dx, dy,
                            sia, superpose, superpose_constant,
                            include_bmr, ocean_kill, floating_killed):

    H = neighbor(thk, w)
    He = neighbor(thk, w, 1, 0)
    Hw = neighbor(thk, w, -1, 0)
    Hn = neighbor(thk, w, 0, 1)
    Hs = neighbor(thk, w, 0, -1)

    m = neighbor(mask, w)

    # thickness averaged onto the staggered grid
    if superpose:
        fv = 1.0 - (2.0 / np.pi) * tf.atan(superpose_constant * (ubar_ssa**2 + vbar_ssa**2))
        fvH = fv * thk
        dragging = tf.equal(m, int(MaskValue.DRAGGING_SHEET))
        face_e = tf.where(dragging, 0.5 * (neighbor(fvH, w) + neighbor(fvH, w, 1, 0)), 0.5 * (H + He))
        face_w = tf.where(dragging, 0.5 * (neighbor(fvH, w, -1, 0) + neighbor(fvH, w)), 0.5 * (Hw + H))
        face_n = tf.where(dragging, 0.5 * (neighbor(fvH, w) + neighbor(fvH, w, 0, 1)), 0.5 * (H + Hn))
        face_s = tf.where(dragging, 0.5 * (neighbor(fvH, w, 0, -1) + neighbor(fvH, w)), 0.5 * (Hs + H))
    else:
        face_e = 0.5 * (H + He)
        face_w = 0.5 * (Hw + H)
        face_n = 0.5 * (H + Hn)
        face_s = 0.5 * (Hs + H)

    # staggered-grid divergence of the SIA (non-sliding) flux, Q = Ubar H = - D grad h
    if sia:
        divQ = (
            neighbor(uvbar[0], w) * face_e - neighbor(uvbar[0], w, -1, 0) * face_w
        ) / dx + (
            neighbor(uvbar[1], w) * face_n - neighbor(uvbar[1], w, 0, -1) * face_s
        ) / dy
    else:
        divQ = tf.zeros_like(H)

    # sliding part: U_b . grad(H) upwinded, plus div(U_b) H centered
    u = neighbor(ub, w)
    v = neighbor(vb, w)
    divQ += u * tf.where(u < 0, He - H, H - Hw) / dx + v * tf.where(v < 0, Hn - H, H - Hs) / dy
    divQ += H * (
        (neighbor(ub, w, 1, 0) - neighbor(ub, w, -1, 0)) / (2.0 * dx)
        + (neighbor(vb, w, 0, 1) - neighbor(vb, w, 0, -1)) / (2.0 * dy)
    )

    Hnew = H + dt * (smb - divQ)

    floating = is_floating(m)

    if include_bmr:
        Hnew -= dt * tf.where(floating, shelfbmassflux, bmelt)

    # free boundary rule: negative thickness becomes zero
    Hnew = tf.maximum(Hnew, 0.0)

    # calving at the initial calving front
    if ocean_kill:
        Hnew = tf.where(tf.equal(m, int(MaskValue.OCEAN_AT_TIME_0)), 0.0, Hnew)

    # calving at the grounding line
    if floating_killed:
        Hnew = tf.where(floating, 0.0, Hnew)

    return Hnew
