#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
 Quick notes about the code below:

 This module keeps the surface elevation (state.usurf) and the flow-type mask
 (state.mask) consistent with the ice thickness, the bed and the sea level.
 It must be called whenever the thickness or the bed changed: we want
 h = b + H at grounded cells, h = sealevel + (1 - rho_ice/rho_ocean) H at
 floating cells, and a mask that tells which of the two applies.

 The flotation criterion is applied with a hysteresis (grounding_margin): a
 floating cell only grounds if b + H exceeds the floating surface by more than
 the margin, a grounded cell only floats if it is below by more than the margin.
 Cells marked OCEAN_AT_TIME_0 are never touched (ice must never appear there)
 and always get the floating surface.

 A floating cell that grounds while SSA is used without plastic till can be
 either SHEET or DRAGGING_SHEET. It is first marked UNKNOWN and then decided
 by a vote of its 8 neighbours (box stencil): it becomes SHEET if at most
 vote_max_dragging_neighbors neighbours are DRAGGING_SHEET and all others SHEET,
 otherwise DRAGGING_SHEET. Neighbours that are UNKNOWN themselves count as
 FLOATING. The vote never makes a cell float. The vote reads
 the mask after the flotation pass and after a halo exchange, so every tile
 sees the same neighbours. No UNKNOWN cell survives this module.
"""

import tensorflow as tf

from icegeom.errors import NegativeThicknessError
from icegeom.fields import TiledField
from icegeom.mask import MaskValue, reduce_mask, is_floating
from icegeom.processes.utils import neighbor, box_sum


def initialize(cfg, state):

    if not hasattr(state, "topg"):
        raise ValueError("The 'geometry' module requires an initial topography ('state.topg') to be defined.")
    if not hasattr(state, "thk"):
        raise ValueError("The 'geometry' module requires an initial ice thickness ('state.thk') to be defined.")

    p = cfg.processes.geometry

    if p.grounding_margin < 0:
        raise ValueError(f"grounding_margin must be non-negative, got {p.grounding_margin}")
    if not (0 <= p.vote_max_dragging_neighbors <= 8):
        raise ValueError(
            f"vote_max_dragging_neighbors must be between 0 and 8, got {p.vote_max_dragging_neighbors}"
        )

    # without a mask, start from grounded SIA ice and let the flotation criterion decide
    if not hasattr(state, "mask"):
        state.mask = TiledField(state.grid, "mask", dtype=tf.int32, value=int(MaskValue.SHEET))

    if not hasattr(state, "usurf"):
        state.usurf = TiledField(state.grid, "usurf")

    update(cfg, state)


def update(cfg, state):

    if hasattr(state, "logger") & hasattr(state, "t"):
        state.logger.info("Update SURFACE ELEVATION AND MASK at time : " + str(state.t.numpy()))

    p = cfg.processes.geometry

    _check_thickness(state)

    if hasattr(state, "sealevel"):
        sealevel = float(state.sealevel)
    else:
        sealevel = float(p.default_sealevel)

    # compute all tiles before writing anything
    results = []
    for tile in state.grid.tiles:
        results.append(
            update_surface_and_mask_tf(
                state.thk.local(tile.rank).interior(),
                state.topg.local(tile.rank).interior(),
                state.mask.local(tile.rank).interior(),
                tf.constant(sealevel, dtype=tf.float32),
                p.ice_density / p.sea_water_density,
                float(p.grounding_margin),
                bool(p.is_dry_simulation),
                bool(p.use_ssa_velocity),
                bool(p.do_plastic_till),
            )
        )

    for tile, (usurf, mask) in zip(state.grid.tiles, results):
        state.usurf.local(tile.rank).assign_interior(usurf)
        state.mask.local(tile.rank).assign_interior(mask)

    state.mask.exchange_halo()

    nunknown = state.mask.reduce_count(lambda m: m == int(MaskValue.UNKNOWN))
    if nunknown > 0:
        if hasattr(state, "logger"):
            state.logger.info(
                f"{nunknown} newly grounded cells classified by neighbour vote"
            )
        threshold = vote_threshold(p.vote_max_dragging_neighbors)
        voted = [
            resolve_unknown_mask_tf(
                state.mask.local(tile.rank).padded(), state.grid.halo, threshold
            )
            for tile in state.grid.tiles
        ]
        for tile, mask in zip(state.grid.tiles, voted):
            state.mask.local(tile.rank).assign_interior(mask)
        state.mask.exchange_halo()

    state.usurf.exchange_halo()


def finalize(cfg, state):
    # leave a consistent geometry behind the last thickness update
    update(cfg, state)


def _check_thickness(state):
    for tile in state.grid.tiles:
        H = state.thk.local(tile.rank).interior()
        bad = tf.where(H < 0)
        if bad.shape[0] > 0:
            j, i = [int(k) for k in bad[0].numpy()]
            raise NegativeThicknessError(tile.xs + i, tile.ys + j, float(H[j, i]))


def vote_threshold(max_dragging_neighbors):
    """largest neighbour code sum for which a cell is still voted SHEET"""
    k = int(max_dragging_neighbors)
    return (8 - k) * int(MaskValue.SHEET) + k * int(MaskValue.DRAGGING_SHEET) + 0.1


@tf.function()
def update_surface_and_mask_tf(thk, topg, mask, sealevel, ratio, margin,
                               dry, use_ssa, plastic_till):

    hgrounded = topg + thk
    hfloating = sealevel + (1.0 - ratio) * thk

    if dry:
        return hgrounded, mask

    SHEET = int(MaskValue.SHEET)
    DRAGGING = int(MaskValue.DRAGGING_SHEET)
    FLOATING = int(MaskValue.FLOATING)

    if use_ssa:
        # with plastic till all grounded ice is dragging, otherwise we cannot tell yet
        newly_grounded = DRAGGING if plastic_till else int(MaskValue.UNKNOWN)
    else:
        newly_grounded = SHEET

    if use_ssa & plastic_till:
        still_grounded = tf.fill(tf.shape(mask), DRAGGING)
    else:
        still_grounded = mask

    ocean0 = tf.equal(mask, int(MaskValue.OCEAN_AT_TIME_0))
    floating = is_floating(mask) & tf.logical_not(ocean0)

    grounds = hgrounded > hfloating + margin
    stays_grounded = hgrounded > hfloating - margin

    grounded = tf.where(floating, grounds, stays_grounded)
    usurf = tf.where(grounded & tf.logical_not(ocean0), hgrounded, hfloating)

    new_mask = tf.where(
        floating,
        tf.where(grounds, newly_grounded, FLOATING),
        tf.where(stays_grounded, still_grounded, FLOATING),
    )
    new_mask = tf.where(ocean0, mask, new_mask)

    return usurf, new_mask


@tf.function()
def resolve_unknown_mask_tf(mask, w, threshold):

    # neighbours still undecided count as floating
    codes = tf.where(
        tf.equal(mask, int(MaskValue.UNKNOWN)), int(MaskValue.FLOATING), reduce_mask(mask)
    )
    votes = tf.cast(box_sum(codes, w), tf.float32)
    voted = tf.where(
        votes <= threshold, int(MaskValue.SHEET), int(MaskValue.DRAGGING_SHEET)
    )
    m = neighbor(mask, w)

    return tf.where(tf.equal(m, int(MaskValue.UNKNOWN)), voted, m)
