#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
Finite-difference helpers working on padded tile arrays.

All functions take an array `a` holding the cells of a tile plus a halo of
width `w` on each side and return arrays over the owned cells only.
"""

import tensorflow as tf


def neighbor(a, w, di=0, dj=0):
    """
    return the padded field a shifted by di cells along x and dj cells along y,
    cropped to the owned cells, e.g. neighbor(a, w, 1, 0) is the east neighbour
    """
    ny, nx = a.shape[-2], a.shape[-1]
    return a[..., w + dj : ny - w + dj, w + di : nx - w + di]


def diff_x(a, w, dx):
    return (neighbor(a, w, 1, 0) - neighbor(a, w, -1, 0)) / (2 * dx)


def diff_y(a, w, dy):
    return (neighbor(a, w, 0, 1) - neighbor(a, w, 0, -1)) / (2 * dy)


def diff_x_p(a, w, dx, west_edge, east_edge):
    """
    centered x-derivative, one-sided towards the inside on the first or last
    column when it lies on a non-periodic domain edge
    """
    c = neighbor(a, w)
    dfdx = diff_x(a, w, dx)
    col = tf.range(c.shape[-1])
    if west_edge:
        dfdx = tf.where(col == 0, (neighbor(a, w, 1, 0) - c) / dx, dfdx)
    if east_edge:
        dfdx = tf.where(col == c.shape[-1] - 1, (c - neighbor(a, w, -1, 0)) / dx, dfdx)
    return dfdx


def diff_y_p(a, w, dy, south_edge, north_edge):
    c = neighbor(a, w)
    dfdy = diff_y(a, w, dy)
    row = tf.range(c.shape[-2])[:, None]
    if south_edge:
        dfdy = tf.where(row == 0, (neighbor(a, w, 0, 1) - c) / dy, dfdy)
    if north_edge:
        dfdy = tf.where(row == c.shape[-2] - 1, (c - neighbor(a, w, 0, -1)) / dy, dfdy)
    return dfdy


def box_sum(a, w):
    """sum over the eight neighbours (box stencil) of each owned cell"""
    return tf.add_n(
        [
            neighbor(a, w, di, dj)
            for dj in (-1, 0, 1)
            for di in (-1, 0, 1)
            if (di, dj) != (0, 0)
        ]
    )


@tf.function()
def getmag(u, v):
    """
    return the norm of a 2D vector, e.g. to compute velbase_mag
    """
    return tf.sqrt(u**2 + v**2)
