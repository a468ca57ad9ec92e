#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
 Quick notes about the code below:

 Every 2D field of the model (thickness, bed, mask, velocities, ...) is a
 TiledField living on a Grid. The field does not store one global array but
 one padded tf.Variable per tile, i.e. the cells owned by the tile plus a
 ghost halo of width grid.halo. Stencil computations are done tile by tile
 on the padded arrays and only the owned cells are written back.

 Ghost values are read-only copies of the neighbouring tiles. They are only
 refreshed by exchange_halo(), which must be called after the owned cells of
 a field were modified and before any stencil reads the field again. At
 non-periodic domain edges the ghosts repeat the edge value, unless the field
 was created with a constant `fill`.

 Indices (i, j) passed to at() and set() are global, i along x and j along y,
 while arrays are stored as [y, x] (or [component, y, x]).
"""

from abc import ABC, abstractmethod

import numpy as np
import tensorflow as tf


class StructuredField(ABC):
    """Collective interface of a field distributed over the tiles of a grid."""

    @abstractmethod
    def local(self, rank):
        """return the LocalField view owned by worker `rank`"""

    @abstractmethod
    def exchange_halo(self):
        """refresh ghost values from the neighbouring tiles"""

    @abstractmethod
    def reduce_sum(self):
        """sum over all owned cells of the domain"""

    @abstractmethod
    def reduce_count(self, condition=None):
        """number of owned cells of the domain satisfying `condition`"""

    @abstractmethod
    def reduce_max(self):
        """maximum over all owned cells of the domain"""


class LocalField:
    """What a single worker sees of a TiledField: its tile and the halo."""

    def __init__(self, parent, tile, var):
        self.parent = parent
        self.tile = tile
        self.var = var

    def local_extent(self):
        t = self.tile
        return t.xs, t.xm, t.ys, t.ym

    def halo_width(self):
        return self.parent.grid.halo

    def _index(self, i, j):
        t, w = self.tile, self.halo_width()
        if not ((t.xs - w <= i < t.xs + t.xm + w) and (t.ys - w <= j < t.ys + t.ym + w)):
            raise IndexError(
                f"Point i={i}, j={j} of '{self.parent.name}' is outside of "
                f"tile {t.rank} and its halo"
            )
        return j - t.ys + w, i - t.xs + w

    def at(self, i, j, component=None):
        r, c = self._index(i, j)
        if self.parent.ncomp == 1:
            return self.var[r, c].numpy()
        if component is None:
            return self.var[:, r, c].numpy()
        return self.var[component, r, c].numpy()

    def set(self, i, j, value, component=None):
        r, c = self._index(i, j)
        if self.parent.ncomp == 1:
            self.var[r, c].assign(value)
        elif component is None:
            self.var[:, r, c].assign(value)
        else:
            self.var[component, r, c].assign(value)

    def padded(self):
        return self.var.read_value()

    def interior(self):
        t, w = self.tile, self.halo_width()
        return self.var[..., w : w + t.ym, w : w + t.xm]

    def assign_interior(self, values):
        t, w = self.tile, self.halo_width()
        self.var[..., w : w + t.ym, w : w + t.xm].assign(
            tf.cast(values, self.var.dtype)
        )


class TiledField(StructuredField):
    """
    Parameters
    ----------
    grid : Grid
    name : str
    ncomp : int
        number of components per grid point (2 for vector or staggered fields)
    dtype : tf.DType
    fill : float, optional
        value of the ghosts beyond non-periodic domain edges; the edge value is
        repeated when None
    value : float
        initial value of all cells
    """

    def __init__(self, grid, name, ncomp=1, dtype=tf.float32, fill=None, value=0):
        self.grid = grid
        self.name = name
        self.ncomp = ncomp
        self.dtype = dtype
        self.fill = fill

        w = grid.halo
        self._locals = []
        for tile in grid.tiles:
            shape = (tile.ym + 2 * w, tile.xm + 2 * w)
            if ncomp > 1:
                shape = (ncomp,) + shape
            var = tf.Variable(tf.fill(shape, tf.cast(value, dtype)), name=name)
            self._locals.append(LocalField(self, tile, var))

    @classmethod
    def from_array(cls, grid, name, array, dtype=tf.float32, fill=None):
        """build a field from a global array of shape (ny, nx) or (ncomp, ny, nx)"""
        array = np.asarray(array)
        if array.shape[-2:] != grid.shape:
            raise ValueError(
                f"Array for '{name}' has shape {array.shape}, expected (..., {grid.ny}, {grid.nx})"
            )
        ncomp = 1 if array.ndim == 2 else array.shape[0]
        field = cls(grid, name, ncomp=ncomp, dtype=dtype, fill=fill)
        field.assign_array(array)
        return field

    @classmethod
    def like(cls, other, name, dtype=None, fill=None, value=0):
        return cls(other.grid, name, ncomp=other.ncomp,
                   dtype=other.dtype if dtype is None else dtype,
                   fill=fill, value=value)

    def local(self, rank):
        return self._locals[rank]

    def assign_array(self, array):
        """scatter a global array to the tiles, then update the ghosts"""
        array = tf.convert_to_tensor(array)
        for loc in self._locals:
            t = loc.tile
            loc.assign_interior(array[..., t.ys : t.ys + t.ym, t.xs : t.xs + t.xm])
        self.exchange_halo()

    def gather_tensor(self):
        """assemble the owned cells of all tiles into a global tensor"""
        rows = []
        for jy in range(self.grid.py):
            row = self._locals[jy * self.grid.px : (jy + 1) * self.grid.px]
            rows.append(tf.concat([loc.interior() for loc in row], axis=-1))
        return tf.concat(rows, axis=-2)

    def gather(self):
        return self.gather_tensor().numpy()

    def _pad_axis(self, a, axis, periodic):
        w = self.grid.halo
        if periodic:
            if axis == -1:
                return tf.concat([a[..., -w:], a, a[..., :w]], axis)
            return tf.concat([a[..., -w:, :], a, a[..., :w, :]], axis)
        if self.fill is None:
            if axis == -1:
                first, last = a[..., :1], a[..., -1:]
            else:
                first, last = a[..., :1, :], a[..., -1:, :]
            return tf.concat(
                [tf.repeat(first, w, axis=axis), a, tf.repeat(last, w, axis=axis)], axis
            )
        paddings = [[0, 0]] * len(a.shape)
        paddings[axis] = [w, w]
        return tf.pad(a, paddings, constant_values=tf.cast(self.fill, a.dtype))

    def exchange_halo(self):
        w = self.grid.halo
        full = self.gather_tensor()
        full = self._pad_axis(full, -1, self.grid.periodic_x)
        full = self._pad_axis(full, -2, self.grid.periodic_y)
        for loc in self._locals:
            t = loc.tile
            loc.var.assign(full[..., t.ys : t.ys + t.ym + 2 * w, t.xs : t.xs + t.xm + 2 * w])

    def reduce_sum(self):
        return float(sum(tf.reduce_sum(loc.interior()).numpy() for loc in self._locals))

    def reduce_count(self, condition=None):
        if condition is None:
            condition = lambda a: a > 0
        return int(
            sum(
                tf.reduce_sum(tf.cast(condition(loc.interior()), tf.int64)).numpy()
                for loc in self._locals
            )
        )

    def reduce_max(self):
        return float(max(tf.reduce_max(loc.interior()).numpy() for loc in self._locals))
