#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
Regular grid with uniform spacing split into rectangular tiles.

Each tile stands for one worker of a domain decomposition: it owns the cells
[xs, xs+xm) x [ys, ys+ym) and sees a ghost halo of width `halo` around them.
Tiles are numbered row by row, rank = jy * px + ix.
"""


class Tile:
    def __init__(self, rank, ix, jy, xs, xm, ys, ym):
        self.rank = rank
        self.ix = ix
        self.jy = jy
        self.xs = xs
        self.xm = xm
        self.ys = ys
        self.ym = ym

    def __repr__(self):
        return "Tile(rank=%d, xs=%d, xm=%d, ys=%d, ym=%d)" % (
            self.rank, self.xs, self.xm, self.ys, self.ym)


def _split(n, p):
    # the first n % p pieces get one more cell
    sizes = [n // p + (1 if k < n % p else 0) for k in range(p)]
    starts = [sum(sizes[:k]) for k in range(p)]
    return list(zip(starts, sizes))


class Grid:
    """
    Parameters
    ----------
    nx, ny : int
        number of cells in x and y
    dx, dy : float
        grid spacing, dy defaults to dx
    px, py : int
        number of tiles in x and y
    halo : int
        ghost halo width, at least 1 since 8-neighbour stencils are used
    periodic_x, periodic_y : bool
        whether the domain wraps around in x or y
    """

    def __init__(self, nx, ny, dx, dy=None, px=1, py=1, halo=1,
                 periodic_x=False, periodic_y=False):

        if halo < 1:
            raise ValueError(f"The halo width must be at least 1, got {halo}")
        if (px < 1) | (py < 1) | (px > nx) | (py > ny):
            raise ValueError(
                f"Cannot split a {nx}x{ny} grid into {px}x{py} tiles"
            )

        self.nx = int(nx)
        self.ny = int(ny)
        self.dx = float(dx)
        self.dy = float(dx if dy is None else dy)
        self.px = int(px)
        self.py = int(py)
        self.halo = int(halo)
        self.periodic_x = bool(periodic_x)
        self.periodic_y = bool(periodic_y)

        self.tiles = []
        for jy, (ys, ym) in enumerate(_split(self.ny, self.py)):
            for ix, (xs, xm) in enumerate(_split(self.nx, self.px)):
                self.tiles.append(
                    Tile(len(self.tiles), ix, jy, xs, xm, ys, ym)
                )

    @classmethod
    def from_cfg(cls, cfg, nx, ny, dx, dy=None):
        g = cfg.core.grid
        return cls(nx, ny, dx, dy,
                   px=g.px, py=g.py, halo=g.halo,
                   periodic_x=g.periodic_x, periodic_y=g.periodic_y)

    @property
    def shape(self):
        return (self.ny, self.nx)

    def domain_edges(self, tile):
        """
        return (west, east, south, north) flags telling whether the tile touches
        a non-periodic edge of the domain
        """
        return (
            (tile.xs == 0) & (not self.periodic_x),
            (tile.xs + tile.xm == self.nx) & (not self.periodic_x),
            (tile.ys == 0) & (not self.periodic_y),
            (tile.ys + tile.ym == self.ny) & (not self.periodic_y),
        )
