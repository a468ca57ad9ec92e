#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file


class NegativeThicknessError(ValueError):
    """Raised when a negative ice thickness reaches the geometry update."""

    def __init__(self, i, j, value):
        self.i = i
        self.j = j
        self.value = value
        super().__init__(
            f"Thickness negative at point i={i}, j={j} (thk={value}). "
            "The thickness field was corrupted before the geometry update."
        )
