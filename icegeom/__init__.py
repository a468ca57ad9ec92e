#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

from . import processes

from .common import (
    State,
    ICEGEOM_DESCRIPTION,
    load_modules,
    add_logger,
    initialize_modules,
    update_modules,
    finalize_modules,
    run,
    print_comp,
    load_yaml_recursive,
)
from .grid import Grid, Tile
from .fields import StructuredField, LocalField, TiledField
from .mask import MaskValue
from .errors import NegativeThicknessError
