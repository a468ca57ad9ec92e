from .geometry import initialize, update, finalize
from .geometry import update_surface_and_mask_tf, resolve_unknown_mask_tf, vote_threshold
