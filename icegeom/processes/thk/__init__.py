from .thk import initialize, update, finalize, mass_continuity_step_tf
