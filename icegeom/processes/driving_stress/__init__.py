from .driving_stress import initialize, update, finalize, compute_driving_stress_tf
