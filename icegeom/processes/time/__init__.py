from .time import initialize, update, finalize
