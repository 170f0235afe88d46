from . import ladder, parallel_tempering

__all__ = [
    "ladder",
    "parallel_tempering",
]
