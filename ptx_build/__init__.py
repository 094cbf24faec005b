"""PTx Build - RC2014 YM2149 tune to Intel HEX builder."""
from .version import __version__
from .config import BuildConfig
from .errors import BuildError
from .pipeline import BuildResult, build_ihx
from .resolver import TuneReference, resolve_tune

__all__ = [
    "__version__",
    "BuildConfig",
    "BuildError",
    "BuildResult",
    "TuneReference",
    "build_ihx",
    "resolve_tune",
]
