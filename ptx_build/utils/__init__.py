from .ihex import HexSummary, IntelHexError, summarize_ihex

__all__ = [
    "HexSummary",
    "IntelHexError",
    "summarize_ihex",
]
