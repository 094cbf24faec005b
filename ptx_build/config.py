"""PTx Build - Configuration

Build settings come from the environment (ORG, OUTDIR, SJASMPLUS, APPMAKE)
and can be overridden by command-line options.
"""
import os
import re
import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .constants import (DEFAULT_ORG, ASSEMBLER, CONVERTER, ENV_ORG, ENV_OUTDIR,
                        ENV_ASSEMBLER, ENV_CONVERTER)
from .errors import ConfigError

logger = logging.getLogger("ptx_build.config")

OCTAL_RE = re.compile(r"^[+-]?0[0-7]+$")


def parse_org(value) -> int:
    """Parse a load address given as decimal, hex (0x...) or any int literal.

    A leading zero means octal (``010`` is 8), as C and shell arithmetic read it.
    """
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if OCTAL_RE.match(text):
            return int(text, 8)
        return int(text, 0)
    except ValueError:
        raise ConfigError(f"ORG must be an integer (got: '{value}')")


@dataclass(frozen=True)
class BuildConfig:
    """Settings for one build."""
    org: int = DEFAULT_ORG
    outdir: str = ""            # Empty = no copy-out
    workdir: str = "."
    assembler: str = ASSEMBLER
    converter: str = CONVERTER

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'BuildConfig':
        if environ is None:
            environ = os.environ

        org = DEFAULT_ORG
        raw_org = environ.get(ENV_ORG, "")
        if raw_org:
            org = parse_org(raw_org)

        return cls(
            org=org,
            outdir=environ.get(ENV_OUTDIR, ""),
            assembler=environ.get(ENV_ASSEMBLER) or ASSEMBLER,
            converter=environ.get(ENV_CONVERTER) or CONVERTER,
        )

    def with_overrides(self, **overrides) -> 'BuildConfig':
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if 'org' in changes:
            changes['org'] = parse_org(changes['org'])
        if changes:
            logger.debug(f"Config overrides: {changes}")
        return replace(self, **changes)
