"""PTx Build - Error taxonomy

Every failure the pipeline can report is a BuildError subclass carrying a
short ``kind`` name and the process exit code the CLI should use.
"""
from .constants import EXIT_ERROR, EXIT_USAGE


class BuildError(Exception):
    """Base class for all pipeline failures."""
    kind = "BuildError"
    exit_code = EXIT_ERROR

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        return self.message


class UsageError(BuildError):
    kind = "UsageError"
    exit_code = EXIT_USAGE


class ConfigError(BuildError):
    kind = "ConfigError"


class ToolMissing(BuildError):
    kind = "ToolMissing"


class FixedFileMissing(BuildError):
    kind = "FixedFileMissing"


class IncludeNotReferenced(BuildError):
    """Player source does not pull in tune.inc, so rewriting it would be ignored."""
    kind = "IncludeNotReferenced"


class TuneNotFound(BuildError):
    kind = "TuneNotFound"


class InvalidExtension(BuildError):
    kind = "InvalidExtension"


class BuildLocked(BuildError):
    kind = "BuildLocked"


class AssemblerFailure(BuildError):
    kind = "AssemblerFailure"


class ConverterFailure(BuildError):
    kind = "ConverterFailure"


class ArtifactNotProduced(BuildError):
    kind = "ArtifactNotProduced"
