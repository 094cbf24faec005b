"""PTx Build - Build pipeline

Turns a PT2/PT3 tune into an Intel HEX image:

    check tools/files -> resolve tune -> write tune.inc -> sjasmplus (raw .bin)
    -> z88dk-appmake (.ihx) -> normalize .ihx name -> optional copy-out

Each step raises a BuildError subclass on failure; build_ihx() stops at the
first one and reports it in the returned BuildResult.
"""
import os
import re
import glob
import shutil
import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, List, Tuple

from .constants import PLAYER_ASM, TUNE_INC, IHX_EXT, LOG_PREFIX
from .config import BuildConfig
from .errors import (BuildError, ToolMissing, FixedFileMissing, IncludeNotReferenced,
                     AssemblerFailure, ConverterFailure, ArtifactNotProduced)
from .resolver import TuneReference, resolve_tune
from .runtime import find_tool
from .utils.ihex import HexSummary, IntelHexError, summarize_ihex
from .workspace import Workspace, BuildLock

logger = logging.getLogger("ptx_build.pipeline")

# PTxPlay.asm must contain this for the tune.inc rewrite to have any effect
INCLUDE_RE = re.compile(r'^[ \t]*include[ \t]+"?tune\.inc"?', re.IGNORECASE | re.MULTILINE)

# Tool output lines carried into error details
MAX_ERROR_LINES = 8


@dataclass
class BuildResult:
    """Result of build operation."""
    success: bool = False
    tune: Optional[TuneReference] = None
    bin_path: str = ""
    ihx_path: str = ""
    copied_path: str = ""
    summary: Optional[HexSummary] = None
    error_kind: str = ""
    error_message: str = ""
    exit_code: int = 0


@dataclass
class Toolchain:
    """Resolved paths of the external tools."""
    assembler: str
    converter: str


def _output(text: str):
    """Progress line for the user."""
    print(f"{LOG_PREFIX} {text}", flush=True)


# =============================================================================
# PRECONDITIONS
# =============================================================================

def check_preconditions(workspace: Workspace, config: BuildConfig) -> Toolchain:
    """Verify both tools can be found and the fixed files exist."""
    tools = []
    for name in (config.assembler, config.converter):
        path = find_tool(name)
        if not path:
            raise ToolMissing(f"{name} not found in PATH")
        logger.info(f"Using {name}: {path}")
        tools.append(path)

    if not os.path.isfile(workspace.asm_path):
        raise FixedFileMissing(f"missing {PLAYER_ASM} in {workspace.root}")
    if not os.path.isfile(workspace.inc_path):
        raise FixedFileMissing(
            f"missing {TUNE_INC} in {workspace.root} (create {TUNE_INC} first)")

    return Toolchain(assembler=tools[0], converter=tools[1])


def check_include_reference(workspace: Workspace):
    """Make sure the player source pulls in tune.inc."""
    with open(workspace.asm_path, 'r', encoding='latin-1') as f:
        source = f.read()
    if not INCLUDE_RE.search(source):
        raise IncludeNotReferenced(
            f"{PLAYER_ASM} does not appear to include {TUNE_INC} "
            f"(expected: include \"{TUNE_INC}\")")


# =============================================================================
# INCLUDE EMITTER
# =============================================================================

def include_directive(tune: TuneReference) -> str:
    return f'    incbin "{tune.path}"\n'


def write_include(workspace: Workspace, tune: TuneReference):
    """Overwrite tune.inc (the only source file this tool modifies)."""
    with open(workspace.inc_path, 'w') as f:
        f.write(include_directive(tune))
    logger.info(f"Wrote {workspace.inc_path}: incbin \"{tune.path}\"")


# =============================================================================
# BUILD INVOKER
# =============================================================================

def clean_artifacts(workspace: Workspace, base: str) -> List[str]:
    """Remove stale outputs of a previous (possibly failed) build."""
    removed = []
    for rel in workspace.artifact_paths(base):
        path = workspace.path(rel)
        if os.path.isfile(path):
            os.remove(path)
            removed.append(rel)
            logger.debug(f"Removed stale {rel}")
    return removed


def _tool_details(proc) -> str:
    output = ((proc.stdout or "") + "\n" + (proc.stderr or "")).strip()
    lines = [l.strip() for l in output.split('\n') if l.strip()]
    return "\n".join(lines[:MAX_ERROR_LINES])


def _run_tool(cmd: List[str], cwd: str, error_cls, label: str):
    logger.info(f"Running: {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except OSError as e:
        raise error_cls(f"{label} could not be started: {e}")

    if proc.returncode != 0:
        details = _tool_details(proc)
        logger.error(f"{label} failed (code {proc.returncode}): {details}")
        raise error_cls(f"{label} failed (code {proc.returncode})", details)
    return proc


def run_assembler(tools: Toolchain, workspace: Workspace, bin_rel: str):
    """Assemble the player (with the tune) to a headerless binary."""
    cmd = [tools.assembler, PLAYER_ASM, f"--raw={bin_rel}"]
    _run_tool(cmd, workspace.root, AssemblerFailure, "sjasmplus")


def run_converter(tools: Toolchain, workspace: Workspace, bin_rel: str, org: int):
    """Convert the raw binary to Intel HEX loaded at ``org``."""
    cmd = [tools.converter, "+rom", "-b", bin_rel, "--org", str(org), "--ihex"]
    _run_tool(cmd, workspace.root, ConverterFailure, "z88dk-appmake")


# =============================================================================
# OUTPUT NORMALIZER
# =============================================================================

def normalize_output(workspace: Workspace, base: str) -> str:
    """Make sure the hex file ends up as build/<base>.ihx.

    appmake names it <base>.ihx or <base>.bin.ihx depending on version;
    as a last resort the newest .ihx in build/ is taken.
    """
    expected = workspace.path(workspace.ihx_path(base))
    alternate = workspace.path(workspace.alt_ihx_path(base))

    if os.path.isfile(expected):
        return expected

    if os.path.isfile(alternate):
        logger.info(f"Renaming {alternate} -> {expected}")
        os.replace(alternate, expected)
        return expected

    candidates = glob.glob(os.path.join(glob.escape(workspace.build_dir), "*" + IHX_EXT))
    if not candidates:
        raise ArtifactNotProduced(".ihx not produced")
    newest = max(candidates, key=os.path.getmtime)
    logger.warning(f"Expected {os.path.basename(expected)}, taking newest {newest}")
    os.replace(newest, expected)
    return expected


# =============================================================================
# COPY-OUT
# =============================================================================

def copy_out(workspace: Workspace, ihx_path: str, outdir: str) -> str:
    """Copy the final hex file to ``outdir`` (relative to the working directory)."""
    if not outdir:
        return ""
    dest_dir = workspace.path(outdir)
    os.makedirs(dest_dir, exist_ok=True)
    dest = os.path.join(dest_dir, os.path.basename(ihx_path))
    shutil.copy2(ihx_path, dest)
    logger.info(f"Copied {ihx_path} -> {dest}")
    return dest


def describe_artifact(ihx_path: str) -> Optional[HexSummary]:
    """Read back the hex file; problems are reported, never fatal."""
    try:
        return summarize_ihex(ihx_path)
    except (IntelHexError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not verify {ihx_path}: {e}")
        return None


# =============================================================================
# PIPELINE
# =============================================================================

def prepare(tune_arg: str, config: BuildConfig) -> Tuple[Workspace, Toolchain, TuneReference]:
    """All validation steps. Nothing on disk is touched."""
    workspace = Workspace(config.workdir)
    tools = check_preconditions(workspace, config)
    tune = resolve_tune(workspace, tune_arg)
    check_include_reference(workspace)
    return workspace, tools, tune


def run_build(workspace: Workspace, tools: Toolchain, tune: TuneReference,
              config: BuildConfig, result: BuildResult):
    """Mutating steps, in order. Fills ``result`` as it goes."""
    workspace.init_build_dir()
    write_include(workspace, tune)

    _output(f"tune: {tune.path}")
    _output(f"inc:  {TUNE_INC}  (written)")
    _output(f"org:  {config.org} (0x{config.org:X})")

    base = tune.base
    bin_rel = workspace.bin_path(base)
    clean_artifacts(workspace, base)

    run_assembler(tools, workspace, bin_rel)
    result.bin_path = workspace.path(bin_rel)

    run_converter(tools, workspace, bin_rel, config.org)
    result.ihx_path = normalize_output(workspace, base)

    if config.outdir:
        result.copied_path = copy_out(workspace, result.ihx_path, config.outdir)
        _output(f"copied: {result.copied_path}")

    result.summary = describe_artifact(result.ihx_path)

    _output(f"built: {bin_rel}")
    _output(f"built: {workspace.ihx_path(base)}")
    if result.summary:
        _output(f"image: {result.summary}")


def build_ihx(tune_arg: str, config: BuildConfig) -> BuildResult:
    """Build ``tune_arg`` into build/<base>.ihx.

    Args:
        tune_arg: Tune file name or path as given on the command line
        config: Build settings

    Returns:
        BuildResult with success status and paths
    """
    result = BuildResult()
    try:
        workspace, tools, tune = prepare(tune_arg, config)
        result.tune = tune
        with BuildLock(workspace):
            run_build(workspace, tools, tune, config, result)
    except BuildError as e:
        result.error_kind = e.kind
        result.error_message = e.message
        if e.details:
            result.error_message += "\n" + e.details
        result.exit_code = e.exit_code
        logger.debug(f"Build stopped: {e.kind}: {e.message}")
        return result

    result.success = True
    logger.info(f"Build successful: {result.ihx_path}")
    return result
