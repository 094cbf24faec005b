import sys
import logging
import argparse

from ..config import BuildConfig
from ..constants import (ASSEMBLER, CONVERTER, DEFAULT_ORG, EXIT_OK, EXIT_ERROR,
                         EXIT_INTERRUPTED, LOG_PREFIX)
from ..errors import BuildError, UsageError
from ..pipeline import build_ihx, check_preconditions, check_include_reference
from ..workspace import Workspace
from ..version import VERSION, APP_NAME


def build_parser() -> argparse.ArgumentParser:
    description = f"""
{APP_NAME} - RC2014 YM2149 tune to Intel HEX
=============================================
Builds a PT2/PT3 tune with the PTxPlay player into an .ihx file for HLOAD.
PTxPlay.asm is never edited; tune.inc is rewritten instead.

Requirements: {ASSEMBLER}, {CONVERTER}

Examples:
  ptx-build altitude.pt3
  ptx-build tunes/altitude.pt3
  ORG=0x8000 OUTDIR=/media/cf ptx-build altitude.pt3
"""

    epilog = f"""
Outputs:
  build/<tune_basename>.bin
  build/<tune_basename>.ihx

Environment:
  ORG        load address (default {DEFAULT_ORG} = 0x{DEFAULT_ORG:X})
  OUTDIR     copy the final .ihx there (optional)
  SJASMPLUS  assembler to use (default {ASSEMBLER})
  APPMAKE    converter to use (default {CONVERTER})
"""

    parser = argparse.ArgumentParser(
        prog="ptx-build",
        description=description,
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument('tune', nargs='?',
                        help='Tune file: tune.pt2 | tune.pt3 | path/to/tune')

    parser.add_argument('--org', type=str, default=None,
                        help='Load address: decimal, 0x hex or 0-prefixed octal (overrides $ORG)')
    parser.add_argument('--outdir', type=str, default=None,
                        help='Copy the final .ihx to this folder (overrides $OUTDIR)')
    parser.add_argument('-C', '--workdir', type=str, default=None,
                        help='Folder containing PTxPlay.asm and tune.inc (default: current)')
    parser.add_argument('--sjasmplus', type=str, default=None,
                        help='Assembler executable (overrides $SJASMPLUS)')
    parser.add_argument('--appmake', type=str, default=None,
                        help='z88dk-appmake executable (overrides $APPMAKE)')
    parser.add_argument('--check', action='store_true',
                        help='Only check tools and fixed files, build nothing')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='More logging (-v info, -vv debug)')
    parser.add_argument('--debug', action='store_true',
                        help='Show full traceback on error')
    parser.add_argument('--version', action='version', version=f"%(prog)s {VERSION}")
    return parser


def setup_logging(verbose: int):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr,
                        format="%(levelname)s %(name)s: %(message)s")


def _error(message: str):
    print(f"ERROR: {message}", file=sys.stderr, flush=True)


def run_check(config: BuildConfig) -> int:
    workspace = Workspace(config.workdir)
    tools = check_preconditions(workspace, config)
    check_include_reference(workspace)
    print(f"{LOG_PREFIX} assembler: {tools.assembler}")
    print(f"{LOG_PREFIX} converter: {tools.converter}")
    print(f"{LOG_PREFIX} workdir:   {workspace.root} (OK)")
    return EXIT_OK


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.tune is None and not args.check:
        err = UsageError("expected exactly one tune file (<tune.pt2|tune.pt3|path/to/tune>)")
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {err}", file=sys.stderr)
        return err.exit_code

    setup_logging(args.verbose)

    try:
        config = BuildConfig.from_env().with_overrides(
            org=args.org,
            outdir=args.outdir,
            workdir=args.workdir,
            assembler=args.sjasmplus,
            converter=args.appmake,
        )

        if args.check:
            return run_check(config)

        result = build_ihx(args.tune, config)
        if not result.success:
            _error(result.error_message)
            return result.exit_code
        return EXIT_OK

    except BuildError as e:
        _error(e.message)
        return e.exit_code
    except KeyboardInterrupt:
        print("\n\nOperation Cancelled.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        _error(f"Unexpected error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        else:
            print("       Use --debug to see full traceback.", file=sys.stderr)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
