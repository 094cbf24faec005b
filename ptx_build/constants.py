"""PTx Build - Constants"""

# === FIXED FILES ===
PLAYER_ASM = "PTxPlay.asm"   # Top-level player source, never edited
TUNE_INC = "tune.inc"        # Rewritten on every build
TUNES_DIR = "tunes"
BUILD_DIR = "build"
LOCK_FILE = ".ptx_build.lock"

# === TUNES ===
TUNE_EXTENSIONS = (".pt2", ".pt3")  # Case-sensitive

# === TOOLS ===
ASSEMBLER = "sjasmplus"
CONVERTER = "z88dk-appmake"

# === OUTPUT ===
BIN_EXT = ".bin"
IHX_EXT = ".ihx"
ALT_IHX_EXT = ".bin.ihx"  # appmake sometimes keeps the .bin in the name

# === DEFAULTS ===
DEFAULT_ORG = 49152  # 0xC000
LOG_PREFIX = "[YM2149]"

# === ENVIRONMENT ===
ENV_ORG = "ORG"
ENV_OUTDIR = "OUTDIR"
ENV_ASSEMBLER = "SJASMPLUS"
ENV_CONVERTER = "APPMAKE"

# === EXIT CODES ===
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130
