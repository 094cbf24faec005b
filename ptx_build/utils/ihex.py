"""Intel HEX reader used to sanity-check the converter's output.

Supported records: 00 data, 01 end of file, 02 extended segment address,
04 extended linear address. Start address records (03, 05) are ignored.
"""
import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

logger = logging.getLogger("ptx_build.ihex")

REC_DATA = 0x00
REC_EOF = 0x01
REC_EXT_SEGMENT = 0x02
REC_START_SEGMENT = 0x03
REC_EXT_LINEAR = 0x04
REC_START_LINEAR = 0x05


class IntelHexError(ValueError):
    """Malformed Intel HEX input."""


@dataclass
class HexSummary:
    """What an Intel HEX file loads into memory."""
    start: int = 0
    end: int = 0          # Exclusive
    size: int = 0         # Distinct bytes loaded
    records: int = 0      # Data records

    def __str__(self):
        if not self.size:
            return "empty image"
        return (f"${self.start:04X}-${self.end - 1:04X} "
                f"({self.size:,} bytes, {self.records} records)")


def _parse_record(line: str, line_no: int) -> np.ndarray:
    if not line.startswith(":"):
        raise IntelHexError(f"line {line_no}: missing ':' start code")
    try:
        raw = bytes.fromhex(line[1:])
    except ValueError:
        raise IntelHexError(f"line {line_no}: invalid hex digits")
    rec = np.frombuffer(raw, dtype=np.uint8)
    if len(rec) < 5 or len(rec) != int(rec[0]) + 5:
        raise IntelHexError(f"line {line_no}: bad record length")
    # Sum of all bytes including the checksum must be 0 mod 256
    if int(rec.sum(dtype=np.uint32)) & 0xFF:
        raise IntelHexError(f"line {line_no}: checksum mismatch (${int(rec[-1]):02X})")
    return rec


def read_segments(lines) -> Tuple[List[Tuple[int, np.ndarray]], int]:
    """Parse Intel HEX text into (address, data) segments.

    Returns:
        Tuple of (segments, data_record_count)

    Raises:
        IntelHexError: On any malformed record or a missing EOF record
    """
    segments = []
    base = 0
    saw_eof = False

    for line_no, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        rec = _parse_record(line, line_no)
        count = int(rec[0])
        offset = (int(rec[1]) << 8) | int(rec[2])
        rec_type = int(rec[3])
        data = rec[4:4 + count]

        if rec_type == REC_DATA:
            segments.append((base + offset, data))
        elif rec_type == REC_EOF:
            saw_eof = True
            break
        elif rec_type in (REC_EXT_SEGMENT, REC_EXT_LINEAR) and count != 2:
            raise IntelHexError(f"line {line_no}: address record needs 2 data bytes")
        elif rec_type == REC_EXT_SEGMENT:
            base = ((int(data[0]) << 8) | int(data[1])) << 4
        elif rec_type == REC_EXT_LINEAR:
            base = ((int(data[0]) << 8) | int(data[1])) << 16
        elif rec_type in (REC_START_SEGMENT, REC_START_LINEAR):
            pass
        else:
            raise IntelHexError(f"line {line_no}: unsupported record type {rec_type:02X}")

    if not saw_eof:
        raise IntelHexError("missing end-of-file record")
    return segments, len(segments)


def load_image(segments) -> Tuple[int, np.ndarray, np.ndarray]:
    """Lay segments out in a flat image.

    Returns:
        Tuple of (start_address, image bytes, mask of loaded bytes)
    """
    if not segments:
        return 0, np.zeros(0, dtype=np.uint8), np.zeros(0, dtype=bool)
    start = min(addr for addr, _ in segments)
    end = max(addr + len(data) for addr, data in segments)
    image = np.zeros(end - start, dtype=np.uint8)
    mask = np.zeros(end - start, dtype=bool)
    for addr, data in segments:
        image[addr - start:addr - start + len(data)] = data
        mask[addr - start:addr - start + len(data)] = True
    return start, image, mask


def summarize_ihex(path: str) -> HexSummary:
    """Read an Intel HEX file and describe the memory it loads."""
    with open(path, 'r') as f:
        segments, records = read_segments(f)
    start, image, mask = load_image(segments)
    summary = HexSummary(records=records)
    if len(image):
        loaded = np.flatnonzero(mask)
        summary.start = start + int(loaded[0])
        summary.end = start + int(loaded[-1]) + 1
        summary.size = int(mask.sum())
    logger.debug(f"{path}: {summary}")
    return summary
