import gzip
import logging
import struct
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import *

# optional compressors
try:
    import lz4.frame as lz4f  # type: ignore
except Exception:  # pragma: no cover
    lz4f = None  # lazy check later

try:
    import zstandard as zstd  # type: ignore
except Exception:  # pragma: no cover
    zstd = None

from wlsave.classes import (NoMatchingClassError, PlayerClass, levenshtein,
                            resolve_class)

logger = logging.getLogger(__package__)

MAGIC = b'GVAS'  # UE SaveGame header magic
GUID_SIZE = 16

COMPRESSION_METHODS = ('auto', 'none', 'zlib', 'deflate', 'gzip', 'lz4', 'zstd')

# (field name, value) callback used to report each decoded header field
HeaderObserver = Callable[[str, Any], None]


class ShortReadError(EOFError):
    pass


class NotGVASError(ValueError):
    pass


class DecompressionError(Exception):
    pass


def _read_bytes(data: bytes, offset: int, size: int) -> Tuple[bytes, int]:
    end = offset + size
    if size < 0 or end > len(data):
        raise ShortReadError(
            f"Need {size} byte(s) at offset {offset}, only {max(0, len(data) - offset)} left")
    return bytes(data[offset: end]), end


def _unpack(fmt: str, data: bytes, offset: int) -> Tuple[int, int]:
    raw, offset = _read_bytes(data, offset, struct.calcsize(fmt))
    return struct.unpack(fmt, raw)[0], offset


def _read_u32(data: bytes, offset: int) -> Tuple[int, int]:
    return _unpack('<I', data, offset)


def _write_u32(data: bytearray, v: int) -> None:
    data.extend(struct.pack('<I', int(v)))


def _read_i32(data: bytes, offset: int) -> Tuple[int, int]:
    return _unpack('<i', data, offset)


def _write_i32(data: bytearray, v: int) -> None:
    data.extend(struct.pack('<i', int(v)))


def _read_i16(data: bytes, offset: int) -> Tuple[int, int]:
    return _unpack('<h', data, offset)


def _write_i16(data: bytearray, v: int) -> None:
    data.extend(struct.pack('<h', int(v)))


def _read_ascii(data: bytes, offset: int, size: int) -> Tuple[str, int]:
    raw, offset = _read_bytes(data, offset, size)
    return raw.decode('ascii', errors='replace'), offset


def _write_ascii(data: bytearray, s: str) -> None:
    data.extend(s.encode('ascii'))


def read_ue_string(data: bytes, offset: int) -> Tuple[Optional[str], int]:
    """Read a UE FString.

    Returns None for a missing string (end of data, or length 0) and "" for
    length 1. A positive length counts the UTF-8 bytes plus the trailing NUL;
    the last byte is dropped as-is. A negative length is UTF-16LE and -length
    is the character count, terminator included.
    """
    if offset >= len(data):
        return None, offset
    strlen, offset = _read_i32(data, offset)
    if strlen == 0:
        return None, offset
    if strlen == 1:
        return "", offset
    if strlen < 0:
        raw, offset = _read_bytes(data, offset, -strlen * 2)
        return raw[:-2].decode('utf-16-le', errors='replace'), offset
    raw, offset = _read_bytes(data, offset, strlen)
    return raw[:-1].decode('utf-8', errors='replace'), offset


def write_ue_string(data: bytearray, s: Optional[str]) -> None:
    """Write a UE FString (None -> 0, "" -> 1, else UTF-8 bytes plus NUL)."""
    if s is None:
        _write_i32(data, 0)
        return
    if s == "":
        _write_i32(data, 1)
        return
    raw = s.encode('utf-8') + b'\x00'
    _write_i32(data, len(raw))
    data.extend(raw)


def format_guid(raw: bytes) -> str:
    """Render 16 raw GUID bytes in the canonical 8-4-4-4-12 form."""
    if len(raw) != GUID_SIZE:
        return ""
    # UE stores the first three groups little-endian
    part1 = raw[0:4][::-1].hex()
    part2 = raw[4:6][::-1].hex()
    part3 = raw[6:8][::-1].hex()
    part4 = raw[8:10].hex()
    part5 = raw[10:16].hex()
    return f"{part1}-{part2}-{part3}-{part4}-{part5}"


def parse_guid(guid: str) -> bytes:
    """Inverse of format_guid."""
    parts = guid.split('-')
    if len(parts) != 5:
        raise ValueError(f"Invalid GUID: {guid!r}")
    part1 = bytes.fromhex(parts[0])[::-1]
    part2 = bytes.fromhex(parts[1])[::-1]
    part3 = bytes.fromhex(parts[2])[::-1]
    part4 = bytes.fromhex(parts[3])
    part5 = bytes.fromhex(parts[4])
    if len(part1) != 4 or len(part2) != 2 or len(part3) != 2 or len(part4) != 2 or len(part5) != 6:
        raise ValueError(f"Invalid GUID part length: {guid!r}")
    return part1 + part2 + part3 + part4 + part5


@dataclass(frozen=True)
class CustomVersion:
    guid: bytes
    version: int

    def __post_init__(self):
        if len(self.guid) != GUID_SIZE:
            raise ValueError(
                f"Custom version GUID must be {GUID_SIZE} bytes, got {len(self.guid)}")
        object.__setattr__(self, 'guid', bytes(self.guid))

    @classmethod
    def from_str(cls, guid: str, version: int) -> 'CustomVersion':
        return cls(guid=parse_guid(guid), version=version)

    @property
    def guid_str(self) -> str:
        return format_guid(self.guid)

    def __str__(self):
        return f"{self.guid_str}: {self.version}"


def read_custom_versions(data: bytes, offset: int, count: int) -> Tuple[Tuple[CustomVersion, ...], int]:
    # kept as an ordered sequence: GUIDs may repeat
    entries = []
    for _ in range(count):
        guid, offset = _read_bytes(data, offset, GUID_SIZE)
        version, offset = _read_i32(data, offset)
        entries.append(CustomVersion(guid=guid, version=version))
    return tuple(entries), offset


def write_custom_versions(data: bytearray, entries: Sequence[CustomVersion]) -> None:
    _write_i32(data, len(entries))
    for entry in entries:
        data.extend(entry.guid)
        _write_i32(data, entry.version)


@dataclass(frozen=True)
class GVASSave:
    save_game_version: int
    package_version: int
    engine_major: int
    engine_minor: int
    engine_patch: int
    engine_build: int
    build_id: Optional[str]
    custom_format_version: int
    custom_format_data: Tuple[CustomVersion, ...] = ()
    save_game_type: Optional[str] = None

    def __post_init__(self):
        # plain (guid, version) pairs are accepted too
        object.__setattr__(self, 'custom_format_data', tuple(
            entry if isinstance(entry, CustomVersion) else CustomVersion(*entry)
            for entry in self.custom_format_data))

    @property
    def custom_format_count(self) -> int:
        return len(self.custom_format_data)

    @property
    def engine_version(self) -> str:
        return f"{self.engine_major}.{self.engine_minor}.{self.engine_patch}.{self.engine_build}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "magic": MAGIC.decode('ascii'),
            "save_game_version": self.save_game_version,
            "package_version": self.package_version,
            "engine_version": {
                "major": self.engine_major,
                "minor": self.engine_minor,
                "patch": self.engine_patch,
                "build": self.engine_build,
                "build_id": self.build_id,
            },
            "custom_format_version": self.custom_format_version,
            "custom_format_count": self.custom_format_count,
            "custom_format_data": [
                {"guid": entry.guid_str, "version": entry.version}
                for entry in self.custom_format_data
            ],
            "save_game_type": self.save_game_type,
        }


def _log_field(name: str, value: Any) -> None:
    logger.debug("%s: %r", name, value)


def read_gvas_header(data: bytes, offset: int = 0,
                     observer: Optional[HeaderObserver] = None) -> Tuple[Optional[GVASSave], int]:
    """Decode a GVAS header starting at `offset`.

    Returns (None, offset) when the magic does not match, so arbitrary data
    can be probed. Each decoded field is passed to `observer` (DEBUG log by
    default).
    """
    report = observer or _log_field

    if bytes(data[offset: offset + len(MAGIC)]) != MAGIC:
        return None, offset
    magic, offset = _read_ascii(data, offset, len(MAGIC))
    report("magic", magic)

    save_game_version, offset = _read_i32(data, offset)
    report("save_game_version", save_game_version)
    package_version, offset = _read_i32(data, offset)
    report("package_version", package_version)

    # engine version: int16 major/minor/patch, uint32 build, build id (FString)
    engine_major, offset = _read_i16(data, offset)
    engine_minor, offset = _read_i16(data, offset)
    engine_patch, offset = _read_i16(data, offset)
    engine_build, offset = _read_u32(data, offset)
    report("engine_version",
           f"{engine_major}.{engine_minor}.{engine_patch}.{engine_build}")
    build_id, offset = read_ue_string(data, offset)
    report("build_id", build_id)

    custom_format_version, offset = _read_i32(data, offset)
    report("custom_format_version", custom_format_version)
    custom_format_count, offset = _read_i32(data, offset)
    report("custom_format_count", custom_format_count)
    custom_format_data, offset = read_custom_versions(
        data, offset, custom_format_count)
    for entry in custom_format_data:
        report("custom_version", str(entry))

    save_game_type, offset = read_ue_string(data, offset)
    report("save_game_type", save_game_type)

    header = GVASSave(
        save_game_version=save_game_version,
        package_version=package_version,
        engine_major=engine_major,
        engine_minor=engine_minor,
        engine_patch=engine_patch,
        engine_build=engine_build,
        build_id=build_id,
        custom_format_version=custom_format_version,
        custom_format_data=custom_format_data,
        save_game_type=save_game_type,
    )
    return header, offset


def write_gvas_header(data: bytearray, header: GVASSave) -> None:
    _write_ascii(data, MAGIC.decode('ascii'))

    _write_i32(data, header.save_game_version)
    _write_i32(data, header.package_version)

    _write_i16(data, header.engine_major)
    _write_i16(data, header.engine_minor)
    _write_i16(data, header.engine_patch)
    _write_u32(data, header.engine_build)
    write_ue_string(data, header.build_id)

    _write_i32(data, header.custom_format_version)
    # count always comes from the table itself
    write_custom_versions(data, header.custom_format_data)

    write_ue_string(data, header.save_game_type)


def _try_zlib(data: bytes) -> Optional[bytes]:
    try:
        return zlib.decompress(data)
    except zlib.error:
        return None


def _try_deflate_raw(data: bytes) -> Optional[bytes]:
    # Raw deflate (no zlib/gzip headers)
    try:
        return zlib.decompress(data, wbits=-15)
    except zlib.error:
        return None


def _try_gzip(data: bytes) -> Optional[bytes]:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error):
        return None


def _try_lz4(data: bytes) -> Optional[bytes]:
    if lz4f is None:
        return None
    try:
        return lz4f.decompress(data)
    except RuntimeError:
        return None


def _try_zstd(data: bytes) -> Optional[bytes]:
    if zstd is None:
        return None
    try:
        dctx = zstd.ZstdDecompressor()
        return dctx.decompress(data)
    except zstd.ZstdError:
        return None


_DECOMPRESSORS: Dict[str, Callable[[bytes], Optional[bytes]]] = {
    "zlib": _try_zlib,
    "deflate": _try_deflate_raw,
    "gzip": _try_gzip,
    "lz4": _try_lz4,
    "zstd": _try_zstd,
}


def decompress_payload(raw_bytes: bytes, method: str = "auto") -> bytes:
    """
    Decompress bytes using a chosen method.

    method options:
    - 'none': return raw_bytes as-is
    - 'zlib': zlib with header
    - 'deflate': raw DEFLATE (no headers)
    - 'gzip': gzip stream
    - 'lz4': LZ4 frame (requires lz4 package)
    - 'zstd': Zstandard (requires zstandard package)
    - 'auto': try common methods heuristically in order
    """
    m = method.lower()
    if m not in COMPRESSION_METHODS:
        raise ValueError(f"Unknown compression method: {method}")
    if m == "none":
        return raw_bytes
    if m == "lz4" and lz4f is None:
        raise DecompressionError("lz4 not available. Install 'lz4' package.")
    if m == "zstd" and zstd is None:
        raise DecompressionError(
            "zstd not available. Install 'zstandard' package.")
    if m != "auto":
        out = _DECOMPRESSORS[m](raw_bytes)
        if out is None:
            raise DecompressionError(f"{m} failed")
        return out

    # auto heuristic: try fast header checks first
    if raw_bytes[:2] == b"\x1f\x8b":
        out = _try_gzip(raw_bytes)
        if out is not None:
            return out
    if raw_bytes[:4] == b"\x28\xb5\x2f\xfd":
        out = _try_zstd(raw_bytes)
        if out is not None:
            return out
    if raw_bytes[:4] == b"\x04\x22\x4d\x18":
        out = _try_lz4(raw_bytes)
        if out is not None:
            return out

    for name in ("zlib", "deflate", "gzip", "lz4", "zstd"):
        logger.debug("Trying %s decompression", name)
        out = _DECOMPRESSORS[name](raw_bytes)
        if out is not None:
            return out

    raise DecompressionError(
        "Could not decompress payload. Try --compression none|zlib|deflate|gzip|lz4|zstd."
    )


@dataclass
class SaveFile:
    header: GVASSave
    payload: bytes = field(default=b"", repr=False)


def parse_savefile(data: bytes, observer: Optional[HeaderObserver] = None) -> SaveFile:
    header, offset = read_gvas_header(data, 0, observer)
    if header is None:
        raise NotGVASError(
            "GVAS magic not found. This may not be a UE SaveGame file.")
    return SaveFile(header=header, payload=bytes(data[offset:]))


def serialize_savefile(save: SaveFile) -> bytes:
    data = bytearray()
    write_gvas_header(data, save.header)
    data.extend(save.payload)
    return bytes(data)


def read_savefile(path: Path, compression: str = "auto",
                  observer: Optional[HeaderObserver] = None) -> SaveFile:
    path = Path(path)
    data = path.read_bytes()

    # if not starting with GVAS, try to decompress the entire file first
    if not data.startswith(MAGIC) and compression != "none":
        try:
            candidate = decompress_payload(data, method=compression)
        except DecompressionError as e:
            logger.debug("%s: %s", path, e)
        else:
            if candidate.startswith(MAGIC):
                logger.info("Decompressed %s (%d -> %d bytes)",
                            path, len(data), len(candidate))
                data = candidate

    save = parse_savefile(data, observer)
    logger.info("Loaded %s (engine %s, %d custom version(s), payload %d bytes)",
                path, save.header.engine_version,
                save.header.custom_format_count, len(save.payload))
    return save


def write_savefile(path: Path, save: SaveFile) -> None:
    data = serialize_savefile(save)
    Path(path).write_bytes(data)
    logger.info("Saved %s (%d bytes)", path, len(data))
