"""
Pytest configuration and fixtures for wlsave tests.
"""

import struct
from pathlib import Path

import pytest

from wlsave import CustomVersion, GVASSave

BUILD_ID = "++Wonderlands+Release"
SAVE_GAME_TYPE = "OakSaveGame"

# two real-looking entries followed by a duplicated all-zero GUID
CUSTOM_VERSIONS = [
    (bytes(range(16)), 3),
    (bytes(range(16, 32)), 17),
    (b"\x00" * 16, 1),
    (b"\x00" * 16, 2),
]


def _ue_string(s):
    if s is None:
        return struct.pack("<i", 0)
    if s == "":
        return struct.pack("<i", 1)
    raw = s.encode("utf-8") + b"\x00"
    return struct.pack("<i", len(raw)) + raw


def build_header_bytes(build_id=BUILD_ID, save_game_type=SAVE_GAME_TYPE,
                       custom_versions=CUSTOM_VERSIONS):
    """Hand-assembled GVAS header, independent of the codec under test."""
    out = bytearray(b"GVAS")
    out += struct.pack("<ii", 2, 522)
    out += struct.pack("<hhh", 4, 26, 1)
    out += struct.pack("<I", 0x4A3B2C1D)
    out += _ue_string(build_id)
    out += struct.pack("<ii", 3, len(custom_versions))
    for guid, version in custom_versions:
        out += guid + struct.pack("<i", version)
    out += _ue_string(save_game_type)
    return bytes(out)


@pytest.fixture
def header_bytes() -> bytes:
    """Return a complete encoded GVAS header."""
    return build_header_bytes()


@pytest.fixture
def payload() -> bytes:
    """Return opaque bytes standing in for the encrypted save body."""
    return struct.pack("<i", 8) + b"\xde\xad\xbe\xef\x01\x02\x03\x04"


@pytest.fixture
def save_bytes(header_bytes: bytes, payload: bytes) -> bytes:
    """Return a full save file: header followed by payload."""
    return header_bytes + payload


@pytest.fixture
def save_path(tmp_path: Path, save_bytes: bytes) -> Path:
    """Write the sample save to disk and return its path."""
    path = tmp_path / "1.sav"
    path.write_bytes(save_bytes)
    return path


@pytest.fixture
def gvas_save() -> GVASSave:
    """Return the decoded form of header_bytes."""
    return GVASSave(
        save_game_version=2,
        package_version=522,
        engine_major=4,
        engine_minor=26,
        engine_patch=1,
        engine_build=0x4A3B2C1D,
        build_id=BUILD_ID,
        custom_format_version=3,
        custom_format_data=[CustomVersion(guid=g, version=v)
                            for g, v in CUSTOM_VERSIONS],
        save_game_type=SAVE_GAME_TYPE,
    )
