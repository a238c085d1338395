"""Byte-exact file storage used by the workflow and backups.

Documents are decoded as UTF-8 with ``surrogateescape`` so that any byte
sequence (legacy CP1252 pages included) round-trips unchanged: bytes that
are not valid UTF-8 survive as lone surrogates and are re-encoded to the
same bytes on write.
"""
from __future__ import annotations

import shutil
from pathlib import Path

from dwtsync.io_utils import atomic_write_bytes

TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


def decode_text(data: bytes) -> str:
    return data.decode(TEXT_ENCODING, errors=TEXT_ERRORS)


def encode_text(text: str) -> bytes:
    return text.encode(TEXT_ENCODING, errors=TEXT_ERRORS)


class FileStorage:
    """Local filesystem storage. Every method raises ``OSError`` on failure."""

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def read_text(self, path: Path) -> str:
        return decode_text(self.read_bytes(path))

    def write_bytes(self, path: Path, data: bytes) -> None:
        atomic_write_bytes(path, data)

    def write_text(self, path: Path, text: str) -> None:
        self.write_bytes(path, encode_text(text))

    def copy(self, src: Path, dst: Path) -> None:
        """Copy bytes and metadata; creates missing parent directories."""
        if not src.is_file():
            raise FileNotFoundError(f"No such file: {src}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
