"""Content hashing of compiled module artifacts."""

from __future__ import annotations

import gzip
import hashlib
import os
import zlib
from pathlib import Path

from appup_gen.errors import ArtifactReadError

_CONTAINER_ID = b"FOR1"
_FORM_TYPE = b"BEAM"
_GZIP_MAGIC = b"\x1f\x8b"
_HEADER_BYTES = 12
_CHUNK_HEADER_BYTES = 8

# Chunks that carry executable content. Debug info, attributes and compile
# metadata are excluded so a rebuild of identical code hashes identically.
CODE_CHUNKS = (b"AtU8", b"Atom", b"Code", b"StrT", b"ImpT", b"ExpT", b"FunT", b"LitT")


def index_artifacts(directory: Path, extension: str = ".beam") -> dict[str, str]:
    """Map module name to content digest for artifacts directly in ``directory``."""
    try:
        with os.scandir(directory) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
    except OSError as error:
        raise ArtifactReadError(directory, error.strerror or str(error)) from error

    output: dict[str, str] = {}
    for entry in ordered_entries:
        if not entry.is_file():
            continue
        path = Path(entry.path)
        if path.suffix != extension:
            continue
        output[path.stem] = artifact_digest(path)
    return output


def artifact_digest(path: Path) -> str:
    """Compute the MD5 digest over the code-bearing chunks of one artifact."""
    try:
        data = path.read_bytes()
    except OSError as error:
        raise ArtifactReadError(path, error.strerror or str(error)) from error
    if data.startswith(_GZIP_MAGIC):
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as error:
            raise ArtifactReadError(path, f"corrupt compressed artifact: {error}") from error
    try:
        chunks = read_chunks(data)
    except ValueError as error:
        raise ArtifactReadError(path, str(error)) from error
    if b"Code" not in chunks:
        raise ArtifactReadError(path, "missing Code chunk")

    digest = hashlib.md5()
    for chunk_id in CODE_CHUNKS:
        payload = chunks.get(chunk_id)
        if payload is None:
            continue
        digest.update(chunk_id)
        digest.update(len(payload).to_bytes(4, "big"))
        digest.update(payload)
    return digest.hexdigest()


def read_chunks(data: bytes) -> dict[bytes, bytes]:
    """Split an IFF-style module container into its chunks, keyed by chunk id."""
    if len(data) < _HEADER_BYTES or data[:4] != _CONTAINER_ID or data[8:12] != _FORM_TYPE:
        raise ValueError("not a compiled module container")
    end = 8 + int.from_bytes(data[4:8], "big")
    if end > len(data):
        raise ValueError("container is truncated")

    chunks: dict[bytes, bytes] = {}
    offset = _HEADER_BYTES
    while offset + _CHUNK_HEADER_BYTES <= end:
        chunk_id = data[offset : offset + 4]
        size = int.from_bytes(data[offset + 4 : offset + 8], "big")
        start = offset + _CHUNK_HEADER_BYTES
        stop = start + size
        if stop > end:
            raise ValueError(f"chunk {chunk_id.decode('latin-1')!r} is truncated")
        chunks.setdefault(chunk_id, data[start:stop])
        offset = start + ((size + 3) & ~3)
    return chunks
