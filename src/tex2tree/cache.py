"""Fingerprint sidecars and the cache directory of previously built PDFs."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .checksums import CHECKSUMS_EXTENSION, ChecksumCalculator, serialize_fingerprint
from .utils import PathLike, file_stem, safe_write_text

LOG = logging.getLogger("tex2tree.cache")


@dataclass
class CacheEntry:
    is_fully_cached: bool
    fingerprint: str
    cached_artifact_path: str
    cached_fingerprint_path: str


def sidecar_path(artifact_path: PathLike) -> str:
    artifact = os.fspath(artifact_path)
    return os.path.join(os.path.dirname(artifact), f"{file_stem(artifact)}{CHECKSUMS_EXTENSION}")


class ArtifactCache:
    def __init__(
        self,
        calculator: Optional[ChecksumCalculator] = None,
        artifact_extension: str = ".pdf",
        logger: Optional[logging.Logger] = None,
    ):
        self.calculator = calculator or ChecksumCalculator()
        self.artifact_extension = artifact_extension
        self.log = logger or LOG

    def serialized_fingerprint(self, source_path: PathLike) -> str:
        return serialize_fingerprint(self.calculator.compute_fingerprint(source_path))

    def lookup(self, source_path: PathLike, cache_directory: PathLike, cache_key_name: Optional[str] = None) -> CacheEntry:
        name = cache_key_name or file_stem(source_path)
        fingerprint = self.serialized_fingerprint(source_path)
        cached_artifact = os.path.abspath(os.path.join(os.fspath(cache_directory), f"{name}{self.artifact_extension}"))
        cached_sidecar = os.path.abspath(os.path.join(os.fspath(cache_directory), f"{name}{CHECKSUMS_EXTENSION}"))
        is_fully_cached = (
            os.path.isfile(cached_artifact)
            and os.path.isfile(cached_sidecar)
            and Path(cached_sidecar).read_text(encoding="utf-8") == fingerprint
        )
        if not is_fully_cached:
            self.log.debug("Cache miss for %s in %s", source_path, cache_directory)
        return CacheEntry(
            is_fully_cached=is_fully_cached,
            fingerprint=fingerprint,
            cached_artifact_path=cached_artifact,
            cached_fingerprint_path=cached_sidecar,
        )

    def restore(self, entry: CacheEntry, artifact_path: PathLike, fingerprint_path: PathLike) -> None:
        Path(artifact_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(entry.cached_artifact_path, artifact_path)
        shutil.copyfile(entry.cached_fingerprint_path, fingerprint_path)
        self.log.debug("Restored %s from %s", artifact_path, entry.cached_artifact_path)

    def write_fingerprint(self, fingerprint_path: PathLike, fingerprint: Optional[str], source_path: PathLike) -> None:
        if fingerprint is None:
            fingerprint = self.serialized_fingerprint(source_path)
        safe_write_text(fingerprint_path, fingerprint)
