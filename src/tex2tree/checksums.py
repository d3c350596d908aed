"""Content fingerprints of LaTeX documents and their included files."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .utils import PathLike, file_stem, read_text_lenient

LOG = logging.getLogger("tex2tree.checksums")

CHECKSUMS_EXTENSION = ".checksums"

Fingerprint = Dict[str, Union[str, "Fingerprint"]]

_OPTIONS_CHARS = r"A-Za-zÀ-ÖØ-öø-ÿ\d, =.\\-"
_TARGET_CHARS = r"A-Za-zÀ-ÖØ-öø-ÿ\d/, .\-:_"

GRAPHICS_EXTENSIONS = (".pdf", ".svg", ".png", ".jpeg", ".jpg")


@lru_cache(maxsize=None)
def _directive_pattern(directive: str) -> "re.Pattern[str]":
    return re.compile(
        "\\\\" + re.escape(directive) + rf"(\[[{_OPTIONS_CHARS}]*\])?\{{([{_TARGET_CHARS}]+)\}}",
        re.DOTALL,
    )


@dataclass(frozen=True)
class IncludeRule:
    """One way a LaTeX source references another file (``\\input{...}``, ...)."""

    directive: str
    directories: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = (".tex",)
    excludes: frozenset = field(default_factory=frozenset)
    target_is_directory: bool = False
    resolves_recursively: bool = True

    def __post_init__(self) -> None:
        # Accept any iterable from callers while keeping the rule hashable.
        object.__setattr__(self, "directories", tuple(self.directories))
        object.__setattr__(self, "extensions", tuple(self.extensions))
        object.__setattr__(self, "excludes", frozenset(self.excludes))

    @property
    def pattern(self) -> "re.Pattern[str]":
        return _directive_pattern(self.directive)

    def key_for(self, target: str) -> str:
        return f"{self.directive}:{target}"

    def candidate_directories(self, base_directory: str, file_directory: str) -> List[Optional[str]]:
        directories: List[Optional[str]] = [None, base_directory]
        directories.extend(os.path.join(base_directory, directory) for directory in self.directories)
        directories.extend(self.directories)
        if file_directory != base_directory:
            directories.append(file_directory)
        return directories

    @classmethod
    def include_graphics(cls, directories: Iterable[str] = ()) -> "IncludeRule":
        return cls(
            "includegraphics",
            directories=tuple(directories),
            extensions=GRAPHICS_EXTENSIONS,
            resolves_recursively=False,
        )


DEFAULT_INCLUDE_RULES: Tuple[IncludeRule, ...] = (
    IncludeRule("include"),
    IncludeRule("input"),
)


def generate_checksum(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def serialize_fingerprint(fingerprint: Fingerprint) -> str:
    """Canonical form written to sidecar files.

    Keys keep their first-insertion order. Cache lookups compare this string
    verbatim, so the same entries in another order are a different fingerprint.
    """
    return json.dumps(fingerprint, ensure_ascii=False, separators=(",", ":"))


def _resolve(directory: Optional[str], target: str) -> str:
    if directory is None:
        return target
    return os.path.abspath(os.path.join(directory, target))


def _probe_extensions(candidate: str, extensions: Sequence[str]) -> Optional[str]:
    for extension in ("", *extensions):
        path = f"{candidate}{extension}"
        if os.path.isfile(path):
            return path
    return None


class ChecksumCalculator:
    def __init__(self, include_rules: Optional[Iterable[IncludeRule]] = None, logger: Optional[logging.Logger] = None):
        self.include_rules: Tuple[IncludeRule, ...] = (
            DEFAULT_INCLUDE_RULES if include_rules is None else tuple(include_rules)
        )
        self.log = logger or LOG

    def compute_fingerprint(self, source_path: PathLike, base_directory: Optional[PathLike] = None) -> Fingerprint:
        """Fingerprint ``source_path`` and everything its include rules resolve.

        ``base_directory`` defaults to the directory of ``source_path`` and is kept
        unchanged while recursing into included files. A file already being
        fingerprinted further up the include chain is skipped like an unresolved
        target.
        """
        source = os.fspath(source_path)
        file_directory = os.path.dirname(os.path.abspath(source))
        base = file_directory if base_directory is None else os.fspath(base_directory)
        return self._fingerprint(source, base, frozenset())

    def _fingerprint(self, source: str, base_directory: str, active: FrozenSet[str]) -> Fingerprint:
        active = active | {os.path.abspath(source)}
        file_directory = os.path.dirname(os.path.abspath(source))
        content = read_text_lenient(source)
        fingerprint: Fingerprint = {f"file:{file_stem(source)}": generate_checksum(content)}
        for rule in self.include_rules:
            self._append_rule(rule, content, base_directory, file_directory, fingerprint, active)
        return fingerprint

    def _append_rule(
        self,
        rule: IncludeRule,
        content: str,
        base_directory: str,
        file_directory: str,
        fingerprint: Fingerprint,
        active: FrozenSet[str],
    ) -> None:
        for match in rule.pattern.finditer(content):
            target = match.group(2)
            key = rule.key_for(target)
            if target in rule.excludes or key in fingerprint:
                continue
            for directory in rule.candidate_directories(base_directory, file_directory):
                candidate = _resolve(directory, target)
                if rule.target_is_directory:
                    if os.path.isdir(candidate):
                        fingerprint[key] = self._directory_fingerprint(rule, candidate, base_directory, active)
                        break
                    continue
                resolved = _probe_extensions(candidate, rule.extensions)
                if resolved is None:
                    continue
                if self._is_cyclic(rule, resolved, active):
                    self.log.debug("Cyclic \\%s{%s}: not part of the fingerprint", rule.directive, target)
                else:
                    fingerprint[key] = self._entry_for(rule, resolved, base_directory, active)
                break
            else:
                self.log.debug("Unresolved \\%s{%s}: not part of the fingerprint", rule.directive, target)

    def _directory_fingerprint(
        self, rule: IncludeRule, directory: str, base_directory: str, active: FrozenSet[str]
    ) -> Fingerprint:
        entries: Fingerprint = {}
        for name in sorted(os.listdir(directory)):
            child = os.path.join(directory, name)
            if not os.path.isfile(child):
                continue
            if self._is_cyclic(rule, child, active):
                self.log.debug("Cyclic \\%s entry %s: not part of the fingerprint", rule.directive, child)
                continue
            entries[f"sub:{file_stem(name)}"] = self._entry_for(rule, child, base_directory, active)
        return entries

    @staticmethod
    def _is_cyclic(rule: IncludeRule, path: str, active: FrozenSet[str]) -> bool:
        return rule.resolves_recursively and os.path.abspath(path) in active

    def _entry_for(
        self, rule: IncludeRule, path: str, base_directory: str, active: FrozenSet[str]
    ) -> Union[str, Fingerprint]:
        if rule.resolves_recursively:
            return self._fingerprint(path, base_directory, active)
        return generate_checksum(read_text_lenient(path))
