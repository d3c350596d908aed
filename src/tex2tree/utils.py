"""Small path and file helpers shared by the tex2tree modules."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

FILE_URL_PREFIX = "file://"

PathLike = Union[str, "os.PathLike[str]"]


def file_stem(path: PathLike) -> str:
    return Path(path).stem


def to_posix_path(path: PathLike) -> str:
    return os.fspath(path).replace("\\", "/")


def strip_file_url(value: str) -> str:
    if value.startswith(FILE_URL_PREFIX):
        return value[len(FILE_URL_PREFIX) :]
    return value


def read_text_lenient(path: PathLike) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


def safe_write_text(path: PathLike, text: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8", newline="\n")
