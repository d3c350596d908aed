"""Wrappers around the external programs: latexmk, pdftocairo and pandoc."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .utils import file_stem

LATEXMK_ENV = "TEX2TREE_LATEXMK"
PDFTOCAIRO_ENV = "TEX2TREE_PDFTOCAIRO"
PANDOC_ENV = "TEX2TREE_PANDOC"

PANDOC_BASE_ARGS = ("-f", "latex-auto_identifiers", "-t", "html", "--gladtex", "--html-q-tags")


class Compiler(Protocol):
    def compile(self, directory: str, file_name: str, clean: bool = True) -> Optional[str]: ...

    def clean_aux_files(self, directory: str) -> None: ...


class PdfConverter(Protocol):
    def convert(self, directory: str, pdf_file_name: str) -> Optional[str]: ...


class MarkupConverter(Protocol):
    def convert(self, directory: str, text: str) -> Optional[str]: ...


def _command_output(exc: BaseException) -> str:
    stderr = getattr(exc, "stderr", None)
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return (stderr or str(exc)).strip()


class LatexMkCompiler:
    """Compile ``.tex`` files to PDF with ``latexmk -lualatex``."""

    def __init__(self, executable: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.executable = executable or os.environ.get(LATEXMK_ENV, "latexmk")
        self.log = logger or logging.getLogger("tex2tree.latexmk")

    def compile(self, directory: str, file_name: str, clean: bool = True) -> Optional[str]:
        try:
            subprocess.run(
                [self.executable, "-lualatex", file_name],
                cwd=directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                check=True,
            )
            result = os.path.abspath(os.path.join(directory, f"{file_stem(file_name)}.pdf"))
            if clean:
                self.clean_aux_files(directory)
            return result
        except (OSError, subprocess.SubprocessError) as exc:
            self.log.error("%s failed on %s: %s", self.executable, file_name, _command_output(exc))
            self._dump_log(directory, file_name)
            return None

    def clean_aux_files(self, directory: str) -> None:
        completed = subprocess.run(
            [self.executable, "-quiet", "-c"],
            cwd=directory,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
        )
        if completed.returncode != 0:
            self.log.warning("Unable to clean auxiliary files in %s (rc=%d)", directory, completed.returncode)

    def _dump_log(self, directory: str, file_name: str) -> None:
        log_file = Path(directory) / f"{file_stem(file_name)}.log"
        if not log_file.exists():
            return
        self.log.error("Here is the log (%s):", log_file)
        self.log.error(log_file.read_text(encoding="utf-8", errors="replace"))


class PdfToCairoConverter:
    """Convert PDF files to SVG with ``pdftocairo -svg``.

    Idempotent: an SVG already present beside the PDF is returned as is.
    """

    def __init__(self, executable: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.executable = executable or os.environ.get(PDFTOCAIRO_ENV, "pdftocairo")
        self.log = logger or logging.getLogger("tex2tree.pdftocairo")

    def convert(self, directory: str, pdf_file_name: str) -> Optional[str]:
        svg_file = f"{file_stem(pdf_file_name)}.svg"
        svg_path = os.path.abspath(os.path.join(directory, svg_file))
        if os.path.exists(svg_path):
            return svg_path
        try:
            subprocess.run(
                [self.executable, "-svg", pdf_file_name, svg_file],
                cwd=directory,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            self.log.error("%s failed on %s: %s", self.executable, pdf_file_name, _command_output(exc))
            return None
        return svg_path


class PandocConverter:
    """Convert LaTeX text to HTML with pandoc (math kept as ``<eq>`` elements)."""

    def __init__(
        self,
        header: str = "",
        extra_args: Sequence[str] = (),
        executable: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.header = f"{header}\n" if header else ""
        self.extra_args: List[str] = list(extra_args)
        self.executable = executable or os.environ.get(PANDOC_ENV, "pandoc")
        self.log = logger or logging.getLogger("tex2tree.pandoc")

    def command(self) -> List[str]:
        return [self.executable, *PANDOC_BASE_ARGS, *self.extra_args]

    def convert(self, directory: str, text: str) -> Optional[str]:
        try:
            completed = subprocess.run(
                self.command(),
                cwd=directory,
                input=self.header + text,
                capture_output=True,
                text=True,
                encoding="utf-8",
                env=os.environ.copy(),
            )
        except (OSError, subprocess.SubprocessError) as exc:
            self.log.error("%s could not be started: %s", self.executable, exc)
            return None
        if completed.returncode != 0:
            self.log.error("%s failed (rc=%d): %s", self.executable, completed.returncode, completed.stderr.strip())
            return None
        return completed.stdout
