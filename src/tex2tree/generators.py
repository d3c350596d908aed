"""PDF and SVG builders backed by the fingerprint cache."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
from xml.etree import ElementTree

from .cache import ArtifactCache, sidecar_path
from .checksums import ChecksumCalculator
from .commands import Compiler, LatexMkCompiler, PdfConverter, PdfToCairoConverter
from .svg import SvgOptimizer, SvgPlugin
from .utils import PathLike, file_stem


@dataclass
class BuildResult:
    artifact_path: Optional[str] = None
    was_cached: bool = False


@dataclass
class PdfBuildResult(BuildResult):
    fingerprint_path: Optional[str] = None


class PdfBuilder:
    """Build ``<stem>.pdf`` next to a LaTeX source, reusing previous builds.

    With ``rebuild_if_exists`` false, an existing PDF is kept (its sidecar is
    written if missing). Otherwise a matching fingerprint in ``cache_directory``
    restores the cached PDF, and only then is the compiler invoked.
    """

    def __init__(
        self,
        rebuild_if_exists: bool = True,
        clean: bool = True,
        calculator: Optional[ChecksumCalculator] = None,
        compiler: Optional[Compiler] = None,
        cache: Optional[ArtifactCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.rebuild_if_exists = rebuild_if_exists
        self.clean = clean
        self.log = logger or logging.getLogger("tex2tree.pdf")
        self.calculator = calculator or ChecksumCalculator(logger=logger)
        self.cache = cache or ArtifactCache(self.calculator, logger=logger)
        self.compiler: Compiler = compiler or LatexMkCompiler(logger=logger)

    def build(
        self,
        source_path: PathLike,
        cache_directory: Optional[PathLike] = None,
        cache_key_name: Optional[str] = None,
    ) -> PdfBuildResult:
        source = os.path.abspath(os.fspath(source_path))
        directory = os.path.dirname(source)
        pdf_path = os.path.join(directory, f"{file_stem(source)}.pdf")
        fingerprint_path = sidecar_path(pdf_path)

        if os.path.exists(pdf_path) and not self.rebuild_if_exists:
            if not os.path.exists(fingerprint_path):
                self.log.info("Writing missing fingerprint for %s", pdf_path)
                self.cache.write_fingerprint(fingerprint_path, None, source)
            return PdfBuildResult(pdf_path, True, fingerprint_path)

        entry = self.cache.lookup(source, cache_directory, cache_key_name) if cache_directory else None
        if entry is not None and entry.is_fully_cached:
            self.cache.restore(entry, pdf_path, fingerprint_path)
            self.log.info("Restored %s from cache %s", pdf_path, cache_directory)
            return PdfBuildResult(pdf_path, True, fingerprint_path)

        built = self.compiler.compile(directory, os.path.basename(source), self.clean)
        if built is None:
            self.log.warning("Unable to build a PDF from %s", source)
            return PdfBuildResult()

        self.cache.write_fingerprint(fingerprint_path, entry.fingerprint if entry else None, source)
        self.log.debug("Built %s", built)
        return PdfBuildResult(built, False, fingerprint_path)


class SvgBuilder:
    def __init__(
        self,
        rebuild_if_exists: bool = True,
        clean: bool = True,
        calculator: Optional[ChecksumCalculator] = None,
        optimize: bool = True,
        plugins: Optional[Iterable[SvgPlugin]] = None,
        optimizer: Optional[SvgOptimizer] = None,
        pdf_builder: Optional[PdfBuilder] = None,
        converter: Optional[PdfConverter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.rebuild_if_exists = rebuild_if_exists
        self.optimize = optimize
        self.log = logger or logging.getLogger("tex2tree.svg")
        self.pdf_builder = pdf_builder or PdfBuilder(
            rebuild_if_exists=rebuild_if_exists,
            clean=clean,
            calculator=calculator,
            logger=logger,
        )
        self.converter: PdfConverter = converter or PdfToCairoConverter(logger=logger)
        self.optimizer = optimizer or SvgOptimizer(plugins, logger=logger)

    def build(
        self,
        source_path: PathLike,
        cache_directory: Optional[PathLike] = None,
        cache_key_name: Optional[str] = None,
    ) -> BuildResult:
        source = os.path.abspath(os.fspath(source_path))
        svg_path = os.path.join(os.path.dirname(source), f"{file_stem(source)}.svg")

        if os.path.exists(svg_path) and not self.rebuild_if_exists:
            return BuildResult(svg_path, True)

        pdf_result = self.pdf_builder.build(source, cache_directory, cache_key_name)
        if pdf_result.artifact_path is None:
            return BuildResult()

        if pdf_result.was_cached and os.path.exists(svg_path):
            return BuildResult(svg_path, True)
        if not pdf_result.was_cached and os.path.exists(svg_path):
            # The converter never overwrites its output.
            os.remove(svg_path)

        converted = self.convert_pdf(pdf_result.artifact_path)
        if converted is None:
            return BuildResult()
        return BuildResult(converted, pdf_result.was_cached)

    def convert_pdf(self, pdf_path: PathLike) -> Optional[str]:
        pdf = os.path.abspath(os.fspath(pdf_path))
        svg_path = self.converter.convert(os.path.dirname(pdf), os.path.basename(pdf))
        if svg_path is None:
            self.log.warning("Unable to convert %s to SVG", pdf)
            return None
        if self.optimize:
            self._optimize_file(svg_path)
        return svg_path

    def _optimize_file(self, svg_path: str) -> None:
        target = Path(svg_path)
        try:
            optimized = self.optimizer.optimize(target.read_bytes())
        except ElementTree.ParseError as exc:
            self.log.warning("Unable to optimize %s: %s", svg_path, exc)
            return
        target.write_bytes(optimized)
