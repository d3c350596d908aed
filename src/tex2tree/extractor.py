"""Extraction of embedded LaTeX pictures (tikzpicture, ...) into standalone SVGs."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Callable, Iterable, Optional

from .generators import SvgBuilder
from .utils import FILE_URL_PREFIX, PathLike, safe_write_text, to_posix_path

LOG = logging.getLogger("tex2tree.extractor")

ContentRenderer = Callable[[str, str], str]
DirectoryResolver = Callable[[str, str], str]
CacheDirectoryResolver = Callable[[str, str], Optional[str]]

GRAPHICSPATH_MACRO = "{graphicspath}"
EXTRACTED_CONTENT_MACRO = "{extractedContent}"

DEFAULT_TEMPLATE = (
    "\\documentclass[tikz]{standalone}\n"
    "{graphicspath}\n"
    "\\begin{document}\n"
    "{extractedContent}\n"
    "\\end{document}\n"
)


def template_renderer(template: str = DEFAULT_TEMPLATE, graphics_directories: Iterable[str] = ()) -> ContentRenderer:
    """Content renderer filling ``{graphicspath}`` and ``{extractedContent}`` in ``template``."""
    directories = list(graphics_directories)
    graphicspath = ""
    if directories:
        graphicspath = "\\graphicspath{" + "\n".join("{" + d.replace("\\", "\\\\") + "}" for d in directories) + "}"

    def render(extracted_path: str, block: str) -> str:
        return template.replace(GRAPHICSPATH_MACRO, graphicspath).replace(EXTRACTED_CONTENT_MACRO, block)

    return render


def file_reference(artifact_path: PathLike) -> str:
    return "\\includegraphics{" + FILE_URL_PREFIX + to_posix_path(artifact_path) + "}"


class ImageExtractor:
    """Replace every ``\\begin{block}...\\end{block}`` span by a built SVG reference.

    Each span is written to ``<block>-<n>.tex`` (``directory`` when given, else
    ``directory_resolver(source_path, file_name)``, else the source directory),
    built with ``svg_builder`` and the temporary source is removed afterwards.
    Spans whose build fails are kept verbatim.
    """

    def __init__(
        self,
        block_name: str,
        content_renderer: ContentRenderer,
        directory: Optional[PathLike] = None,
        directory_resolver: Optional[DirectoryResolver] = None,
        cache_directory_resolver: Optional[CacheDirectoryResolver] = None,
        svg_builder: Optional[SvgBuilder] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.block_name = block_name
        self.content_renderer = content_renderer
        self.directory = None if directory is None else os.path.abspath(os.fspath(directory))
        self.directory_resolver = directory_resolver
        self.cache_directory_resolver = cache_directory_resolver
        self.log = logger or LOG
        self.svg_builder = svg_builder or SvgBuilder(logger=logger)
        self.pattern = re.compile(
            r"\\begin\{" + re.escape(block_name) + r"\}([\s\S]*?)\\end\{" + re.escape(block_name) + r"\}"
        )

    def extracted_file_name(self, index: int) -> str:
        return f"{self.block_name}-{index + 1}.tex"

    def extracted_directory(self, source_path: str, file_name: str) -> str:
        if self.directory is not None:
            return self.directory
        if self.directory_resolver is not None:
            return os.path.abspath(self.directory_resolver(source_path, file_name))
        return os.path.dirname(os.path.abspath(source_path))

    def extract_images(self, source_text: str, source_path: PathLike) -> str:
        source = os.fspath(source_path)
        result = source_text
        count = 0
        # Offsets come from the untouched input; replacements go to ``result``.
        for index, match in enumerate(self.pattern.finditer(source_text)):
            count += 1
            block = match.group(0)
            file_name = self.extracted_file_name(index)
            extracted_path = os.path.join(self.extracted_directory(source, file_name), file_name)
            safe_write_text(extracted_path, self.content_renderer(extracted_path, block))

            cache_directory = None
            if self.cache_directory_resolver is not None:
                cache_directory = self.cache_directory_resolver(source, extracted_path)
            try:
                build_result = self.svg_builder.build(extracted_path, cache_directory)
            finally:
                Path(extracted_path).unlink(missing_ok=True)

            if build_result.artifact_path is None:
                self.log.warning("%s[%d] from %s could not be built; keeping it as is.", self.block_name, index + 1, source)
                continue

            cached_info = " (was cached)" if build_result.was_cached else ""
            self.log.info(
                "%s[%d] -> %s from %s%s.", self.block_name, index + 1, build_result.artifact_path, source, cached_info
            )
            result = result.replace(block, file_reference(build_result.artifact_path), 1)

        if count > 0:
            self.log.info("Extracted %d images of type %s from %s.", count, self.block_name, source)
        return result
