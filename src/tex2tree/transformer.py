"""LaTeX to HTML tree transformation: extraction, pandoc, image resolution, math."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .commands import MarkupConverter, PandocConverter
from .extractor import ImageExtractor
from .generators import SvgBuilder
from .renderer import MathMLRenderer, MathRenderer
from .utils import FILE_URL_PREFIX, PathLike, file_stem, read_text_lenient, strip_file_url, to_posix_path

LOG = logging.getLogger("tex2tree.transformer")

IMAGE_EXTENSIONS = ("", ".svg", ".tex", ".pdf", ".png", ".jpeg", ".jpg", ".gif")
MATH_TAG = "eq"
DISPLAY_MATH_ENV = "displaymath"


@dataclass
class ResolvedImageReference:
    original_reference: str
    resolved_source_path: str
    resolved_public_path: str


@dataclass
class TransformResult:
    tree: Optional[Any] = None
    resolved_images: List[ResolvedImageReference] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.tree is not None


ImageSourceResolver = Callable[["DocumentTransformer", str, str], Optional[ResolvedImageReference]]


def parse_html(markup: str) -> Any:
    try:
        from bs4 import BeautifulSoup  # type: ignore
    except Exception as exc:
        raise RuntimeError(f"beautifulsoup4 not available: {exc}") from exc
    return BeautifulSoup(markup, "html.parser")


class DocumentTransformer:
    def __init__(
        self,
        image_source_resolver: Optional[ImageSourceResolver] = None,
        image_extractors: Iterable[ImageExtractor] = (),
        math_renderer: Optional[MathRenderer] = None,
        converter: Optional[MarkupConverter] = None,
        svg_builder: Optional[SvgBuilder] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.image_source_resolver = image_source_resolver
        self.image_extractors: List[ImageExtractor] = list(image_extractors)
        self.math_renderer: MathRenderer = math_renderer or MathMLRenderer()
        self.converter: MarkupConverter = converter or PandocConverter(logger=logger)
        self.log = logger or LOG
        if svg_builder is None:
            svg_builder = self.image_extractors[0].svg_builder if self.image_extractors else SvgBuilder(logger=logger)
        self.svg_builder = svg_builder

    def extractor_directories(self) -> List[str]:
        return [extractor.directory for extractor in self.image_extractors if extractor.directory is not None]

    def transform(self, source_path: PathLike, source_text: Optional[str] = None) -> TransformResult:
        source = os.path.abspath(os.fspath(source_path))
        content = read_text_lenient(source) if source_text is None else source_text

        for extractor in self.image_extractors:
            content = extractor.extract_images(content, source)

        markup = self.converter.convert(os.path.dirname(source), content)
        if markup is None:
            self.log.error("Unable to convert %s to HTML", source)
            return TransformResult()

        tree = parse_html(markup)
        resolved_images = self.replace_images(tree, source)
        self.render_math(tree)
        return TransformResult(tree, resolved_images)

    def replace_images(self, tree: Any, source_path: str) -> List[ResolvedImageReference]:
        resolved_images: List[ResolvedImageReference] = []
        if self.image_source_resolver is None:
            return resolved_images
        for image in tree.find_all("img"):
            src = image.get("src")
            if not src:
                continue
            resolved = self.image_source_resolver(self, source_path, src)
            if resolved is None:
                self.log.warning("Unresolved image %s in %s", src, source_path)
                continue
            image["src"] = resolved.resolved_public_path
            image["alt"] = file_stem(src)
            resolved_images.append(resolved)
            self.log.info("Resolved image %s to %s in %s.", src, resolved.resolved_public_path, source_path)
        return resolved_images

    def render_math(self, tree: Any) -> None:
        for element in tree.find_all(MATH_TAG):
            display_mode = element.get("env") == DISPLAY_MATH_ENV
            try:
                rendered = self.math_renderer.render(element.get_text(), display_mode)
            except RuntimeError as exc:
                self.log.warning("%s", exc)
                continue
            nodes = list(parse_html(rendered).contents)
            if nodes:
                element.replace_with(*nodes)
            else:
                element.decompose()


def resolve_from_assets_root(
    assets_root: PathLike,
    subdirectories: Sequence[str] = (),
    cache_directory_resolver: Optional[Callable[[str], Optional[str]]] = None,
    public_path: Optional[Callable[[str], str]] = None,
) -> ImageSourceResolver:
    """Image resolver looking ``src`` up below ``assets_root``.

    ``file://`` references (extracted pictures) are used directly. Other
    references are probed in the assets root, the document directory,
    ``subdirectories`` and the fixed extractor directories, with each of
    ``IMAGE_EXTENSIONS``. ``.tex`` files are built to SVG and ``.pdf`` files
    converted to SVG. The public path defaults to ``/<path relative to the
    parent of assets_root>``.
    """
    root = os.path.abspath(os.fspath(assets_root))

    def to_public_path(image_path: str) -> str:
        if public_path is not None:
            return public_path(image_path)
        return "/" + to_posix_path(os.path.relpath(image_path, os.path.dirname(root)))

    def to_image(transformer: DocumentTransformer, file_path: str) -> Optional[str]:
        extension = os.path.splitext(file_path)[1]
        if extension == ".tex":
            cache_directory = cache_directory_resolver(file_path) if cache_directory_resolver else None
            return transformer.svg_builder.build(file_path, cache_directory).artifact_path
        if extension == ".pdf":
            return transformer.svg_builder.convert_pdf(file_path)
        return file_path

    def resolve_file(transformer: DocumentTransformer, src: str, file_path: str) -> Optional[ResolvedImageReference]:
        image_path = to_image(transformer, file_path)
        if image_path is None:
            return None
        return ResolvedImageReference(src, image_path, to_public_path(image_path))

    def resolver(transformer: DocumentTransformer, source_path: str, src: str) -> Optional[ResolvedImageReference]:
        if src.startswith(FILE_URL_PREFIX):
            file_path = os.path.abspath(strip_file_url(src))
            if not os.path.isfile(file_path):
                return None
            return resolve_file(transformer, src, file_path)

        directories = ["", os.path.dirname(source_path), *subdirectories, *transformer.extractor_directories()]
        for directory in directories:
            for extension in IMAGE_EXTENSIONS:
                file_path = os.path.abspath(os.path.join(root, directory, src + extension))
                if not os.path.isfile(file_path):
                    continue
                resolved = resolve_file(transformer, src, file_path)
                if resolved is not None:
                    return resolved
        return None

    return resolver
