"""Convert LaTeX documents to HTML trees with cached PDF/SVG builds."""

from .cache import ArtifactCache, CacheEntry
from .checksums import DEFAULT_INCLUDE_RULES, ChecksumCalculator, IncludeRule, serialize_fingerprint
from .commands import LatexMkCompiler, PandocConverter, PdfToCairoConverter
from .extractor import ImageExtractor, template_renderer
from .generators import BuildResult, PdfBuildResult, PdfBuilder, SvgBuilder
from .renderer import MathMLRenderer
from .svg import SvgOptimizer, force_unit
from .transformer import DocumentTransformer, ResolvedImageReference, TransformResult, resolve_from_assets_root
from .version import __version__

__all__ = [
    "ArtifactCache",
    "BuildResult",
    "CacheEntry",
    "ChecksumCalculator",
    "DEFAULT_INCLUDE_RULES",
    "DocumentTransformer",
    "ImageExtractor",
    "IncludeRule",
    "LatexMkCompiler",
    "MathMLRenderer",
    "PandocConverter",
    "PdfBuildResult",
    "PdfBuilder",
    "PdfToCairoConverter",
    "ResolvedImageReference",
    "SvgBuilder",
    "SvgOptimizer",
    "TransformResult",
    "__version__",
    "force_unit",
    "resolve_from_assets_root",
    "serialize_fingerprint",
    "template_renderer",
]
