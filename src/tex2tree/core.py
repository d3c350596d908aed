"""Core pipeline for tex2tree."""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .checksums import DEFAULT_INCLUDE_RULES, ChecksumCalculator, IncludeRule
from .commands import PandocConverter
from .extractor import DEFAULT_TEMPLATE, EXTRACTED_CONTENT_MACRO, ImageExtractor, template_renderer
from .generators import PdfBuilder, SvgBuilder
from .svg import force_unit
from .transformer import DocumentTransformer, TransformResult, resolve_from_assets_root
from .utils import file_stem, safe_write_text

LOG = logging.getLogger("tex2tree")


@dataclass
class ConversionConfig:
    source_path: Path
    out_dir: Path
    build: str = "html"
    assets_root: Optional[Path] = None
    extract_blocks: List[str] = field(default_factory=list)
    template: str = DEFAULT_TEMPLATE
    extract_dir: Optional[Path] = None
    cache_dir: Optional[Path] = None
    graphics_dirs: List[str] = field(default_factory=list)
    pandoc_header: str = ""
    rebuild: bool = True
    clean: bool = True
    optimize: bool = True
    svg_unit: str = "pt"
    verbose: bool = False
    debug: bool = False


def _resolve_log_level(verbose: bool, debug: bool) -> int:
    return logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)


def _configure_tex2tree_logger(level: int) -> None:
    LOG.setLevel(level)
    LOG.propagate = False
    if not LOG.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        handler.setLevel(level)
        LOG.addHandler(handler)
    else:
        for handler in LOG.handlers:
            handler.setLevel(level)
            if handler.formatter is None:
                handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))


def setup_logging(verbose: bool, debug: bool) -> None:
    level = _resolve_log_level(verbose, debug)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    _configure_tex2tree_logger(level)


def write_template_file(path: Path) -> None:
    safe_write_text(path, DEFAULT_TEMPLATE)


def load_template_file(path: Path) -> str:
    try:
        template = path.read_text(encoding="utf-8")
    except Exception as exc:
        raise ValueError(f"Unable to read template file {path}: {exc}") from exc
    if EXTRACTED_CONTENT_MACRO not in template:
        raise ValueError(f"Template file {path} does not contain the {EXTRACTED_CONTENT_MACRO} macro")
    return template


def build_calculator(config: ConversionConfig) -> ChecksumCalculator:
    return ChecksumCalculator([IncludeRule.include_graphics(config.graphics_dirs), *DEFAULT_INCLUDE_RULES])


def build_svg_builder(config: ConversionConfig, calculator: Optional[ChecksumCalculator] = None) -> SvgBuilder:
    return SvgBuilder(
        rebuild_if_exists=config.rebuild,
        clean=config.clean,
        calculator=calculator or build_calculator(config),
        optimize=config.optimize,
        plugins=[force_unit(config.svg_unit)],
    )


def build_transformer(config: ConversionConfig) -> DocumentTransformer:
    svg_builder = build_svg_builder(config)
    renderer = template_renderer(config.template, config.graphics_dirs)
    cache_dir = config.cache_dir

    def extracted_cache_directory(source_path: str, extracted_path: str) -> Optional[str]:
        if cache_dir is None:
            return None
        return os.path.join(cache_dir, file_stem(source_path))

    extractors = [
        ImageExtractor(
            block,
            renderer,
            directory=config.extract_dir,
            cache_directory_resolver=extracted_cache_directory,
            svg_builder=svg_builder,
        )
        for block in config.extract_blocks
    ]
    assets_root = config.assets_root or config.source_path.parent
    return DocumentTransformer(
        image_source_resolver=resolve_from_assets_root(
            assets_root,
            subdirectories=config.graphics_dirs,
            cache_directory_resolver=None if cache_dir is None else (lambda image_path: str(cache_dir)),
        ),
        image_extractors=extractors,
        converter=PandocConverter(header=config.pandoc_header),
        svg_builder=svg_builder,
    )


def build_manifest(config: ConversionConfig, html_path: Path, result: TransformResult) -> Dict[str, Any]:
    return {
        "source": config.source_path.as_posix(),
        "html": html_path.name,
        "images": [asdict(image) for image in result.resolved_images],
    }


def _copy_artifact(artifact_path: str, out_dir: Path) -> Path:
    target = out_dir / Path(artifact_path).name
    if Path(artifact_path).resolve() != target.resolve():
        shutil.copyfile(artifact_path, target)
    return target


def run_build_pipeline(config: ConversionConfig) -> Path:
    config.out_dir.mkdir(parents=True, exist_ok=True)
    cache_dir = None if config.cache_dir is None else str(config.cache_dir)
    if config.build == "pdf":
        builder = PdfBuilder(rebuild_if_exists=config.rebuild, clean=config.clean, calculator=build_calculator(config))
        result = builder.build(config.source_path, cache_dir)
    else:
        result = build_svg_builder(config).build(config.source_path, cache_dir)
    if result.artifact_path is None:
        raise RuntimeError(f"Unable to build {config.build.upper()} from {config.source_path}")
    target = _copy_artifact(result.artifact_path, config.out_dir)
    LOG.info("Built %s%s", target, " (was cached)" if result.was_cached else "")
    return target


def run_html_pipeline(config: ConversionConfig) -> Path:
    config.out_dir.mkdir(parents=True, exist_ok=True)
    transformer = build_transformer(config)
    result = transformer.transform(config.source_path)
    if not result.succeeded:
        raise RuntimeError(f"Unable to convert {config.source_path} to HTML")

    stem = file_stem(config.source_path)
    html_path = config.out_dir / f"{stem}.html"
    manifest_path = config.out_dir / f"{stem}.json"
    safe_write_text(html_path, str(result.tree))
    manifest = build_manifest(config, html_path, result)
    safe_write_text(manifest_path, json.dumps(manifest, ensure_ascii=False, indent=2) + "\n")
    LOG.info("Wrote %s (%d resolved images)", html_path, len(result.resolved_images))
    return html_path


def run_pipeline(config: ConversionConfig) -> Path:
    if config.build == "html":
        return run_html_pipeline(config)
    return run_build_pipeline(config)
