"""Command-line interface for tex2tree."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .version import __version__


def _get_usage() -> str:
    return (
        f"tex2tree {__version__}\n"
        "Usage:\n"
        "  tex2tree [--help] [--version|--ver] [--write-template PATH]\n"
        "  tex2tree --source FILE --to-dir TO_DIR [options]\n\n"
        "Options:\n"
        "  --build html|pdf|svg         Output to build (default: html)\n"
        "  --assets-root DIR            Directory images are resolved against (default: source directory)\n"
        "  --extract BLOCK              Extract BLOCK environments to SVG (repeatable, e.g. tikzpicture)\n"
        "  --template PATH              Standalone template for extracted blocks\n"
        "  --write-template PATH        Write the default extraction template and exit\n"
        "  --extract-dir DIR            Directory receiving extracted pictures\n"
        "  --cache-dir DIR              Directory holding previously built PDFs and checksums\n"
        "  --graphics-dir DIR           Extra \\includegraphics directory (repeatable)\n"
        "  --pandoc-header TEXT         LaTeX prepended to the source given to pandoc\n"
        "  --no-rebuild                 Keep already built PDF/SVG files\n"
        "  --no-clean                   Keep latexmk auxiliary files\n"
        "  --no-optimize                Skip SVG optimization\n"
        "  --svg-unit UNIT              Unit forced on SVG width/height (default: pt)\n"
        "  --verbose                    Verbose progress logs\n"
        "  --debug                      Debug logs"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--ver", action="store_true")
    parser.add_argument("--source", help="LaTeX source file")
    parser.add_argument("--to-dir", help="Output directory")
    parser.add_argument("--build", default="html", help="Output to build: html, pdf or svg")
    parser.add_argument("--assets-root", help="Directory images are resolved against")
    parser.add_argument("--extract", action="append", default=[], help="Environment name to extract as SVG")
    parser.add_argument("--template", help="Template file containing {graphicspath} and {extractedContent}")
    parser.add_argument("--write-template", help="Write the default extraction template to the given path and exit")
    parser.add_argument("--extract-dir", help="Directory receiving extracted pictures")
    parser.add_argument("--cache-dir", help="Directory holding previously built PDFs and checksums")
    parser.add_argument("--graphics-dir", action="append", default=[], help="Extra \\includegraphics directory")
    parser.add_argument("--pandoc-header", default="", help="LaTeX prepended to the pandoc input")
    parser.add_argument("--no-rebuild", action="store_true", help="Keep already built PDF/SVG files")
    parser.add_argument("--no-clean", action="store_true", help="Keep latexmk auxiliary files")
    parser.add_argument("--no-optimize", action="store_true", help="Skip SVG optimization")
    parser.add_argument("--svg-unit", default="pt", help="Unit forced on SVG width/height (default: pt)")
    parser.add_argument("--verbose", action="store_true", help="Verbose progress logs")
    parser.add_argument("--debug", action="store_true", help="Debug logs")
    return parser


def _validate_args(args: argparse.Namespace) -> str | None:
    if args.build not in ("html", "pdf", "svg"):
        return f"Invalid value for --build: {args.build} (expected html, pdf or svg)"
    if not args.svg_unit or not args.svg_unit.isalpha():
        return f"Invalid value for --svg-unit: {args.svg_unit}"
    return None


def _optional_path(value: str | None) -> Path | None:
    if not value:
        return None
    return Path(value).expanduser().resolve()


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(_get_usage())
        return 2

    validation_error = _validate_args(args)
    if validation_error:
        print(validation_error, file=sys.stderr)
        return 6

    if not argv or args.help:
        print(_get_usage())
        return 0

    if args.version or args.ver:
        print(__version__)
        return 0

    try:
        from tex2tree import core
    except Exception as exc:
        print(f"Unable to import tex2tree core: {exc}", file=sys.stderr)
        return 6

    core.setup_logging(args.verbose, args.debug)

    if args.write_template:
        target = Path(args.write_template).expanduser().resolve()
        try:
            core.write_template_file(target)
        except OSError as exc:
            print(f"Unable to write template file {target}: {exc}", file=sys.stderr)
            return 6
        if args.verbose:
            print(f"Default template written to {target}")
        return 0

    if not args.source or not args.to_dir:
        print(_get_usage())
        print("Options --source and --to-dir are required unless --write-template or --version/--ver is used", file=sys.stderr)
        return 6

    source_path = Path(args.source).expanduser().resolve()
    to_dir = Path(args.to_dir).expanduser().resolve()

    if not source_path.exists() or not source_path.is_file():
        print(f"Source file not found: {source_path}", file=sys.stderr)
        return 6

    assets_root = _optional_path(args.assets_root)
    if assets_root is not None and not assets_root.is_dir():
        print(f"Assets root directory not found: {assets_root}", file=sys.stderr)
        return 6

    if to_dir.exists() and not to_dir.is_dir():
        print(f"Output path is not a directory: {to_dir}", file=sys.stderr)
        return 7

    template = core.DEFAULT_TEMPLATE
    if args.template:
        template_path = Path(args.template).expanduser().resolve()
        if not template_path.exists() or not template_path.is_file():
            print(f"Template file not found: {template_path}", file=sys.stderr)
            return 6
        try:
            template = core.load_template_file(template_path)
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return 6

    config = core.ConversionConfig(
        source_path=source_path,
        out_dir=to_dir,
        build=args.build,
        assets_root=assets_root,
        extract_blocks=list(args.extract),
        template=template,
        extract_dir=_optional_path(args.extract_dir),
        cache_dir=_optional_path(args.cache_dir),
        graphics_dirs=[str(_optional_path(directory)) for directory in args.graphics_dir],
        pandoc_header=args.pandoc_header,
        rebuild=not args.no_rebuild,
        clean=not args.no_clean,
        optimize=not args.no_optimize,
        svg_unit=args.svg_unit,
        verbose=bool(args.verbose),
        debug=bool(args.debug),
    )

    try:
        output_path = core.run_pipeline(config)
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 9
    except OSError as exc:
        print(f"I/O failure while processing {source_path}: {exc}", file=sys.stderr)
        return 7

    if args.verbose:
        print(f"Output written to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
