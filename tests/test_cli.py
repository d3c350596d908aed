import json
import re
from pathlib import Path

import tex2tree.cli as cli
import tex2tree.core as core
import tex2tree.generators as generators
from tex2tree.checksums import serialize_fingerprint


class _FakePandoc:
    def __init__(self, header="", extra_args=(), executable=None, logger=None):
        self.header = f"{header}\n" if header else ""

    def convert(self, directory, text):
        body = re.sub(r"\\includegraphics(\[[^\]]*\])?\{([^}]*)\}", r'<img src="\2"/>', text.strip())
        return f"<p>{body}</p>\n"


class _FailingPandoc(_FakePandoc):
    def convert(self, directory, text):
        return None


class _FakeLatexMk:
    calls = []

    def __init__(self, executable=None, logger=None):
        pass

    def compile(self, directory, file_name, clean=True):
        _FakeLatexMk.calls.append(file_name)
        pdf_path = Path(directory) / f"{Path(file_name).stem}.pdf"
        pdf_path.write_text("%PDF fake", encoding="utf-8")
        return str(pdf_path)

    def clean_aux_files(self, directory):
        pass


class _FakePdfToCairo:
    def __init__(self, executable=None, logger=None):
        pass

    def convert(self, directory, pdf_file_name):
        svg_path = Path(directory) / f"{Path(pdf_file_name).stem}.svg"
        if not svg_path.exists():
            svg_path.write_text('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 4 2"/>', encoding="utf-8")
        return str(svg_path)


def _use_fake_tools(monkeypatch):
    _FakeLatexMk.calls = []
    monkeypatch.setattr(core, "PandocConverter", _FakePandoc)
    monkeypatch.setattr(generators, "LatexMkCompiler", _FakeLatexMk)
    monkeypatch.setattr(generators, "PdfToCairoConverter", _FakePdfToCairo)


def _create_source(tmp_path: Path, text: str = "Hello World!\n", name: str = "simple.tex") -> Path:
    source_dir = tmp_path / "src"
    source_dir.mkdir(parents=True, exist_ok=True)
    source = source_dir / name
    source.write_text(text, encoding="utf-8")
    return source


def test_version_flags_print_version(capsys):
    assert cli.main(["--version"]) == 0
    out = capsys.readouterr().out.strip()
    assert out == cli.__version__

    assert cli.main(["--ver"]) == 0
    out = capsys.readouterr().out.strip()
    assert out == cli.__version__


def test_help_and_no_args_show_usage(capsys):
    assert cli.main([]) == 0
    out = capsys.readouterr().out
    assert "Usage:" in out
    assert "--source FILE --to-dir TO_DIR" in out

    assert cli.main(["--help"]) == 0
    assert "Usage:" in capsys.readouterr().out


def test_unknown_option_prints_usage(capsys):
    assert cli.main(["--bogus"]) == 2
    assert "Usage:" in capsys.readouterr().out


def test_invalid_build_and_unit_are_rejected(tmp_path, capsys):
    source = _create_source(tmp_path)

    assert cli.main(["--source", str(source), "--to-dir", str(tmp_path / "out"), "--build", "docx"]) == 6
    assert "Invalid value for --build" in capsys.readouterr().err

    assert cli.main(["--source", str(source), "--to-dir", str(tmp_path / "out"), "--svg-unit", "12"]) == 6
    assert "Invalid value for --svg-unit" in capsys.readouterr().err


def test_missing_required_options(tmp_path, capsys):
    assert cli.main(["--verbose"]) == 6
    assert "--source and --to-dir are required" in capsys.readouterr().err

    assert cli.main(["--source", str(tmp_path / "missing.tex"), "--to-dir", str(tmp_path / "out")]) == 6
    assert "Source file not found" in capsys.readouterr().err


def test_invalid_assets_root_and_output_path(tmp_path, capsys):
    source = _create_source(tmp_path)
    args = ["--source", str(source)]

    assert cli.main([*args, "--to-dir", str(tmp_path / "out"), "--assets-root", str(tmp_path / "nope")]) == 6
    assert "Assets root directory not found" in capsys.readouterr().err

    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x", encoding="utf-8")
    assert cli.main([*args, "--to-dir", str(not_a_dir)]) == 7
    assert "Output path is not a directory" in capsys.readouterr().err


def test_write_template_and_load_it_back(tmp_path):
    template_path = tmp_path / "templates" / "picture.tex"

    assert cli.main(["--write-template", str(template_path)]) == 0
    assert template_path.read_text(encoding="utf-8") == core.DEFAULT_TEMPLATE
    assert core.load_template_file(template_path) == core.DEFAULT_TEMPLATE


def test_template_without_content_macro_is_rejected(tmp_path, capsys):
    source = _create_source(tmp_path)
    template_path = tmp_path / "bad-template.tex"
    template_path.write_text("\\documentclass{standalone}\n", encoding="utf-8")

    code = cli.main(["--source", str(source), "--to-dir", str(tmp_path / "out"), "--template", str(template_path)])

    assert code == 6
    assert "{extractedContent}" in capsys.readouterr().err


def test_convert_html_creates_outputs(monkeypatch, tmp_path, capsys):
    _use_fake_tools(monkeypatch)
    source = _create_source(tmp_path)
    out_dir = tmp_path / "out"

    assert cli.main(["--source", str(source), "--to-dir", str(out_dir), "--verbose"]) == 0

    assert (out_dir / "simple.html").read_text(encoding="utf-8") == "<p>Hello World!</p>\n"
    manifest = json.loads((out_dir / "simple.json").read_text(encoding="utf-8"))
    assert manifest == {"source": source.resolve().as_posix(), "html": "simple.html", "images": []}
    assert f"Output written to {out_dir.resolve() / 'simple.html'}" in capsys.readouterr().out


def test_convert_html_resolves_images_and_extracts_pictures(monkeypatch, tmp_path):
    _use_fake_tools(monkeypatch)
    assets_root = tmp_path / "graphics"
    assets_root.mkdir()
    (assets_root / "test.png").write_bytes(b"\x89PNG")
    source = _create_source(
        tmp_path,
        "\\includegraphics[width=5cm]{test}\n\\begin{tikzpicture}\\draw (0,0);\\end{tikzpicture}\n",
        name="complex.tex",
    )
    out_dir = tmp_path / "out"

    code = cli.main(
        [
            "--source",
            str(source),
            "--to-dir",
            str(out_dir),
            "--assets-root",
            str(assets_root),
            "--extract",
            "tikzpicture",
            "--extract-dir",
            str(assets_root / "extracted"),
        ]
    )

    assert code == 0
    html = (out_dir / "complex.html").read_text(encoding="utf-8")
    assert 'src="/graphics/test.png"' in html
    assert 'alt="test"' in html
    assert 'src="/graphics/extracted/tikzpicture-1.svg"' in html
    manifest = json.loads((out_dir / "complex.json").read_text(encoding="utf-8"))
    assert [image["resolved_public_path"] for image in manifest["images"]] == [
        "/graphics/test.png",
        "/graphics/extracted/tikzpicture-1.svg",
    ]
    assert _FakeLatexMk.calls == ["tikzpicture-1.tex"]
    assert not (assets_root / "extracted" / "tikzpicture-1.tex").exists()
    assert (assets_root / "extracted" / "tikzpicture-1.svg").exists()


def test_conversion_failure_exit_code(monkeypatch, tmp_path, capsys):
    _use_fake_tools(monkeypatch)
    monkeypatch.setattr(core, "PandocConverter", _FailingPandoc)
    source = _create_source(tmp_path)

    assert cli.main(["--source", str(source), "--to-dir", str(tmp_path / "out")]) == 9
    assert "Unable to convert" in capsys.readouterr().err


def test_build_pdf_copies_artifact(monkeypatch, tmp_path):
    _use_fake_tools(monkeypatch)
    source = _create_source(tmp_path, "\\documentclass{article}\n", name="paper.tex")
    out_dir = tmp_path / "out"

    assert cli.main(["--source", str(source), "--to-dir", str(out_dir), "--build", "pdf"]) == 0
    assert (out_dir / "paper.pdf").read_text(encoding="utf-8") == "%PDF fake"
    assert (source.parent / "paper.checksums").exists()

    assert cli.main(["--source", str(source), "--to-dir", str(out_dir), "--build", "pdf", "--no-rebuild"]) == 0
    assert _FakeLatexMk.calls == ["paper.tex"]


def test_build_svg_forces_unit(monkeypatch, tmp_path):
    _use_fake_tools(monkeypatch)
    source = _create_source(tmp_path, "\\documentclass{standalone}\n", name="figure.tex")
    out_dir = tmp_path / "out"

    code = cli.main(["--source", str(source), "--to-dir", str(out_dir), "--build", "svg", "--svg-unit", "px"])

    assert code == 0
    svg = (out_dir / "figure.svg").read_text(encoding="utf-8")
    assert 'width="4px"' in svg
    assert 'height="2px"' in svg


def test_build_pdf_uses_cache_directory(monkeypatch, tmp_path):
    _use_fake_tools(monkeypatch)
    source = _create_source(tmp_path, "\\documentclass{article}\n", name="paper.tex")
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    calculator = core.build_calculator(core.ConversionConfig(source_path=source, out_dir=tmp_path / "out"))
    (cache_dir / "paper.pdf").write_text("%PDF cached", encoding="utf-8")
    (cache_dir / "paper.checksums").write_text(
        serialize_fingerprint(calculator.compute_fingerprint(source)), encoding="utf-8"
    )

    code = cli.main(
        ["--source", str(source), "--to-dir", str(tmp_path / "out"), "--build", "pdf", "--cache-dir", str(cache_dir)]
    )

    assert code == 0
    assert _FakeLatexMk.calls == []
    assert (tmp_path / "out" / "paper.pdf").read_text(encoding="utf-8") == "%PDF cached"


def test_latin1_source_is_converted_leniently(monkeypatch, tmp_path):
    _use_fake_tools(monkeypatch)
    source = tmp_path / "src" / "latin.tex"
    source.parent.mkdir(parents=True)
    source.write_bytes(b"caf\xe9\n")
    out_dir = tmp_path / "out"

    assert cli.main(["--source", str(source), "--to-dir", str(out_dir)]) == 0
    assert (out_dir / "latin.html").read_text(encoding="utf-8") == "<p>caf�</p>\n"
