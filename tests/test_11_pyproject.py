"""Tests for pyproject.toml and package layout."""
from __future__ import annotations

from pathlib import Path

import pytest

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


class TestPackage:

    def test_version_defined(self):
        import koko_tts
        assert isinstance(koko_tts.__version__, str)
        assert koko_tts.__version__

    def test_modules_importable(self):
        from koko_tts import cli, main  # noqa: F401
        from koko_tts.api import openai_compat, routes, schemas  # noqa: F401
        from koko_tts.tts import chunker, engine, inference, phonemizer, pool, style, vocab  # noqa: F401

    def test_cli_help_exits_zero(self, capsys):
        from koko_tts.cli import main

        with pytest.raises(SystemExit) as exc:
            main(["--help"])
        assert exc.value.code == 0
        assert "koko" in capsys.readouterr().out


class TestPyprojectToml:

    def test_metadata(self):
        tomllib = pytest.importorskip("tomllib")
        data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))
        assert data["project"]["name"] == "koko-tts"
        assert data["project"]["scripts"]["koko"] == "koko_tts.cli:main"

        deps = [d.split(">=")[0].split("[")[0] for d in data["project"]["dependencies"]]
        for name in ("numpy", "onnxruntime", "phonemizer", "soundfile", "fastapi", "uvicorn", "pydantic"):
            assert name in deps

    def test_imports_are_declared(self):
        """Every third-party package imported under src/ is a declared dependency."""
        import ast
        import sys

        tomllib = pytest.importorskip("tomllib")
        data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))
        declared = {d.split(">=")[0].split("[")[0].lower().replace("-", "_") for d in data["project"]["dependencies"]}
        dist_names = {"yaml": "pyyaml"}

        imported = set()
        for path in (PYPROJECT.parent / "src").rglob("*.py"):
            for node in ast.walk(ast.parse(path.read_text(encoding="utf-8"))):
                if isinstance(node, ast.Import):
                    imported.update(alias.name.split(".")[0] for alias in node.names)
                elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                    imported.add(node.module.split(".")[0])

        third_party = {m for m in imported if m not in sys.stdlib_module_names and m != "koko_tts"}
        missing = {m for m in third_party if dist_names.get(m, m) not in declared}
        assert missing == set()
