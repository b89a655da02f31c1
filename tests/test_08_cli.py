"""Tests for the koko command line (engine stubbed, no model files needed)."""
from __future__ import annotations

import io
import sys

import numpy as np
import pytest
import soundfile as sf

from koko_tts import cli
from koko_tts.tts.engine import SynthesisEngine
from stubs import StubModel


@pytest.fixture
def use_engine(monkeypatch, tmp_path, make_engine):
    """Install a stub engine for SynthesisEngine.from_config; returns the configs it was built with."""
    monkeypatch.chdir(tmp_path)
    for name in ("KOKO_SETTINGS", "KOKO_STYLE", "KOKO_SPEED", "KOKO_MODEL_PATH"):
        monkeypatch.delenv(name, raising=False)
    seen = []

    def _install(model=None):
        engine = make_engine(model=model)

        def from_config(cls, config, instance_id="00"):
            seen.append(config)
            return engine

        monkeypatch.setattr(SynthesisEngine, "from_config", classmethod(from_config))
        return seen

    return _install


def _stdin(monkeypatch, text):
    monkeypatch.setattr(sys, "stdin", io.StringIO(text))


class TestTextMode:

    def test_text_to_stereo_wav(self, use_engine, tmp_path, capsys):
        use_engine()
        out = tmp_path / "hello.wav"
        assert cli.main(["-s", "af_a", "text", "Hello world.", "-o", str(out)]) == 0

        data, sr = sf.read(str(out), dtype="float32")
        assert sr == 24000
        assert data.shape == ((12 + 2) * 10, 2)
        stdout = capsys.readouterr().out
        assert "Time taken" in stdout
        assert "Words per second" in stdout

    def test_mono_flag(self, use_engine, tmp_path):
        use_engine()
        out = tmp_path / "mono.wav"
        assert cli.main(["-s", "af_a", "--mono", "t", "Hi.", "-o", str(out)]) == 0
        assert sf.info(str(out)).channels == 1

    def test_flags_reach_config(self, use_engine, tmp_path):
        seen = use_engine()
        cli.main(["-s", "af_b", "-p", "1.25", "-l", "en-gb", "text", "Hi.", "-o", str(tmp_path / "x.wav")])
        assert seen[0].style == "af_b"
        assert seen[0].speed == 1.25
        assert seen[0].language == "en-gb"

    def test_default_mode_reads_stdin(self, use_engine, tmp_path, monkeypatch):
        use_engine()
        _stdin(monkeypatch, "From stdin.\n")
        assert cli.main(["-s", "af_a"]) == 0
        assert (tmp_path / "tmp" / "output.wav").exists()

    def test_empty_input(self, use_engine, monkeypatch, capsys):
        use_engine()
        _stdin(monkeypatch, "   \n")
        assert cli.main(["-s", "af_a", "text"]) == 1
        err = capsys.readouterr().err
        assert "Error: Empty input text." in err
        assert "usage: koko" in err

    def test_unknown_voice(self, use_engine, capsys):
        use_engine()
        assert cli.main(["-s", "af_nobody", "text", "Hi."]) == 1
        assert "af_nobody" in capsys.readouterr().err

    def test_inference_failure(self, use_engine, capsys):
        use_engine(model=StubModel(fail_on_call=0))
        assert cli.main(["-s", "af_a", "text", "Hi."]) == 1
        assert "Chunk text was: 'Hi.'" in capsys.readouterr().err


class TestFileMode:

    def test_one_wav_per_line(self, use_engine, tmp_path):
        use_engine()
        lines = tmp_path / "lines.txt"
        lines.write_text("First line.\n\n  Third line.  \n", encoding="utf-8")
        assert cli.main(["-s", "af_a", "file", str(lines), "-o", "out/line_{line}.wav"]) == 0

        assert (tmp_path / "out" / "line_0.wav").exists()
        assert not (tmp_path / "out" / "line_1.wav").exists()
        data, _ = sf.read(str(tmp_path / "out" / "line_2.wav"), dtype="float32")
        assert data.shape[0] == (len("Third line.") + 2) * 10

    def test_missing_input_file(self, use_engine, tmp_path, capsys):
        use_engine()
        assert cli.main(["-s", "af_a", "file", str(tmp_path / "nope.txt")]) == 1
        err = capsys.readouterr().err
        assert "Error: cannot read input file" in err
        assert "nope.txt" in err

    def test_input_path_is_directory(self, use_engine, tmp_path):
        use_engine()
        assert cli.main(["-s", "af_a", "file", str(tmp_path)]) == 1


class TestStreamMode:

    def _run(self, monkeypatch, argv, text):
        _stdin(monkeypatch, text)
        stdout = io.TextIOWrapper(io.BytesIO())
        monkeypatch.setattr(sys, "stdout", stdout)
        code = cli.main(argv)
        return code, stdout.buffer.getvalue()

    def test_header_then_lines(self, use_engine, monkeypatch):
        use_engine()
        code, body = self._run(monkeypatch, ["-s", "af_a", "stream"], "One.\n\nTwo.\n")
        assert code == 0
        assert body[:4] == b"RIFF"
        samples = np.frombuffer(body[44:], dtype="<f4")
        assert samples.size == 2 * (4 + 2) * 10
        assert np.all(samples[:60] == 1.0)
        assert np.all(samples[60:] == 2.0)

    def test_failing_line_skipped(self, use_engine, monkeypatch, capsys):
        use_engine(model=StubModel(fail_on_call=0))
        code, body = self._run(monkeypatch, ["-s", "af_a", "stdin"], "One.\nTwo.\n")
        assert code == 0
        samples = np.frombuffer(body[44:], dtype="<f4")
        assert samples.size == 60
        assert np.all(samples == 2.0)
        assert "Error processing line" in capsys.readouterr().err


class TestExitCodes:

    def test_missing_model(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        code = cli.main(["-m", str(tmp_path / "missing.onnx"), "text", "Hi."])
        assert code == 1
        err = capsys.readouterr().err
        assert "model file not found" in err
        assert "Download it from" in err

    def test_invalid_speed(self, use_engine, capsys):
        use_engine()
        assert cli.main(["-p", "0", "text", "Hi."]) == 2
        assert "tts.speed" in capsys.readouterr().err

    def test_missing_config_file(self, use_engine, tmp_path):
        use_engine()
        assert cli.main(["--config", str(tmp_path / "nope.yaml"), "text", "Hi."]) == 2

    def test_env_value_not_a_number(self, use_engine, monkeypatch, capsys):
        use_engine()
        monkeypatch.setenv("KOKO_INSTANCES", "two")
        assert cli.main(["text", "Hi."]) == 2
        assert "pool" in capsys.readouterr().err

    def test_invalid_yaml_config(self, use_engine, tmp_path):
        use_engine()
        bad = tmp_path / "bad.yaml"
        bad.write_text("tts: [unclosed\n", encoding="utf-8")
        assert cli.main(["--config", str(bad), "text", "Hi."]) == 2
