"""
Integration tests for the mp3-stego command line.
"""

import pytest

from lsb_stego.cli import main, parse_args


class TestParseArgs:

    def test_embed_defaults(self):
        args = parse_args(["embed", "-c", "in.mp3", "-m", "s.txt", "-k", "key", "-o", "out.mp3"])
        assert args.cmd == "embed"
        assert args.lsb == 1
        assert not args.random
        assert not args.encrypt

    def test_extract_decrypt_flags(self):
        base = ["extract", "-s", "in.mp3", "-k", "key", "-o", "out"]
        assert parse_args(base).decrypt is None
        assert parse_args(base + ["-d"]).decrypt is True
        assert parse_args(base + ["--no-decrypt"]).decrypt is False

    def test_unknown_mode(self):
        with pytest.raises(SystemExit):
            parse_args(["embed", "-c", "a", "-m", "b", "-k", "k", "-o", "c", "--mode", "spectral"])


class TestCommands:

    def test_embed_then_extract(self, cover_wav, secret_file, tmp_path, capsys):
        stego = tmp_path / "stego.wav"
        code = main(["embed", "-c", str(cover_wav), "-m", str(secret_file), "-k", "clikey",
                     "-l", "2", "-r", "-e", "-o", str(stego)])
        assert code == 0
        assert "PSNR" in capsys.readouterr().out

        out_dir = tmp_path / "out"
        out_dir.mkdir()
        code = main(["extract", "-s", str(stego), "-k", "clikey", "-o", str(out_dir)])
        assert code == 0
        output = capsys.readouterr().out
        assert "n_lsb=2, useRandom=1" in output
        assert "secret.txt" in output
        assert (out_dir / "secret.txt").read_bytes() == secret_file.read_bytes()

    def test_psnr(self, cover_wav, capsys):
        assert main(["psnr", str(cover_wav), str(cover_wav)]) == 0
        assert "100.00 dB (excellent)" in capsys.readouterr().out

    def test_inspect(self, cover_mp3, capsys):
        assert main(["inspect", str(cover_mp3), "-l", "2"]) == 0
        output = capsys.readouterr().out
        assert "Frames found: 200" in output
        assert "128 kbps" in output

    def test_error_exit_code(self, cover_wav, secret_file, tmp_path, capsys):
        code = main(["embed", "-c", str(cover_wav), "-m", str(secret_file), "-k", "x" * 30,
                     "-o", str(tmp_path / "o.wav")])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        code = main(["extract", "-s", str(tmp_path / "missing.wav"), "-k", "key", "-o", str(tmp_path)])
        assert code == 1
        assert "Error:" in capsys.readouterr().err
