"""
Unit tests for the command-line runner.
"""

from systile.cli import build_parser, main


class TestCli:
    """Test suite for ``python -m systile``."""

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.dim == 16
        assert args.acc_bits == 24
        assert (args.m, args.k, args.n) == (20, 20, 20)
        assert args.stages == 0

    def test_all_ones_job(self, capsys):
        assert main(["--ones"]) == 0
        out = capsys.readouterr().out
        assert "Tiles:         8" in out
        assert "PASS" in out

    def test_random_staged_job(self, capsys):
        assert main(["--dim", "4", "--m", "5", "--k", "7", "--n", "6", "--seed", "3", "--stages", "2"]) == 0
        out = capsys.readouterr().out
        assert "PASS" in out
        assert "stalled:     0" not in out

    def test_invalid_dimensions(self, capsys):
        assert main(["--dim", "4", "--m", "0"]) == 2
        assert "error:" in capsys.readouterr().err

    def test_accumulator_too_narrow(self, capsys):
        assert main(["--dim", "16", "--acc-bits", "18"]) == 2
        assert "error:" in capsys.readouterr().err
