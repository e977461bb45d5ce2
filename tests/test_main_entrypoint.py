import sys

from bumpkit import main as main_mod


def test_main_entrypoint_no_args(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["bumpkit"])
    # main() delegates to cli.main(); without a command it prints help
    rc = main_mod.main()
    assert rc == 1
    assert "commit" in capsys.readouterr().out


def test_main_entrypoint_version_flag(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["bumpkit", "--version"])
    assert main_mod.main() == 0
    assert "bumpkit 0.1.0" in capsys.readouterr().out
