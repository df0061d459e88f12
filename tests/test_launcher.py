import sys
from pathlib import Path

from app import __main__ as launcher


def test_launcher_runs_dashboard_script(monkeypatch):
    seen = {}
    monkeypatch.setattr(launcher.stcli, "main", lambda: seen.update(argv=list(sys.argv)))
    monkeypatch.setattr(sys, "argv", ["python"])
    launcher.main()
    assert seen["argv"][:2] == ["streamlit", "run"]
    assert Path(seen["argv"][2]) == Path(launcher.__file__).resolve().parent / "app.py"
