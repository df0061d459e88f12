from pathlib import Path
import sys

from streamlit.web import cli as stcli


def main() -> None:
    """Open the Case Chat Analytics dashboard: `python -m app` runs `streamlit run app/app.py`."""
    script = Path(__file__).resolve().parent / "app.py"
    sys.argv = ["streamlit", "run", str(script)]
    stcli.main()


if __name__ == "__main__":
    main()
