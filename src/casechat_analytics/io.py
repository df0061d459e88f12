from pathlib import Path
from typing import Dict, IO, Union

import pandas as pd

from .records import DashboardData

TABLES = ["sections", "students", "evaluations", "cases", "case_chats", "student_sections", "section_cases"]
OPTIONAL_TABLES = {"case_chats", "student_sections", "section_cases"}


def read_csv(source: Union[str, Path, IO[str], IO[bytes]]) -> pd.DataFrame:
    # ids stay text; "s001" and "001" must not collapse to numbers
    return pd.read_csv(source, dtype={"id": str, "student_id": str, "section_id": str, "case_id": str, "evaluation_id": str})


def load_dashboard_dir(directory: Union[str, Path]) -> DashboardData:
    """Read ``<table>.csv`` files written by ``save_dashboard_dir`` (or by hand)."""

    directory = Path(directory)
    tables: Dict[str, object] = {}
    for name in TABLES:
        path = directory / f"{name}.csv"
        if path.exists():
            tables[name] = read_csv(path).to_dict(orient="records")
        elif name not in OPTIONAL_TABLES:
            raise FileNotFoundError(f"Missing {path.name} in {directory}")
    return DashboardData.from_records(**tables)


def export_dataframe(df: pd.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


def save_dashboard_dir(tables: Dict[str, pd.DataFrame], directory: Union[str, Path]) -> Dict[str, Path]:
    directory = Path(directory)
    unknown = set(tables) - set(TABLES)
    if unknown:
        raise ValueError(f"Unknown tables: {', '.join(sorted(unknown))}")
    return {name: export_dataframe(df, directory / f"{name}.csv") for name, df in tables.items()}
