#!/usr/bin/env python3
"""Generate a synthetic class (sections, students, cases, chats, evaluations) for demos.

Usage:
    python tools/generate_synthetic.py --output data/synthetic --sections 4 --students 120 --seed 42

Each student gets a latent ability that drives scores, hints and how many
cases they finish, so sections and cases come out with distinct completion
rates and difficulty tags. Timestamps spread over the last ~100 days so all
date ranges have something to show.
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from casechat_analytics.io import save_dashboard_dir

CASE_TITLES = [
    "Kodak's Digital Dilemma",
    "Netflix Goes Global",
    "Tesla Supply Chain",
    "Starbucks in China",
    "Boeing 737 MAX",
    "Patagonia's Mission",
]
PERSONAS = ["CEO", "CFO", "COO", "Board"]
POSITIONS = ["for", "against"]
FIRST_NAMES = ["Alex", "Riley", "Jordan", "Sam", "Taylor", "Casey", "Morgan", "Jamie", "Avery", "Quinn"]
LAST_NAMES = ["Kim", "Chen", "Patel", "Okafor", "Nguyen", "Moreau", "Silva", "Novak", "Haddad", "Larsen"]
HISTORY_DAYS = 100


def generate_synthetic_dataset(
    output_dir: Optional[Path] = None,
    n_sections: int = 4,
    n_students: int = 120,
    n_cases: int = 4,
    seed: int = 42,
    now: Optional[pd.Timestamp] = None,
) -> Dict[str, pd.DataFrame]:
    if n_sections < 1 or n_students < 1:
        raise ValueError("Need at least one section and one student")
    if not 1 <= n_cases <= len(CASE_TITLES):
        raise ValueError(f"n_cases must be between 1 and {len(CASE_TITLES)}")

    rng = np.random.default_rng(seed)
    now = pd.Timestamp(now) if now is not None else pd.Timestamp.now(tz="UTC").floor("s")
    if now.tzinfo is None:
        now = now.tz_localize("UTC")

    sections = pd.DataFrame(
        {
            "section_id": [f"SEC{i:02d}" for i in range(1, n_sections + 1)],
            "section_title": [f"Strategy {i:02d}" for i in range(1, n_sections + 1)],
            "year_term": ["2025 Fall" if i % 2 else "2025 Spring" for i in range(1, n_sections + 1)],
            "enabled": True,
        }
    )
    cases = pd.DataFrame(
        {
            "case_id": [f"case{i}" for i in range(1, n_cases + 1)],
            "case_title": CASE_TITLES[:n_cases],
            "enabled": True,
        }
    )
    # later cases are harder
    case_difficulty = np.linspace(0.0, 4.0, n_cases)
    # sections differ in how engaged they are
    section_engagement = rng.uniform(0.35, 0.95, n_sections)

    student_rows = []
    section_cases = []
    for section_id in sections["section_id"]:
        for case_id in cases["case_id"]:
            section_cases.append({"section_id": section_id, "case_id": case_id})

    chats = []
    evaluations = []
    for idx in range(1, n_students + 1):
        student_id = f"Student_{idx:03d}"
        section_idx = int(rng.integers(0, n_sections))
        section_id = sections.loc[section_idx, "section_id"]
        ability = rng.normal(11.0, 2.0)
        student_rows.append(
            {
                "id": student_id,
                "first_name": str(rng.choice(FIRST_NAMES)),
                "last_name": str(rng.choice(LAST_NAMES)),
                "email": f"{student_id.lower()}@example.edu",
                "section_id": section_id,
                "finished_at": None,
            }
        )

        for case_idx, case_id in enumerate(cases["case_id"]):
            roll = rng.random()
            if roll > section_engagement[section_idx]:
                # never started, or started and walked away
                if rng.random() < 0.3:
                    status = "in_progress" if rng.random() < 0.6 else "abandoned"
                    chats.append(_chat(rng, now, student_id, section_id, case_id, status, None))
                continue

            eval_id = f"eval_{len(evaluations) + 1:05d}"
            chat = _chat(rng, now, student_id, section_id, case_id, "completed", eval_id)
            chats.append(chat)
            raw_score = ability - case_difficulty[case_idx] + rng.normal(0, 1.5)
            scored = rng.random() > 0.05
            evaluations.append(
                {
                    "id": eval_id,
                    "student_id": student_id,
                    "case_id": case_id,
                    "score": float(np.clip(np.round(raw_score * 2) / 2, 0, 15)) if scored else None,
                    "hints": int(max(0, rng.poisson(max(0.2, (15 - raw_score) / 3)))),
                    "helpful": float(np.clip(np.round(rng.normal(3.8, 0.8) * 2) / 2, 0, 5)),
                    "created_at": chat["end_time"],
                    "allow_rechat": bool(rng.random() < 0.05),
                }
            )

    tables = {
        "sections": sections,
        "students": pd.DataFrame(student_rows),
        "cases": cases,
        "section_cases": pd.DataFrame(section_cases),
        "case_chats": pd.DataFrame(chats),
        "evaluations": pd.DataFrame(evaluations, columns=["id", "student_id", "case_id", "score", "hints", "helpful", "created_at", "allow_rechat"]),
    }
    if output_dir is not None:
        save_dashboard_dir(tables, output_dir)
    return tables


def _chat(rng, now: pd.Timestamp, student_id: str, section_id: str, case_id: str, status: str, eval_id: Optional[str]) -> Dict[str, object]:
    started = now - pd.Timedelta(minutes=int(rng.integers(60, HISTORY_DAYS * 24 * 60)))
    duration = pd.Timedelta(minutes=int(rng.integers(12, 55)))
    finished = started + duration if status == "completed" else None
    return {
        "id": f"chat_{student_id}_{case_id}",
        "student_id": student_id,
        "section_id": section_id,
        "case_id": case_id,
        "status": status,
        "persona": str(rng.choice(PERSONAS)),
        "initial_position": str(rng.choice(POSITIONS)),
        "final_position": str(rng.choice(POSITIONS)) if finished is not None else None,
        "start_time": started.isoformat(),
        "end_time": finished.isoformat() if finished is not None else None,
        "last_activity": (finished if finished is not None else started + duration / 2).isoformat(),
        "evaluation_id": eval_id,
    }


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate a synthetic case-chat class for demos")
    parser.add_argument("--output", type=Path, default=Path("data/synthetic"), help="Directory for the per-table CSVs")
    parser.add_argument("--sections", type=int, default=4, help="Number of sections")
    parser.add_argument("--students", type=int, default=120, help="Number of students")
    parser.add_argument("--cases", type=int, default=4, help="Number of cases")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args(list(argv) if argv is not None else None)

    generate_synthetic_dataset(args.output, n_sections=args.sections, n_students=args.students, n_cases=args.cases, seed=args.seed)
    print(f"Synthetic dataset written to {args.output}")


if __name__ == "__main__":
    main()
