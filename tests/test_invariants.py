import pandas as pd

from casechat_analytics import invariants


def _result(results, name):
    return next(res for res in results if res["name"] == name)


def test_run_invariants_pass(raw_records):
    results = invariants.run_invariants(pd.DataFrame(raw_records["evaluations"]))
    assert all(res["ok"] for res in results)


def test_run_invariants_pass_on_normalized(sample_data):
    results = invariants.run_invariants(sample_data.evaluations)
    assert all(res["ok"] for res in results)


def test_run_invariants_flags_missing_ids(raw_records):
    bad = pd.DataFrame(raw_records["evaluations"])
    bad.loc[0, "student_id"] = ""
    bad.loc[1, "case_id"] = None
    missing_row = _result(invariants.run_invariants(bad), "missing_identifiers")
    assert missing_row["ok"] is False
    assert missing_row["detail"] == 2


def test_run_invariants_flags_out_of_range_values(raw_records):
    bad = pd.DataFrame(raw_records["evaluations"])
    bad.loc[0, "score"] = 16
    bad.loc[1, "hints"] = -1
    bad.loc[2, "helpful"] = 7
    bad.loc[3, "created_at"] = "last tuesday"
    results = invariants.run_invariants(bad)
    assert _result(results, "score_range_violations")["detail"] == 1
    assert _result(results, "negative_hints")["detail"] == 1
    assert _result(results, "helpful_range_violations")["detail"] == 1
    assert _result(results, "unparseable_timestamps")["detail"] == 1


def test_run_invariants_stops_on_missing_columns(raw_records):
    bad = pd.DataFrame(raw_records["evaluations"]).drop(columns=["hints", "created_at"])
    results = invariants.run_invariants(bad)
    assert len(results) == 1
    assert results[0]["ok"] is False
    assert results[0]["detail"] == "hints, created_at"
