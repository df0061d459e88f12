import pytest
import requests

from casechat_analytics.client import DashboardClient, fetch_dashboard_data
from casechat_analytics.config import Settings
from casechat_analytics.errors import ApiError, extract_error_message
from casechat_analytics.results import ResultsQuery
from conftest import FakeResponse


@pytest.fixture()
def client(fake_session):
    return DashboardClient("http://api.test/", token="secret", session=fake_session)


def test_bearer_token_and_base_url(client, fake_session):
    assert fake_session.headers["Authorization"] == "Bearer secret"
    assert client.base_url == "http://api.test"


def test_from_settings_without_token(fake_session):
    client = DashboardClient.from_settings(Settings(api_url="http://api.test", request_timeout=3), session=fake_session)
    assert "Authorization" not in fake_session.headers
    assert client.timeout == 3


def test_list_returns_envelope_data(client, fake_session):
    fake_session.routes[("GET", "/sections")] = [{"section_id": "S1"}]
    assert client.list_sections() == [{"section_id": "S1"}]
    assert fake_session.calls[0]["timeout"] == 10


def test_error_envelope_raises_api_error(client, fake_session):
    fake_session.routes[("GET", "/students")] = FakeResponse({"data": None, "error": {"message": "Not allowed"}}, status_code=403)
    with pytest.raises(ApiError) as excinfo:
        client.list_students()
    assert excinfo.value.message == "Not allowed"
    assert excinfo.value.status == 403


def test_error_in_ok_response_still_raises(client, fake_session):
    fake_session.routes[("GET", "/cases")] = FakeResponse({"data": None, "error": "Database offline"})
    with pytest.raises(ApiError, match="Database offline"):
        client.list_cases()


def test_transport_error_uses_fallback_message(client, fake_session):
    fake_session.routes[("GET", "/sections")] = requests.ConnectionError("refused")
    with pytest.raises(ApiError) as excinfo:
        client.list_sections()
    assert str(excinfo.value) == "Failed to fetch sections"
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_non_json_body_raises(client, fake_session):
    fake_session.routes[("GET", "/sections")] = FakeResponse(ValueError("not json"), status_code=502)
    with pytest.raises(ApiError) as excinfo:
        client.list_sections()
    assert excinfo.value.status == 502
    assert excinfo.value.message == "Failed to fetch sections"


def test_get_results_sends_query_params(client, fake_session):
    fake_session.routes[("GET", "/analytics/results")] = {
        "summary": {"totalStudents": 1},
        "students": [{"student_id": "u1", "student_name": "Una", "status": "completed", "score": 12}],
        "total": 1,
        "limit": 20,
        "offset": 0,
    }
    page = client.get_results(ResultsQuery(section_ids=["S1"], statuses=["completed"]))
    assert page.total == 1
    assert page.rows.iloc[0]["student_name"] == "Una"
    params = fake_session.calls[0]["params"]
    assert params["section_ids"] == "S1"
    assert params["statuses"] == "completed"
    assert params["case_ids"] == "all"


def test_get_filter_options(client, fake_session):
    fake_session.routes[("GET", "/analytics/filters")] = {"sections": [{"section_id": "S1", "section_title": "One"}]}
    options = client.get_filter_options()
    assert options["cases"] == []
    assert options["sections"][0]["section_title"] == "One"


def test_set_allow_rechat_patches(client, fake_session):
    fake_session.routes[("PATCH", "/evaluations/e1/allow-rechat")] = {"id": "e1", "allow_rechat": True}
    client.set_allow_rechat("e1", True)
    call = fake_session.calls[0]
    assert call["method"] == "PATCH"
    assert call["json"] == {"allow_rechat": True}


def test_record_routes(client, fake_session):
    fake_session.routes[("POST", "/sections")] = {"section_id": "S9"}
    fake_session.routes[("PATCH", "/admins/a1")] = {"id": "a1"}
    fake_session.routes[("DELETE", "/prompts/p1")] = {}
    client.create_record("section", {"section_id": "S9", "section_title": "Ninth"})
    client.update_record("instructor", "a1", {"email": "x@example.edu"})
    client.delete_record("prompt", "p1")
    assert [(c["method"], c["path"]) for c in fake_session.calls] == [
        ("POST", "/sections"),
        ("PATCH", "/admins/a1"),
        ("DELETE", "/prompts/p1"),
    ]


def test_create_record_validates_before_sending(client, fake_session):
    with pytest.raises(ValueError, match="Section title is required"):
        client.create_record("section", {"section_id": "S9"})
    with pytest.raises(ValueError):
        client.create_record("case_file", {"url": "http://x"})
    with pytest.raises(ValueError):
        client.create_record("course", {})
    with pytest.raises(ValueError):
        client.create_scenario("kodak", {"scenario_name": "Board vote"})
    with pytest.raises(ValueError):
        client.reorder_case_file("f1", -1)
    assert fake_session.calls == []


def test_case_file_operations(client, fake_session, tmp_path):
    fake_session.routes[("POST", "/case-files/kodak/download-url")] = {"id": "f2"}
    fake_session.routes[("PATCH", "/case-files/f2/reorder")] = {"id": "f2"}
    fake_session.routes[("POST", "/case-files/f2/confirm-proprietary")] = {"id": "f2"}
    fake_session.routes[("POST", "/case-files/kodak/upload")] = {"id": "f3"}

    client.import_case_file_url("kodak", "https://example.edu/case.pdf", "case")
    client.reorder_case_file("f2", 2)
    client.confirm_proprietary("f2")
    upload = tmp_path / "case.pdf"
    upload.write_bytes(b"%PDF-1.4")
    assert client.upload_case_file("kodak", upload, "case") == {"id": "f3"}

    assert fake_session.calls[1]["json"] == {"prompt_order": 2}
    assert fake_session.calls[3]["data"] == {"file_type": "case"}
    assert fake_session.calls[3]["files"]["file"][0] == "case.pdf"


def test_outline_job_calls(client, fake_session):
    fake_session.routes[("POST", "/case-prep/kodak/process")] = {"processing_status": "pending"}
    fake_session.routes[("GET", "/case-prep/kodak/files")] = [
        {"id": "f1", "processing_status": "processing"},
        {"id": "f2", "processing_status": "completed", "outline_content": "# Outline"},
    ]
    client.submit_outline_job("kodak", "f2", model_id="m1")
    assert fake_session.calls[0]["json"] == {"file_id": "f2", "model_id": "m1"}
    assert client.get_outline_status("kodak", "f2")["outline_content"] == "# Outline"
    with pytest.raises(ApiError) as excinfo:
        client.get_outline_status("kodak", "missing")
    assert excinfo.value.status == 404



def test_save_outline_patches_content(client, fake_session):
    fake_session.routes[("PATCH", "/case-prep/files/f2/outline")] = {"id": "f3"}
    assert client.save_outline("f2", "# Edited") == {"id": "f3"}
    assert fake_session.calls[-1]["method"] == "PATCH"
    assert fake_session.calls[-1]["json"] == {"outline_content": "# Edited"}


def test_case_file_list_must_be_a_list(client, fake_session):
    fake_session.routes[("GET", "/case-prep/kodak/files")] = {"id": "f1", "processing_status": "completed"}
    with pytest.raises(ApiError):
        client.get_outline_status("kodak", "f1")

def test_fetch_dashboard_data(client, fake_session, raw_records):
    for path, key in [
        ("/sections", "sections"),
        ("/students", "students"),
        ("/evaluations", "evaluations"),
        ("/cases", "cases"),
        ("/case-chats", "case_chats"),
    ]:
        fake_session.routes[("GET", path)] = raw_records[key]
    data = fetch_dashboard_data(client)
    assert data.row_counts() == {"sections": 3, "students": 6, "evaluations": 5, "cases": 3, "case_chats": 7}


def test_fetch_dashboard_data_unavailable(client, fake_session):
    fake_session.routes[("GET", "/sections")] = []
    assert fetch_dashboard_data(client) is None


def test_extract_error_message():
    assert extract_error_message({"error": {"message": " Boom "}}, "x") == "Boom"
    assert extract_error_message({"error": "Nope"}, "x") == "Nope"
    assert extract_error_message({"message": "Top level"}, "x") == "Top level"
    assert extract_error_message({"error": {}}, "fallback") == "fallback"
    assert extract_error_message(None, "fallback") == "fallback"
