import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import requests

from .config import Settings
from .errors import ApiError, extract_error_message
from .forms import validate_form
from .records import DashboardData
from .results import ResultsPage, ResultsQuery

logger = logging.getLogger(__name__)

# kind -> (collection path, form used to validate creates)
RECORD_ROUTES: Dict[str, tuple] = {
    "section": ("/sections", "section"),
    "student": ("/students", "student"),
    "instructor": ("/admins", "instructor"),
    "prompt": ("/prompts", "prompt"),
    "case_file": ("/case-files", None),
}


class DashboardClient:
    """Thin wrapper over the dashboard REST API.

    Every endpoint answers with a ``{"data": ..., "error": ...}`` envelope;
    methods return ``data`` and raise ``ApiError`` otherwise.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    @classmethod
    def from_settings(cls, settings: Settings, session=None) -> "DashboardClient":
        return cls(settings.api_url, token=settings.api_token, timeout=settings.request_timeout, session=session)

    def _request(self, method: str, path: str, what: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(f"Failed to fetch {what}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400 or (isinstance(payload, dict) and payload.get("error")):
            message = extract_error_message(payload, f"Failed to fetch {what}")
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise ApiError(message, status=response.status_code)
        if not isinstance(payload, dict):
            raise ApiError(f"Failed to fetch {what}", status=response.status_code)
        return payload.get("data")

    def _get(self, path: str, what: str, params: Optional[Mapping[str, str]] = None) -> Any:
        return self._request("GET", path, what, params=params)

    def _list(self, path: str, what: str) -> List[Dict[str, Any]]:
        data = self._get(path, what) or []
        if not isinstance(data, list):
            raise ApiError(f"Failed to fetch {what}")
        return [item for item in data if isinstance(item, dict)]

    # reads

    def list_sections(self) -> List[Dict[str, Any]]:
        return self._list("/sections", "sections")

    def list_students(self) -> List[Dict[str, Any]]:
        return self._list("/students", "students")

    def list_evaluations(self) -> List[Dict[str, Any]]:
        return self._list("/evaluations", "evaluations")

    def list_cases(self) -> List[Dict[str, Any]]:
        return self._list("/cases", "cases")

    def list_case_chats(self) -> List[Dict[str, Any]]:
        return self._list("/case-chats", "case chats")

    def get_filter_options(self) -> Dict[str, List[Dict[str, Any]]]:
        data = self._get("/analytics/filters", "filter options") or {}
        return {"sections": list(data.get("sections") or []), "cases": list(data.get("cases") or [])}

    def get_results(self, query: Optional[ResultsQuery] = None) -> ResultsPage:
        query = query or ResultsQuery()
        data = self._get("/analytics/results", "results", params=query.to_params()) or {}
        return ResultsPage.from_payload(data)

    def list_case_prep_files(self, case_id: str) -> List[Dict[str, Any]]:
        return self._list(f"/case-prep/{case_id}/files", "case files")

    def get_time_remaining(self, chat_id: str) -> Dict[str, Any]:
        return self._get(f"/case-chats/{chat_id}/time-remaining", "time remaining") or {}

    # mutations

    def set_allow_rechat(self, evaluation_id: str, allowed: bool) -> Any:
        return self._request(
            "PATCH",
            f"/evaluations/{evaluation_id}/allow-rechat",
            "re-chat setting",
            json={"allow_rechat": bool(allowed)},
        )

    def _route(self, kind: str) -> tuple:
        if kind not in RECORD_ROUTES:
            raise ValueError(f"Unknown record kind '{kind}'. Expected one of: {', '.join(RECORD_ROUTES)}")
        return RECORD_ROUTES[kind]

    def create_record(self, kind: str, payload: Mapping[str, Any]) -> Any:
        path, form = self._route(kind)
        if form is None:
            raise ValueError(f"{kind} records are created by upload or URL import")
        errors = validate_form(form, payload)
        if errors:
            raise ValueError("; ".join(errors))
        return self._request("POST", path, kind, json=dict(payload))

    def update_record(self, kind: str, record_id: str, payload: Mapping[str, Any]) -> Any:
        path, _ = self._route(kind)
        return self._request("PATCH", f"{path}/{record_id}", kind, json=dict(payload))

    def delete_record(self, kind: str, record_id: str) -> Any:
        path, _ = self._route(kind)
        return self._request("DELETE", f"{path}/{record_id}", kind)

    def list_scenarios(self, case_id: str) -> List[Dict[str, Any]]:
        return self._list(f"/cases/{case_id}/scenarios", "scenarios")

    def create_scenario(self, case_id: str, payload: Mapping[str, Any]) -> Any:
        errors = validate_form("scenario", payload)
        if errors:
            raise ValueError("; ".join(errors))
        return self._request("POST", f"/cases/{case_id}/scenarios", "scenario", json=dict(payload))

    def update_scenario(self, case_id: str, scenario_id: str, payload: Mapping[str, Any]) -> Any:
        return self._request("PATCH", f"/cases/{case_id}/scenarios/{scenario_id}", "scenario", json=dict(payload))

    def delete_scenario(self, case_id: str, scenario_id: str) -> Any:
        return self._request("DELETE", f"/cases/{case_id}/scenarios/{scenario_id}", "scenario")

    def confirm_proprietary(self, file_id: str) -> Any:
        return self._request("POST", f"/case-files/{file_id}/confirm-proprietary", "proprietary confirmation")

    def reorder_case_file(self, file_id: str, prompt_order: int) -> Any:
        errors = validate_form("prompt_order", {"prompt_order": prompt_order})
        if errors:
            raise ValueError("; ".join(errors))
        return self._request("PATCH", f"/case-files/{file_id}/reorder", "file order", json={"prompt_order": int(prompt_order)})

    def upload_case_file(self, case_id: str, path, file_type: str) -> Any:
        file_path = Path(path)
        with file_path.open("rb") as handle:
            return self._request(
                "POST",
                f"/case-files/{case_id}/upload",
                "file upload",
                files={"file": (file_path.name, handle)},
                data={"file_type": file_type},
            )

    def import_case_file_url(self, case_id: str, url: str, file_type: str) -> Any:
        payload = {"url": url, "file_type": file_type}
        errors = validate_form("case_file_url", payload)
        if errors:
            raise ValueError("; ".join(errors))
        return self._request("POST", f"/case-files/{case_id}/download-url", "file import", json=payload)

    def submit_outline_job(self, case_id: str, file_id: str, model_id: Optional[str] = None) -> Any:
        body = {"file_id": file_id}
        if model_id:
            body["model_id"] = model_id
        return self._request("POST", f"/case-prep/{case_id}/process", "outline job", json=body)

    def save_outline(self, file_id: str, content: str) -> Any:
        """Store a manually edited outline for a source case file."""

        return self._request(
            "PATCH", f"/case-prep/files/{file_id}/outline", "outline", json={"outline_content": content or ""}
        )

    def get_outline_status(self, case_id: str, file_id: str) -> Dict[str, Any]:
        """Current processing fields of one case file, looked up from the case's file list."""

        for item in self.list_case_prep_files(case_id):
            if str(item.get("id")) == str(file_id):
                return item
        raise ApiError(f"Case file {file_id} not found", status=404)


def fetch_dashboard_data(client: DashboardClient) -> Optional[DashboardData]:
    """Load every analytics input; None when any fetch fails."""

    try:
        return DashboardData.from_records(
            sections=client.list_sections(),
            students=client.list_students(),
            evaluations=client.list_evaluations(),
            cases=client.list_cases(),
            case_chats=client.list_case_chats(),
        )
    except ApiError as exc:
        logger.warning("Dashboard data unavailable: %s", exc)
        return None
