import logging
import threading
from typing import Iterable, List, Optional

import pandas as pd

from .errors import ApiError
from .export import DEFAULT_COLUMNS, resolve_columns
from .filters import ALL, SelectionValue
from .results import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT_DIR,
    DEFAULT_SORT_KEY,
    PAGE_SIZES,
    SORT_KEYS,
    PageItem,
    ResultsPage,
    ResultsQuery,
    page_numbers,
    query_local,
    total_pages,
)

logger = logging.getLogger(__name__)


class RequestGuard:
    """Hands out increasing sequence numbers; only the newest one is current."""

    def __init__(self):
        self._latest = 0
        self._lock = threading.Lock()

    def issue(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest


class LocalResultsSource:
    """Results source over rows built locally (demo mode)."""

    def __init__(self, rows: pd.DataFrame):
        self.rows = rows.copy()

    def get_results(self, query: ResultsQuery) -> ResultsPage:
        return query_local(self.rows, query)

    def set_allow_rechat(self, evaluation_id: str, allowed: bool) -> None:
        mask = self.rows["evaluation_id"] == str(evaluation_id)
        if not mask.any():
            raise ApiError("Evaluation not found", status=404)
        self.rows.loc[mask, "allow_rechat"] = bool(allowed)


class ResultsSession:
    """State of the results view: filters, paging, sorting, visible columns and the last page."""

    def __init__(self, source, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}")
        self.source = source
        self.section_ids: SelectionValue = ALL
        self.case_ids: SelectionValue = ALL
        self.statuses: SelectionValue = ALL
        self.page = 1
        self.page_size = page_size
        self.sort_by = DEFAULT_SORT_KEY
        self.sort_dir = DEFAULT_SORT_DIR
        self.visible_columns: List[str] = list(DEFAULT_COLUMNS)
        self.result: Optional[ResultsPage] = None
        self.error: Optional[str] = None
        self.guard = RequestGuard()

    def query(self) -> ResultsQuery:
        return ResultsQuery(
            section_ids=self.section_ids,
            case_ids=self.case_ids,
            statuses=self.statuses,
            limit=self.page_size,
            offset=(self.page - 1) * self.page_size,
            sort_by=self.sort_by,
            sort_dir=self.sort_dir,
        )

    def set_filters(
        self,
        section_ids: Optional[SelectionValue] = None,
        case_ids: Optional[SelectionValue] = None,
        statuses: Optional[SelectionValue] = None,
    ) -> None:
        """Update any of the filter axes; ``None`` leaves an axis unchanged. Resets to page 1."""

        section_ids = self.section_ids if section_ids is None else section_ids
        case_ids = self.case_ids if case_ids is None else case_ids
        statuses = self.statuses if statuses is None else statuses
        # fail on bad status values before touching state
        ResultsQuery(section_ids=section_ids, case_ids=case_ids, statuses=statuses)
        self.section_ids, self.case_ids, self.statuses = section_ids, case_ids, statuses
        self.page = 1

    def set_page(self, page: int) -> None:
        last = max(self.total_pages, 1)
        self.page = min(max(int(page), 1), last)

    def set_page_size(self, size: int) -> None:
        if size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}")
        self.page_size = size
        self.page = 1

    def sort(self, key: str) -> None:
        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key '{key}'")
        if key == self.sort_by:
            self.sort_dir = "asc" if self.sort_dir == "desc" else "desc"
        else:
            self.sort_by = key
            self.sort_dir = "desc"
        self.page = 1

    def set_visible_columns(self, columns: Optional[Iterable[str]]) -> None:
        self.visible_columns = resolve_columns(columns)

    def toggle_column(self, column: str) -> None:
        current = set(self.visible_columns)
        current.symmetric_difference_update({column})
        self.visible_columns = resolve_columns(current)

    @property
    def total(self) -> int:
        return self.result.total if self.result is not None else 0

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.page_size)

    def page_numbers(self) -> List[PageItem]:
        return page_numbers(self.page, self.total_pages)

    def begin(self) -> int:
        return self.guard.issue()

    def complete(self, token: int, result: Optional[ResultsPage] = None, error: Optional[str] = None) -> bool:
        """Store a response unless a newer request was issued since ``token``."""

        if not self.guard.is_current(token):
            logger.debug("Dropping stale results response %s", token)
            return False
        if error is not None:
            self.error = error
        else:
            self.result = result
            self.error = None
        return True

    def refresh(self) -> bool:
        token = self.begin()
        try:
            result = self.source.get_results(self.query())
        except ApiError as exc:
            logger.warning("Failed to fetch results: %s", exc)
            return self.complete(token, error=str(exc) or "Failed to fetch results")
        return self.complete(token, result=result)

    def toggle_rechat(self, row) -> bool:
        evaluation_id = row.get("evaluation_id")
        if evaluation_id is None or (not isinstance(evaluation_id, str) and pd.isna(evaluation_id)):
            return False
        try:
            self.source.set_allow_rechat(evaluation_id, not bool(row.get("allow_rechat")))
        except ApiError as exc:
            logger.warning("Failed to update re-chat setting: %s", exc)
            self.error = str(exc)
            return False
        self.refresh()
        return True
