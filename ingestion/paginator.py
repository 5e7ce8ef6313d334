"""
Skip/take pagination over gateway list endpoints.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.config import settings
from core.exceptions import MirrorException, PaginationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500
MIN_ROW_CAP = 2000
MAX_ROW_CAP = 100000


def clamp_max_rows(max_rows: int) -> int:
    """Bound a call site's row cap to keep memory predictable."""
    return max(MIN_ROW_CAP, min(max_rows, MAX_ROW_CAP))


def page_items(page: Any) -> Optional[List[Any]]:
    """Rows of a page: a bare list or an object's ``items`` list; None otherwise."""
    if isinstance(page, list):
        return page
    if isinstance(page, dict) and isinstance(page.get("items"), list):
        return page["items"]
    return None


@dataclass
class PageResult:
    records: List[Any] = field(default_factory=list)
    pages: int = 0
    # Set when max_pages or max_rows ended the loop before a short page
    truncated: bool = False
    limit: Optional[str] = None
    # Set when the endpoint answered with a non-paginated shape
    passthrough: Any = None

    @property
    def is_passthrough(self) -> bool:
        return self.passthrough is not None


class Paginator:
    """
    Fetch every page of a list endpoint.

    Termination, checked in order after each page:
    1. the page is shorter than requested (last page)
    2. max_pages pages were fetched
    3. accumulated rows reached max_rows (result truncated to max_rows)

    Stopping on 2 or 3 marks the result truncated: the upstream may hold
    more rows than were returned.

    Any failed page aborts the whole pagination with PaginationError.
    """

    def __init__(self, gateway):
        self.gateway = gateway

    async def paginate(
        self,
        path: str,
        method: str = "POST",
        body: Any = None,
        take: int = None,
        max_pages: int = None,
        max_rows: int = None,
        sort_field: str = None,
        sort_dir: str = None,
        start_skip: int = 0
    ) -> PageResult:
        take = max(1, min(take or settings.PAGE_SIZE, MAX_PAGE_SIZE))
        max_pages = max_pages or settings.MAX_PAGES
        max_rows = clamp_max_rows(max_rows or settings.MAX_ROWS)
        sort_field = sort_field or settings.SORT_FIELD
        sort_dir = sort_dir or settings.SORT_DIR

        result = PageResult()
        skip = start_skip

        while True:
            query: Dict[str, Any] = {
                "skip": skip,
                "take": take,
                "sortField": sort_field,
                "sortDir": sort_dir,
            }
            try:
                page = await self.gateway.call(path, method=method, query=query, body=body)
            except MirrorException as e:
                raise PaginationError(
                    f"Pagination aborted for {path}",
                    context={
                        "path": path,
                        "skip": skip,
                        "pages_fetched": result.pages,
                        "rows_fetched": len(result.records),
                    },
                    original_exception=e
                )

            rows = page_items(page)
            if rows is None:
                if result.pages == 0:
                    logger.debug(f"{path} returned a non-paginated payload")
                    result.passthrough = page
                    return result
                raise PaginationError(
                    f"Unexpected page shape from {path}",
                    context={"path": path, "skip": skip, "pages_fetched": result.pages}
                )

            result.pages += 1
            result.records.extend(rows)

            if len(rows) < take:
                break
            if result.pages >= max_pages:
                result.limit = f"max_pages={max_pages}"
                break
            if len(result.records) >= max_rows:
                result.limit = f"max_rows={max_rows}"
                break

            skip += take

        if len(result.records) > max_rows:
            result.records = result.records[:max_rows]
            result.limit = result.limit or f"max_rows={max_rows}"

        if result.limit:
            result.truncated = True
            logger.warning(f"{path}: stopped at {result.limit}")

        logger.debug(f"{path}: {len(result.records)} rows in {result.pages} pages")
        return result
