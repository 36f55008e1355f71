from typing import Optional, Tuple

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def normalize_pagination(page: Optional[int], per_page: Optional[int]) -> Tuple[int, int]:
    """
    Clamp paging parameters.

    page <= 0 (or missing) becomes 1; per_page <= 0 (or missing) becomes 20,
    and anything above 100 becomes 100.
    """
    if page is None or page <= 0:
        page = DEFAULT_PAGE
    if per_page is None or per_page <= 0:
        per_page = DEFAULT_PER_PAGE
    elif per_page > MAX_PER_PAGE:
        per_page = MAX_PER_PAGE
    return page, per_page


def offset_for(page: int, per_page: int) -> int:
    return (page - 1) * per_page
