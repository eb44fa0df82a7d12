"""Page-number pagination for appointment listings."""

from dataclasses import dataclass

from fastapi import Query


PER_PAGE_DEFAULT = 25
PER_PAGE_LIMIT = 100


@dataclass(frozen=True)
class PageRequest:
    """1-indexed page requested by the caller."""
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def page_count(self, total: int) -> int:
        """Number of pages needed for ``total`` rows (0 when empty)."""
        if total <= 0:
            return 0
        return -(-total // self.per_page)


def page_request(
    page: int = Query(1, ge=1),
    per_page: int = Query(PER_PAGE_DEFAULT, ge=1, le=PER_PAGE_LIMIT),
) -> PageRequest:
    return PageRequest(page=page, per_page=per_page)
