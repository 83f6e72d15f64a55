# =============================================================================
# core/population.py - Paged iteration over identity populations
# =============================================================================

import logging
import math
import threading
from typing import Iterator, List, Optional

from core.exceptions import StoreError
from core.models import AnyTypeKind, IdentityObject
from core.search import SearchCond
from core.store import AnySearchDAO, FULL_ADMIN_REALMS

PAGE_SIZE = 10


class PopulationIterator:
    """Lazy, paged sequence of identity objects of one kind"""

    def __init__(self, search_dao: AnySearchDAO, page_size: int = PAGE_SIZE,
                 cancel_event: Optional[threading.Event] = None):
        if page_size < 1:
            raise ValueError(f"Page size must be positive, got {page_size}")
        self.search_dao = search_dao
        self.page_size = page_size
        self.cancel_event = cancel_event
        self.cancelled = False
        self.logger = logging.getLogger(self.__class__.__name__)

    def page_count(self, count: int) -> int:
        return math.ceil(count / self.page_size) if count > 0 else 0

    def pages(self, kind: AnyTypeKind, cond: Optional[SearchCond] = None) -> Iterator[List[IdentityObject]]:
        """Yield pages of objects; no cond means the whole population of ``kind``

        Stops early once the cancel event is set, leaving ``cancelled`` true.
        """
        self.cancelled = False
        try:
            count = self.search_dao.count(FULL_ADMIN_REALMS, cond, kind)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Count of {kind.value} failed: {e}") from e

        total_pages = self.page_count(count)
        self.logger.info(f"{count} {kind.value} objects to inspect in {total_pages} page(s)")

        for page in range(1, total_pages + 1):
            if self.cancel_event is not None and self.cancel_event.is_set():
                self.logger.warning(f"Run cancelled before page {page}/{total_pages} of {kind.value}")
                self.cancelled = True
                return

            try:
                objects = self.search_dao.search(FULL_ADMIN_REALMS, cond, page, self.page_size, [], kind)
            except StoreError:
                raise
            except Exception as e:
                raise StoreError(f"Search of {kind.value} page {page} failed: {e}") from e

            self.logger.debug(f"Fetched page {page}/{total_pages} of {kind.value}: {len(objects)} objects")
            yield objects

    def iterate(self, kind: AnyTypeKind, cond: Optional[SearchCond] = None) -> Iterator[IdentityObject]:
        for page in self.pages(kind, cond):
            yield from page
