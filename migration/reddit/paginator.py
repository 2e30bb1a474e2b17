from __future__ import annotations

import logging
from typing import Any, AsyncIterator, List

from .client import RedditApiClient
from .errors import AuthError, HttpError, ItemOperationError, ListingError
from .models import Credential, ItemPage
from .options import ListingKind

logger = logging.getLogger(__name__)


class Paginator:
    """
    Walks a cursor-based listing for one account.

    The next request uses the `after` cursor returned by the server. Iteration
    stops on a short page or a missing cursor; `max_pages` guards against a
    listing that never runs dry.
    """

    def __init__(self, client: RedditApiClient, page_size: int = 100, max_pages: int = 100):
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    async def iter_pages(
        self,
        credential: Credential,
        kind: ListingKind,
        detailed: bool = False,
    ) -> AsyncIterator[ItemPage]:
        """Yield pages of fullnames, or of SubredditInfo / SavedPostInfo records when `detailed`."""
        fetch = self.client.fetch_listing_details if detailed else self.client.fetch_listing_page
        after = None
        for page_no in range(1, self.max_pages + 1):
            try:
                page = await fetch(credential, kind, after=after, limit=self.page_size)
            except HttpError as e:
                if e.status in (401, 403):
                    raise AuthError(
                        f"{credential.role.value} account rejected while listing {kind.value} (status {e.status})",
                        role=credential.role.value,
                        status=e.status,
                    ) from e
                raise ListingError(f"failed to fetch {kind.value} page {page_no}: {e}", kind=kind.value, status=e.status) from e
            except ItemOperationError as e:
                raise ListingError(f"failed to fetch {kind.value} page {page_no}: {e}", kind=kind.value) from e
            except ValueError as e:
                raise ListingError(f"unreadable {kind.value} page {page_no}: {e}", kind=kind.value) from e

            logger.debug("[paginator] %s page %d: %d items, after=%s", kind.value, page_no, page.size, page.after)
            yield page

            # size counts unreadable children too, so they never make a full page look short
            if page.size < self.page_size or page.exhausted:
                return
            after = page.after

        raise ListingError(
            f"exceeded {self.max_pages} pages fetching {kind.value}; last cursor {after}",
            kind=kind.value,
        )

    async def fetch_all_identifiers(self, credential: Credential, kind: ListingKind) -> List[str]:
        """Drain the listing into a list of fullnames."""
        out: List[str] = []
        async for page in self.iter_pages(credential, kind):
            out.extend(page.items)
        logger.info("[paginator] fetched %d %s for %s", len(out), kind.value, credential.username or credential.role.value)
        return out

    async def count(self, credential: Credential, kind: ListingKind) -> int:
        total = 0
        async for page in self.iter_pages(credential, kind):
            total += len(page.items)
        return total

    async def fetch_all_details(self, credential: Credential, kind: ListingKind) -> List[Any]:
        """Drain the listing into SubredditInfo or SavedPostInfo records."""
        out: List[Any] = []
        async for page in self.iter_pages(credential, kind, detailed=True):
            out.extend(page.items)
        logger.info("[paginator] fetched %d detailed %s", len(out), kind.value)
        return out
