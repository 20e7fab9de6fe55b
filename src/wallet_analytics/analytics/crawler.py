"""Block-range history crawler.

The explorer caps ``page * offset`` for a single query, so a wallet's full
history is retrieved by walking fixed-size block ranges and paginating
inside each range. Each transfer class is crawled by its own sequential
loop; the loops run concurrently with each other.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from wallet_analytics.models import Transaction, TransactionHistory
from wallet_analytics.sources.explorer import ExplorerClient, HistoryClass

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BLOCK_STEP = 2_000_000
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES_PER_RANGE = 20


def block_ranges(current_block: int, step: int = DEFAULT_BLOCK_STEP) -> list[tuple[int, int]]:
    """Partition [0, current_block] into inclusive ranges of ``step`` blocks.

    Example:
        >>> block_ranges(4_500_000)
        [(0, 1999999), (2000000, 3999999), (4000000, 4500000)]
    """
    if step < 1:
        raise ValueError("step must be positive")
    return [
        (start, min(start + step - 1, current_block))
        for start in range(0, max(current_block, 0) + 1, step)
    ]


@dataclass
class ClassCrawl:
    """Result of crawling one transfer class."""

    history_class: HistoryClass
    transactions: list[Transaction] = field(default_factory=list)
    pages_fetched: int = 0
    duplicates: int = 0
    degraded: bool = False


class HistoryCrawler:
    """Retrieves a wallet's deduplicated history from the explorer.

    Within a range, pagination stops at the first page that is short,
    empty or failed. A failed page, or a range that reaches the page cap,
    marks the class as degraded; whatever was collected is kept.

    Example:
        ```python
        crawler = HistoryCrawler(explorer)
        history = await crawler.crawl("0x...", current_block=12_345_678)
        print(len(history.external), history.degraded)
        ```
    """

    def __init__(
        self,
        explorer: ExplorerClient,
        *,
        block_step: int = DEFAULT_BLOCK_STEP,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages_per_range: int = DEFAULT_MAX_PAGES_PER_RANGE,
    ) -> None:
        """Initialize the crawler.

        Args:
            explorer: Explorer adapter used for page requests.
            block_step: Number of blocks per range.
            page_size: Records requested per page.
            max_pages_per_range: Safety cap on pages within one range.
        """
        self._explorer = explorer
        self._block_step = block_step
        self._page_size = page_size
        self._max_pages = max_pages_per_range

    async def crawl_class(
        self,
        history_class: HistoryClass,
        address: str,
        current_block: int,
    ) -> ClassCrawl:
        """Crawl every range and page of one transfer class.

        Args:
            history_class: Transfer class to crawl.
            address: Wallet address (lowercase).
            current_block: Highest block to include.

        Returns:
            ClassCrawl with deduplicated transactions in retrieval order.
        """
        crawl = ClassCrawl(history_class=history_class)
        seen: set[str] = set()

        for start_block, end_block in block_ranges(current_block, self._block_step):
            for page in range(1, self._max_pages + 1):
                result = await self._explorer.get_transactions(
                    history_class,
                    address,
                    start_block=start_block,
                    end_block=end_block,
                    page=page,
                    offset=self._page_size,
                )
                crawl.pages_fetched += 1

                if not result.ok:
                    logger.warning(
                        "Stopping %s range %d-%d at page %d: %s",
                        history_class.name.lower(),
                        start_block,
                        end_block,
                        page,
                        result.error,
                    )
                    crawl.degraded = True
                    break

                records = result.value or []
                for tx in records:
                    if tx.identity in seen:
                        crawl.duplicates += 1
                        continue
                    seen.add(tx.identity)
                    crawl.transactions.append(tx)

                if len(records) < self._page_size:
                    break
            else:
                logger.warning(
                    "%s range %d-%d reached the %d page cap, history may be truncated",
                    history_class.name.lower(),
                    start_block,
                    end_block,
                    self._max_pages,
                )
                crawl.degraded = True

        if crawl.duplicates:
            logger.debug(
                "Dropped %d duplicate %s records for %s",
                crawl.duplicates,
                history_class.name.lower(),
                address,
            )
        return crawl

    async def crawl(self, address: str, current_block: int) -> TransactionHistory:
        """Crawl all transfer classes concurrently.

        Args:
            address: Wallet address (lowercase).
            current_block: Highest block to include.

        Returns:
            TransactionHistory with external transactions sorted by time.
        """
        external, internal, tokens, nfts = await asyncio.gather(
            self.crawl_class(HistoryClass.EXTERNAL, address, current_block),
            self.crawl_class(HistoryClass.INTERNAL, address, current_block),
            self.crawl_class(HistoryClass.TOKEN, address, current_block),
            self.crawl_class(HistoryClass.NFT, address, current_block),
        )
        crawls = (external, internal, tokens, nfts)

        history = TransactionHistory(
            external=tuple(sorted(external.transactions, key=lambda tx: tx.timestamp)),
            internal=tuple(internal.transactions),
            token_transfers=tuple(tokens.transactions),
            nft_transfers=tuple(nfts.transactions),
            degraded=any(c.degraded for c in crawls),
            pages_fetched={c.history_class.name.lower(): c.pages_fetched for c in crawls},
        )
        logger.info(
            "Crawled %s: %d external, %d internal, %d token, %d nft records (degraded=%s)",
            address,
            len(history.external),
            len(history.internal),
            len(history.token_transfers),
            len(history.nft_transfers),
            history.degraded,
        )
        return history
