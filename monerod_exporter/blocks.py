"""
Statistics over the most recent blocks of the chain.

The window is the ``N`` blocks ending at the chain tip. Inter-block times are
only taken between blocks inside the window, so the oldest block never gets
one. Window aggregates are computed once per configured span over the
newest blocks of the already fetched window.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from monerod_exporter.client import BlockHeader, MonerodClient
from monerod_exporter.errors import DecodeError
from monerod_exporter.metrics import Sample, sample

logger = logging.getLogger(__name__)


def window_bounds(tip_height: int, window_size: int) -> Tuple[int, int]:
    """First and last height of a window of ``window_size`` blocks ending at ``tip_height``"""
    return max(0, tip_height - window_size + 1), tip_height


def block_intervals(headers: Sequence[BlockHeader]) -> List[Tuple[BlockHeader, int]]:
    """Pair each block with the seconds elapsed since the previous block of the window"""
    ordered = sorted(headers, key=lambda h: h.height)
    return [
        (current, current.timestamp - previous.timestamp)
        for previous, current in zip(ordered, ordered[1:])
    ]


def _span_samples(span: int, headers: Sequence[BlockHeader]) -> List[Sample]:
    """Aggregates over ``headers``, labelled with the configured span"""
    labels = {"block_count": str(span)}
    samples = []

    main_chain = [h for h in headers if not h.orphan]
    if main_chain:
        txes = [h.num_txes for h in main_chain]
        sizes = [h.size for h in main_chain]
        samples.append(sample("monero_blocks_avg_txes", sum(txes) / len(txes), labels))
        samples.append(sample("monero_blocks_max_txes", max(txes), labels))

        rewards = [h.reward for h in main_chain if h.reward is not None]
        if rewards:
            samples.append(sample("monero_blocks_avg_reward", sum(rewards) / len(rewards), labels))
            samples.append(sample("monero_blocks_max_reward", max(rewards), labels))

        samples.append(sample("monero_blocks_avg_size", sum(sizes) / len(sizes), labels))
        samples.append(sample("monero_blocks_max_size", max(sizes), labels))

    seconds = [interval for _, interval in block_intervals(headers)]
    if seconds:
        samples.append(sample("monero_blocks_avg_interval_seconds", sum(seconds) / len(seconds), labels))
        samples.append(sample("monero_blocks_min_interval_seconds", min(seconds), labels))
        samples.append(sample("monero_blocks_max_interval_seconds", max(seconds), labels))

    return samples


def normalize_spans(spans: Iterable[int]) -> List[int]:
    """Positive spans, ascending, each once"""
    return sorted({span for span in spans if span > 0})


def summarize_window(headers: Sequence[BlockHeader], spans: Optional[Iterable[int]] = None) -> List[Sample]:
    """
    Per-block and window-level samples for the given headers.

    Every span ``n`` in ``spans`` (default: the whole window) gets its own
    set of aggregates over the newest ``n`` blocks, labelled
    ``block_count="n"``. A span longer than the window uses every block
    available. Averages and maxima of size, transactions and reward skip
    orphaned blocks and are left out when no block qualifies. Interval
    statistics need at least two blocks. Block timestamps are set by miners
    and may go backwards, so an interval can be negative.
    """
    if not headers:
        return []

    ordered = sorted(headers, key=lambda h: h.height)
    spans = normalize_spans(spans if spans is not None else [len(ordered)])

    samples = []
    for header in ordered:
        labels = {"height": str(header.height)}
        samples.append(sample("monero_block_size", header.size, labels))
        samples.append(sample("monero_block_txes", header.num_txes, labels))
    for header, interval in block_intervals(ordered):
        samples.append(sample("monero_block_interval_seconds", interval, {"height": str(header.height)}))

    samples.append(sample("monero_blocks_window_size", len(ordered)))
    samples.append(sample("monero_blocks_window_start_height", ordered[0].height))
    samples.append(sample("monero_blocks_window_end_height", ordered[-1].height))

    for span in spans:
        samples.extend(_span_samples(span, ordered[-span:]))

    return samples


class BlockWindowAggregator:
    def __init__(self, client: MonerodClient):
        self.client = client

    async def fetch_window(self, window_size: int) -> List[BlockHeader]:
        """Headers of the ``window_size`` most recent blocks, oldest first"""
        if window_size <= 0:
            return []

        tip = await self.client.get_last_block_header()
        start, end = window_bounds(tip.height, window_size)
        headers = sorted(await self.client.get_block_headers_range(start, end), key=lambda h: h.height)

        # A gap would stretch an interval over missing blocks and a duplicate
        # would emit the same series twice
        heights = [h.height for h in headers]
        if heights != list(range(start, end + 1)):
            raise DecodeError(
                "get_block_headers_range",
                f"headers do not cover blocks {start}..{end} exactly once: got {heights}",
            )
        logger.debug(f"Fetched {len(headers)} block headers for heights {start}..{end}")
        return headers

    async def aggregate(self, window_size: int, spans: Optional[Iterable[int]] = None) -> List[Sample]:
        """
        Fetch the block window and derive its samples.

        A ``window_size`` of zero or less disables the window: nothing is
        fetched and no samples are produced. ``spans`` defaults to the
        window size. Any RPC failure propagates.
        """
        headers = await self.fetch_window(window_size)
        return summarize_window(headers, spans if spans is not None else [window_size])
