"""
Metric catalogue and the mapping from daemon responses to samples.

Every metric the exporter can emit is listed in ``CATALOGUE``. Samples are
only built through ``sample()``, so an unknown name can never reach the
output. Bump ``CATALOGUE_VERSION`` when a metric is added, removed or changes
meaning.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from monerod_exporter.errors import DecodeError

CATALOGUE_VERSION = "2"

Number = Union[int, float]


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricSpec:
    name: str
    kind: MetricKind
    help: str


@dataclass(frozen=True)
class Sample:
    """One exposed value; the scrape time is its implicit timestamp"""

    name: str
    kind: MetricKind
    value: Number
    labels: Mapping[str, str] = field(default_factory=dict)


def _specs(*entries: Tuple[str, MetricKind, str]) -> Dict[str, MetricSpec]:
    return {name: MetricSpec(name, kind, help_text) for name, kind, help_text in entries}


G = MetricKind.GAUGE
C = MetricKind.COUNTER

CATALOGUE: Dict[str, MetricSpec] = _specs(
    # Node
    ("monero_node_database_size", G, "Size of the blockchain database in bytes"),
    ("monero_node_free_space", G, "Free space on the database volume in bytes"),
    ("monero_node_grey_peerlist_size", G, "Peers in the grey peer list"),
    ("monero_node_white_peerlist_size", G, "Peers in the white peer list"),
    ("monero_node_connections_count", G, "Active P2P connections by direction"),
    ("monero_node_rpc_connections_count", G, "Active RPC connections"),
    ("monero_node_offline", G, "Whether the node is offline (1=offline)"),
    ("monero_node_synchronized", G, "Whether the node is synchronized (1=synchronized)"),
    ("monero_node_busy_syncing", G, "Whether the node is busy syncing (1=busy)"),
    ("monero_node_update_available", G, "Whether a newer daemon version is available (1=available)"),
    # Network
    ("monero_network_block_size_limit", G, "Maximum allowed block size in bytes"),
    ("monero_network_block_size_median", G, "Median block size of the latest blocks in bytes"),
    ("monero_network_block_weight_limit", G, "Maximum allowed block weight"),
    ("monero_network_block_weight_median", G, "Median block weight of the latest blocks"),
    ("monero_network_difficulty", G, "Current network difficulty"),
    ("monero_network_cumulative_difficulty", C, "Cumulative difficulty of the chain"),
    ("monero_network_height", G, "Current chain length (top block height + 1)"),
    ("monero_network_target", G, "Target block time in seconds"),
    ("monero_network_target_height", G, "Chain height the node is syncing towards"),
    ("monero_network_tx_count", C, "Total number of non-coinbase transactions in the chain"),
    ("monero_network_alt_blocks_count", G, "Number of alternative blocks"),
    # Transaction pool
    ("monero_txpool_bytes_max", G, "Size of the largest pool transaction in bytes"),
    ("monero_txpool_bytes_med", G, "Median pool transaction size in bytes"),
    ("monero_txpool_bytes_min", G, "Size of the smallest pool transaction in bytes"),
    ("monero_txpool_bytes_total", G, "Total size of all pool transactions in bytes"),
    ("monero_txpool_fee_total", G, "Sum of the fees of all pool transactions in atomic units"),
    ("monero_txpool_double_spends", G, "Pool transactions marked as double spends"),
    ("monero_txpool_txs_failing", G, "Pool transactions failing verification"),
    ("monero_txpool_txs_not_relayed", G, "Pool transactions not yet relayed"),
    ("monero_txpool_oldest_tx", G, "Unix time of the oldest pool transaction"),
    ("monero_txpool_txs_above_10min", G, "Pool transactions older than 10 minutes"),
    ("monero_txpool_txs_total", G, "Total number of pool transactions"),
    ("monero_txpool_histo_98pc", G, "Age in seconds under which 98% of pool transactions fall"),
    # Block window, per block
    ("monero_block_size", G, "Size in bytes of a block in the window"),
    ("monero_block_txes", G, "Transactions in a block in the window"),
    ("monero_block_interval_seconds", G, "Seconds between a block and its predecessor in the window"),
    # Block window, aggregates
    ("monero_blocks_window_size", G, "Number of blocks in the block window"),
    ("monero_blocks_window_start_height", G, "Height of the oldest block in the window"),
    ("monero_blocks_window_end_height", G, "Height of the newest block in the window"),
    ("monero_blocks_avg_txes", G, "Average transactions per block over the last block_count blocks"),
    ("monero_blocks_max_txes", G, "Maximum transactions per block over the last block_count blocks"),
    ("monero_blocks_avg_reward", G, "Average block reward over the last block_count blocks in atomic units"),
    ("monero_blocks_max_reward", G, "Maximum block reward over the last block_count blocks in atomic units"),
    ("monero_blocks_avg_size", G, "Average block size over the last block_count blocks in bytes"),
    ("monero_blocks_max_size", G, "Maximum block size over the last block_count blocks in bytes"),
    ("monero_blocks_avg_interval_seconds", G, "Average time between blocks over the last block_count blocks"),
    ("monero_blocks_min_interval_seconds", G, "Shortest time between blocks over the last block_count blocks"),
    ("monero_blocks_max_interval_seconds", G, "Longest time between blocks over the last block_count blocks"),
    # Exporter
    ("monero_exporter_build_info", G, "Exporter version and metric catalogue version"),
    ("monero_exporter_scrape_duration_seconds", G, "Time spent collecting metrics from the daemon"),
)

del G, C


def sample(name: str, value: Number, labels: Optional[Mapping[str, str]] = None) -> Sample:
    """Build a sample for a catalogue metric; unknown names raise ``KeyError``"""
    spec = CATALOGUE[name]
    return Sample(name=spec.name, kind=spec.kind, value=value, labels=dict(labels or {}))


@dataclass(frozen=True)
class DaemonSnapshot:
    """RPC responses gathered during one collection cycle"""

    info: Dict[str, Any]
    pool_stats: Optional[Dict[str, Any]] = None


# ------------------------
# FIELD MAPPINGS
# ------------------------
# (metric name, response field, labels)
NODE_FIELDS = [
    ("monero_node_database_size", "database_size", None),
    ("monero_node_free_space", "free_space", None),
    ("monero_node_grey_peerlist_size", "grey_peerlist_size", None),
    ("monero_node_white_peerlist_size", "white_peerlist_size", None),
    ("monero_node_connections_count", "incoming_connections_count", {"direction": "incoming"}),
    ("monero_node_connections_count", "outgoing_connections_count", {"direction": "outgoing"}),
    ("monero_node_rpc_connections_count", "rpc_connections_count", None),
    ("monero_node_offline", "offline", None),
    ("monero_node_synchronized", "synchronized", None),
    ("monero_node_busy_syncing", "busy_syncing", None),
    ("monero_node_update_available", "update_available", None),
]

NETWORK_FIELDS = [
    ("monero_network_block_size_limit", "block_size_limit", None),
    ("monero_network_block_size_median", "block_size_median", None),
    ("monero_network_block_weight_limit", "block_weight_limit", None),
    ("monero_network_block_weight_median", "block_weight_median", None),
    ("monero_network_difficulty", "difficulty", None),
    ("monero_network_cumulative_difficulty", "cumulative_difficulty", None),
    ("monero_network_height", "height", None),
    ("monero_network_target", "target", None),
    ("monero_network_target_height", "target_height", None),
    ("monero_network_tx_count", "tx_count", None),
    ("monero_network_alt_blocks_count", "alt_blocks_count", None),
]

TXPOOL_FIELDS = [
    ("monero_txpool_bytes_max", "bytes_max", None),
    ("monero_txpool_bytes_med", "bytes_med", None),
    ("monero_txpool_bytes_min", "bytes_min", None),
    ("monero_txpool_bytes_total", "bytes_total", None),
    ("monero_txpool_fee_total", "fee_total", None),
    ("monero_txpool_double_spends", "num_double_spends", None),
    ("monero_txpool_txs_failing", "num_failing", None),
    ("monero_txpool_txs_not_relayed", "num_not_relayed", None),
    ("monero_txpool_oldest_tx", "oldest", None),
    ("monero_txpool_txs_above_10min", "num_10m", None),
    ("monero_txpool_txs_total", "txs_total", None),
    ("monero_txpool_histo_98pc", "histo_98pc", None),
]


def _numeric(source: str, key: str, value: Any) -> Number:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise DecodeError(source, f"field {key!r} is not numeric: {value!r}")


def _map_fields(source: str, response: Mapping[str, Any], fields) -> List[Sample]:
    samples = []
    for name, key, labels in fields:
        # Older daemons omit some fields and some report null; leave the metric out rather than report 0
        value = response.get(key)
        if value is None:
            continue
        samples.append(sample(name, _numeric(source, key, value), labels))
    return samples


def map_node(info: Mapping[str, Any]) -> List[Sample]:
    return _map_fields("get_info", info, NODE_FIELDS)


def map_network(info: Mapping[str, Any]) -> List[Sample]:
    return _map_fields("get_info", info, NETWORK_FIELDS)


def map_txpool(pool_stats: Mapping[str, Any]) -> List[Sample]:
    return _map_fields("get_transaction_pool_stats", pool_stats, TXPOOL_FIELDS)


def map_snapshot(snapshot: DaemonSnapshot) -> List[Sample]:
    """
    Convert one cycle's daemon responses into samples.

    Args:
        snapshot: Responses of ``get_info`` and ``get_transaction_pool_stats``

    Returns:
        Node, network and transaction pool samples in catalogue order. Pool
        samples are left out when the snapshot carries no pool stats.

    Raises:
        DecodeError: when a known field holds a non-numeric value
    """
    samples = map_node(snapshot.info)
    samples.extend(map_network(snapshot.info))
    if snapshot.pool_stats is not None:
        samples.extend(map_txpool(snapshot.pool_stats))
    return samples
