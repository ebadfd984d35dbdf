"""Chain indexers feeding the shared event store."""

from .base_chain import BaseIndexer, BaseIndexerConfig
from .chain_indexer import ChainIndexer, IndexerConfig, IndexerState, IndexerStatus
from .errors import EventDecodeError, RpcError
from .rpc import JsonRpcClient
from .service import MultiChainIndexerService
from .stellar import StellarIndexer, StellarIndexerConfig
from .store import EventStore

__all__ = [
    "BaseIndexer",
    "BaseIndexerConfig",
    "ChainIndexer",
    "EventDecodeError",
    "EventStore",
    "IndexerConfig",
    "IndexerState",
    "IndexerStatus",
    "JsonRpcClient",
    "MultiChainIndexerService",
    "RpcError",
    "StellarIndexer",
    "StellarIndexerConfig",
]
