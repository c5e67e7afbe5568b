from .bulk_writer import BulkWriter
from .results import ChunkResult, WriteStage
from .retry import RetryConfig

__all__ = ["BulkWriter", "ChunkResult", "RetryConfig", "WriteStage"]
