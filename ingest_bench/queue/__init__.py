from .chunk_queue import ChunkQueue, QueueStats

__all__ = ["ChunkQueue", "QueueStats"]
