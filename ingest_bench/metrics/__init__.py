from .collector import IngestMetrics

__all__ = ["IngestMetrics"]
