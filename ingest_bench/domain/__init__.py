from .reading import Chunk, PosePayload, Reading

__all__ = ["Chunk", "PosePayload", "Reading"]
