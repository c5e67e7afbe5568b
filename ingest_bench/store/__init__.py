from .points import PointsStore
from .schema import DEFAULT_TABLE, recreate_schema

__all__ = ["DEFAULT_TABLE", "PointsStore", "recreate_schema"]
