"""tailwatch - watch a shell's output tail and turn it into snapshots."""

from .config import Settings, get_settings
from .core.engine import SnapshotEngine, build_engine
from .core.risk import assess
from .core.sanitizer import Sanitizer
from .types import Snapshot, Trigger

__version__ = "0.1.0"

__all__ = ["Sanitizer", "Settings", "Snapshot", "SnapshotEngine", "Trigger", "assess", "build_engine", "get_settings"]
