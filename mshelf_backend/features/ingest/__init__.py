"""Ingestion: upload intake, debounce, stability wait, processing passes."""
from .debounce import Debouncer
from .intake import UploadIntake
from .pipeline import ProcessingPipeline
from .stability import StabilityMonitor
from .state import ProcessingState
from .walker import FolderWalker, WalkStats
from .watcher import InputWatcher

__all__ = [
    "Debouncer",
    "FolderWalker",
    "InputWatcher",
    "ProcessingPipeline",
    "ProcessingState",
    "StabilityMonitor",
    "UploadIntake",
    "WalkStats",
]
