from ocrbatch.engine.engine import ReconciliationEngine
from ocrbatch.engine.state_store import FileStateStore, MemoryStateStore, StateStore

__all__ = ["FileStateStore", "MemoryStateStore", "ReconciliationEngine", "StateStore"]
