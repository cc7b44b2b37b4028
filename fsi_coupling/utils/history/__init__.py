from .history_store import HistoryStore, ResidualSample, SampleRange

__all__ = ["HistoryStore", "ResidualSample", "SampleRange"]
