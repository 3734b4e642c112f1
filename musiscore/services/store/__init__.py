"""MUSISCORE - Store access."""

from musiscore.services.store.pagination import fetch_all, fetch_all_rows
from musiscore.services.store.scoring_store import ScoringStore, SqlAlchemyScoringStore

__all__ = ["fetch_all", "fetch_all_rows", "ScoringStore", "SqlAlchemyScoringStore"]
