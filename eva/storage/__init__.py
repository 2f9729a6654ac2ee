"""Data stores used for persistence and tool lookups."""

from eva.storage.base import DataStore, Query, Row
from eva.storage.memory import InMemoryDataStore
from eva.storage.supabase import SupabaseStore

__all__ = ["DataStore", "InMemoryDataStore", "Query", "Row", "SupabaseStore"]
