from .adapter import PersistenceAdapter
from .stores import JsonFileStore, KeyValueStore, MemoryStore, create_store

__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore", "PersistenceAdapter", "create_store"]
