from .local_storage import LocalStorage, MemoryStorage, SqlStorage, read_json, write_json

__all__ = ["LocalStorage", "MemoryStorage", "SqlStorage", "read_json", "write_json"]
