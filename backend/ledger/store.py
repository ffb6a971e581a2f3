from threading import RLock
from typing import Any

TABLES = ("users", "categories", "records")


class InMemoryStore:
    def __init__(self) -> None:
        self.lock = RLock()
        self.tables: dict[str, dict[int, dict[str, Any]]] = {name: {} for name in TABLES}
        self.next_ids: dict[str, int] = {name: 1 for name in TABLES}

    def make_id(self, table: str) -> int:
        entity_id = self.next_ids[table]
        self.next_ids[table] = entity_id + 1
        return entity_id
