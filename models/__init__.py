"""
Persistence package: exposes the process-wide `storage` (DBStorage) instance.
The engine is bound later by the app factory via `storage.connect(...)`.
"""
from models.db_storage import DBStorage

storage = DBStorage()
