"""
Admin-editable JSON documents (site config, shipping config).

Services receive a ConfigStore at construction; where the documents live
is decided by the backend handed to the store.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

from config import CONFIG_DIR
from database import get_storage
from sql_storage import ConfigDocumentRow

SITE_CONFIG_KEY = "site"
SHIPPING_CONFIG_KEY = "shipping"


class ConfigBackend(ABC):
    @abstractmethod
    def load(self, key: str) -> Optional[dict]: ...

    @abstractmethod
    def save(self, key: str, document: Optional[dict]) -> None: ...


class MemoryConfigBackend(ConfigBackend):
    def __init__(self):
        self._documents = {}

    def load(self, key):
        document = self._documents.get(key)
        return dict(document) if document is not None else None

    def save(self, key, document):
        self._documents[key] = dict(document) if document is not None else None


class JsonFileConfigBackend(ConfigBackend):
    """One ``<key>.json`` file per document; a cleared document is stored as ``null``."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key):
        return os.path.join(self.directory, f"{key}.json")

    def load(self, key):
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key, document):
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)


class SqlConfigBackend(ConfigBackend):
    """Documents stored as rows of the ``config_documents`` table."""

    def __init__(self, session_factory):
        self.Session = session_factory

    def load(self, key):
        with self.Session() as session:
            row = session.get(ConfigDocumentRow, key)
            return row.document if row is not None else None

    def save(self, key, document):
        with self.Session.begin() as session:
            row = session.get(ConfigDocumentRow, key)
            if row is None:
                session.add(ConfigDocumentRow(key=key, document=document))
            else:
                row.document = document


class ConfigStore:
    def __init__(self, backend: ConfigBackend):
        self.backend = backend
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            return self.backend.load(key)

    def put(self, key: str, document: Optional[dict]) -> None:
        with self._lock:
            self.backend.save(key, document)
        logging.info(f"SYSTEM: Config '{key}' {'effacee' if document is None else 'enregistree'}")


_config_store: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    """Process-wide store, kept next to the data: SQL rows or JSON files."""
    global _config_store
    if _config_store is None:
        storage = get_storage()
        session_factory = getattr(storage, "Session", None)
        if session_factory is not None:
            _config_store = ConfigStore(SqlConfigBackend(session_factory))
        else:
            _config_store = ConfigStore(JsonFileConfigBackend(CONFIG_DIR))
    return _config_store
