"""
Local rating memory — which apps each device has already rated.

Stored as a small JSON file keyed by device id:
    {"<device id>": {"<listing id>": true, ...}, ...}
The device id lives in a cookie in the visitor's browser, so every
browser has its own record. This is advisory only. Nothing on the store
side stops a second rating from another browser, or from this one after
the cookie is cleared.
"""

import json
import os
import threading
import uuid

from storefront.config import RATED_APPS_PATH

# Every session on the server shares the file
_FILE_LOCK = threading.Lock()


def new_device_id() -> str:
    return uuid.uuid4().hex


class RatingMemory:
    def __init__(self, device_id: str, path: str = RATED_APPS_PATH):
        self.device_id = device_id
        self.path = path

    def _load_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Warning: could not read rating memory {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _load(self) -> dict:
        rated = self._load_all().get(self.device_id)
        return rated if isinstance(rated, dict) else {}

    def has_rated(self, listing_id: str) -> bool:
        return bool(self._load().get(listing_id))

    def remember(self, listing_id: str) -> None:
        with _FILE_LOCK:
            everything = self._load_all()
            rated = everything.get(self.device_id)
            if not isinstance(rated, dict):
                rated = {}
            rated[listing_id] = True
            everything[self.device_id] = rated

            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            # Readers never see a half-written file
            temp_path = f"{self.path}.tmp"
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(everything, f, indent=2)
            os.replace(temp_path, self.path)

    def rated_ids(self) -> set[str]:
        return {key for key, value in self._load().items() if value}
