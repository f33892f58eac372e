"""Configuration and file helpers."""
import json
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_ENCODING = "utf-8"


def load_config(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path, encoding=DEFAULT_ENCODING) as f:
        return json.load(f)


class FileManager:
    """Read files relative to a base directory, caching contents."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        self._cache: Dict[str, str] = {}

    def read(self, filename: str) -> Optional[str]:
        if filename not in self._cache:
            filepath = self.base_path / filename
            if not filepath.exists():
                return None
            self._cache[filename] = filepath.read_text(encoding=DEFAULT_ENCODING)
        return self._cache[filename]
