from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

# libs/core/i18n.py -> project_root/config/i18n
DEFAULT_CATALOG_DIR = Path(__file__).resolve().parents[2] / "config" / "i18n"
FALLBACK_LANG = "en"


@lru_cache(maxsize=None)
def _catalog(path: Path) -> Dict[str, str]:
    """Flat ``key -> template`` mapping read from one YAML file."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        return {}
    return {str(k): str(v) for k, v in data.items()}


class I18n:
    """Labels rendered into document content (backlink headings, placeholders).

    Templates come from ``messages.<lang>.yaml``; keys missing in the chosen
    language fall back to English and then to the key itself.
    """

    def __init__(self, lang: str, base_dir: Path | None = None) -> None:
        self.lang = (lang or FALLBACK_LANG).lower()
        self.base_dir = base_dir or DEFAULT_CATALOG_DIR
        self._messages = _catalog(self.base_dir / f"messages.{self.lang}.yaml")
        self._fallback = _catalog(self.base_dir / f"messages.{FALLBACK_LANG}.yaml")

    def t(self, key: str, **params: Any) -> str:
        template = self._messages.get(key) or self._fallback.get(key) or key
        return template.format(**params) if params else template


__all__ = ["I18n"]
