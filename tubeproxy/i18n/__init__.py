import json
import logging
import os
from typing import Any, Dict, Optional

from tubeproxy.config.settings import config

logger = logging.getLogger(__name__)

LOCALES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "locales")


def _lookup(catalog: Dict[str, Any], key: str) -> Optional[Any]:
    """Walk a dotted key ("error.invalid_url") through a nested catalog"""
    value: Any = catalog
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


class I18n:
    """Client-facing messages, looked up by key in the en/ja catalogs"""

    def __init__(self, locales_dir: str = LOCALES_DIR):
        self.locales: Dict[str, Dict[str, Any]] = {}
        self.default_locale = config.i18n.default_locale
        self.load_locales(locales_dir)

    def load_locales(self, locales_dir: str):
        if not os.path.isdir(locales_dir):
            logger.warning(f"Locales directory not found at {locales_dir}")
            return

        for filename in sorted(os.listdir(locales_dir)):
            if not filename.endswith(".json"):
                continue
            locale_code = filename[:-5]
            try:
                with open(os.path.join(locales_dir, filename), "r", encoding="utf-8") as f:
                    self.locales[locale_code] = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading locale {locale_code}: {e}")

    def get(self, key: str, locale: Optional[str] = None, **kwargs) -> str:
        """
        Translate key for locale, falling back to the default locale and then
        to the key itself. Missing format params leave the template as is.
        """
        for candidate in (locale, self.default_locale, "en"):
            value = _lookup(self.locales.get(candidate) or {}, key)
            if value is not None:
                break
        else:
            return key

        if not isinstance(value, str):
            return str(value)
        try:
            return value.format(**kwargs)
        except KeyError:
            return value


i18n = I18n()
