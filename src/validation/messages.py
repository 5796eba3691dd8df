"""Localized message catalog for validation messages.

Templates live in JSON bundles next to this module, one file per locale
(``messages.json`` is the root bundle, ``messages_de.json`` the German one).
Lookups fall back from the most specific locale to the root bundle, the way
resource bundles do, but the locale is always passed in explicitly.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from src.utils.exceptions import MissingMessageResourceError
from src.utils.logging import get_logger

logger = get_logger(__name__)

MESSAGES_DIR = Path(__file__).parent / "messages"
BUNDLE_NAME = "messages"
BUNDLE_FILE = f"{BUNDLE_NAME}.json"


class MessageCatalog(Protocol):
    """Resolves message keys to locale-rendered templates."""

    def resolve(self, key: str, locale: str) -> str:
        """Return the template for ``key`` or raise MissingMessageResourceError."""
        ...


def normalize_locale(locale: str) -> str:
    """Normalize ``de-DE`` / ``de_de`` style tags to ``de_DE``."""
    parts = locale.replace("-", "_").split("_")
    language = parts[0].lower()
    if len(parts) > 1 and parts[1]:
        return f"{language}_{parts[1].upper()}"
    return language


def candidate_bundles(locale: str) -> List[str]:
    """Bundle suffixes to try for a locale, most specific first."""
    normalized = normalize_locale(locale) if locale else ""
    candidates = []
    if "_" in normalized:
        candidates.append(normalized)
    if normalized:
        candidates.append(normalized.split("_")[0])
    candidates.append("")
    return candidates


def format_message(template: str, *params: Any) -> str:
    """Substitute positional ``{0}``, ``{1}`` placeholders."""
    message = template
    for index, param in enumerate(params):
        message = message.replace("{" + str(index) + "}", str(param))
    return message


class BundledMessageCatalog:
    """Message catalog backed by the JSON bundles shipped with the package."""

    def __init__(self, messages_dir: Optional[Path] = None):
        """Initialize catalog.

        Args:
            messages_dir: Directory holding the bundles, defaults to the
                packaged ``messages`` directory
        """
        self.messages_dir = messages_dir or MESSAGES_DIR
        self._bundles: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def _load_bundle(self, suffix: str) -> Dict[str, str]:
        bundle = self._bundles.get(suffix)
        if bundle is None:
            with self._lock:
                bundle = self._bundles.get(suffix)
                if bundle is None:
                    bundle = self._read_bundle(suffix)
                    self._bundles[suffix] = bundle
        return bundle

    def _read_bundle(self, suffix: str) -> Dict[str, str]:
        name = f"{BUNDLE_NAME}_{suffix}.json" if suffix else BUNDLE_FILE
        path = self.messages_dir / name
        if not path.is_file():
            return {}
        with open(path, encoding="utf-8") as f:
            bundle = json.load(f)
        logger.debug("message_bundle_loaded", bundle=name)
        return bundle

    def resolve(self, key: str, locale: str) -> str:
        """Return the template for ``key`` in ``locale``."""
        for suffix in candidate_bundles(locale):
            template = self._load_bundle(suffix).get(key)
            if template is not None:
                return template
        raise MissingMessageResourceError(key, locale)

    def format(self, key: str, locale: str, *params: Any) -> str:
        """Resolve ``key`` and substitute its positional parameters."""
        return format_message(self.resolve(key, locale), *params)
