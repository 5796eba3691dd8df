"""Suppression of known-noisy validation messages."""

from typing import FrozenSet, Iterable

from src.utils.logging import get_logger
from src.validation.messages import MessageCatalog
from src.validation.models import Finding

logger = get_logger(__name__)


def template_prefix(template: str) -> str:
    """Cut a template at its first parameter placeholder.

    A template starting with a placeholder is kept whole, an empty prefix
    would match every message.
    """
    index = template.find("{")
    return template[:index] if index > 0 else template


class MessageFilter:
    """Drops findings whose message starts with a suppressed template.

    Prefixes are resolved once, for one locale, when the filter is built.
    Any key missing from the catalog aborts construction.
    """

    def __init__(self, keys: Iterable[str], catalog: MessageCatalog, locale: str):
        """Initialize filter.

        Args:
            keys: Message template keys to suppress
            catalog: Catalog used to render the templates
            locale: Locale the engine renders its messages in
        """
        self.locale = locale
        self.prefixes: FrozenSet[str] = frozenset(
            template_prefix(catalog.resolve(key, locale)) for key in keys
        )
        logger.info(
            "message_filter_ready", locale=locale, suppressed=len(self.prefixes)
        )

    def is_allowed(self, finding: Finding) -> bool:
        """Whether the finding survives suppression."""
        return not any(finding.message.startswith(p) for p in self.prefixes)
