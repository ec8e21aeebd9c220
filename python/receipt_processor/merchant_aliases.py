"""
Merchant Alias Module

Cleans OCR'd merchant names and collapses known brand variants to one
canonical name.
"""

import logging
import re
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class MerchantAliases:
    """Merchant name cleanup backed by an alias table."""

    PREFIX_PATTERN = re.compile(r'^\s*(To|Paid to|Merchant)\s*:\s*', re.IGNORECASE)
    SUFFIX_PATTERN = re.compile(r'\s+(Online|Digital|Payments?|Services?)$', re.IGNORECASE)

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the alias table.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self._aliases: dict[str, list[str]] = {}
        self._load_aliases()

    def _load_aliases(self) -> None:
        """Load merchant aliases from config file."""
        aliases_file = self.config_dir / "merchant_aliases.yaml"

        if not aliases_file.exists():
            logger.warning(f"Merchant aliases file not found: {aliases_file}")
            return

        with open(aliases_file) as f:
            data = yaml.safe_load(f) or {}

        self._aliases = {
            canonical: [str(a).lower() for a in (aliases or [])]
            for canonical, aliases in (data.get("aliases") or {}).items()
        }
        logger.info(f"Loaded aliases for {len(self._aliases)} merchants")

    @property
    def canonical_names(self) -> list[str]:
        return list(self._aliases)

    def add_alias(self, canonical: str, alias: str) -> None:
        """Add an alias at runtime (not persisted)."""
        self._aliases.setdefault(canonical, []).append(alias.lower())

    def normalize(self, merchant: str) -> str:
        """Clean a merchant name and resolve aliases.

        Args:
            merchant: Raw merchant text

        Returns:
            Canonical merchant name, or the cleaned title-cased text
        """
        if not merchant:
            return ""

        cleaned = self.PREFIX_PATTERN.sub('', merchant)
        cleaned = self.SUFFIX_PATTERN.sub('', cleaned.strip()).strip()
        cleaned = re.sub(r'\s+', ' ', cleaned)
        cleaned = title_case(cleaned)

        lowered = cleaned.lower()
        for canonical, aliases in self._aliases.items():
            if any(alias in lowered for alias in aliases):
                return canonical

        return cleaned


def title_case(text: str) -> str:
    """Capitalize the first letter of each word, lowercasing the rest."""
    return re.sub(r'\b\w+', lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)
