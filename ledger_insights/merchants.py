"""Merchant name standardization and per-merchant rollups.

Raw counterparty strings from bank and wallet exports vary a lot for the
same merchant (marketplace aliases, utility providers, store suffixes).
Standardization is driven by an ordered list of substring rules stored as
versioned JSON in ``defaults/merchant_rules.json``; the first rule whose
pattern occurs in the cleaned name wins.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .defaults import CONFIG_DIR
from .models import OTHER_LABEL, UNKNOWN_MERCHANT, CategoryStat, MerchantStat, TransactionRecord

DEFAULT_RULES_FILE = CONFIG_DIR / "merchant_rules.json"

_PARENTHETICAL = re.compile(r"[(（]")


@dataclass(frozen=True)
class MerchantRule:
    """Map any name containing one of ``patterns`` onto ``canonical``."""

    patterns: Tuple[str, ...]
    canonical: str
    case_sensitive: bool = True

    def matches(self, name: str) -> bool:
        if self.case_sensitive:
            return any(pattern in name for pattern in self.patterns)
        lowered = name.lower()
        return any(pattern.lower() in lowered for pattern in self.patterns)


def load_rules(path: Optional[Path] = None) -> List[MerchantRule]:
    """Load merchant rules from JSON.

    The file holds ``{"version": 1, "rules": [{"patterns": [...],
    "canonical": "..."}]}``; entries without patterns or a canonical name
    are ignored.
    """
    target = Path(path) if path else DEFAULT_RULES_FILE
    with target.open('r', encoding='utf-8') as handle:
        data = json.load(handle)

    rules: List[MerchantRule] = []
    for entry in data.get('rules', []):
        patterns = tuple(p for p in entry.get('patterns', []) if p)
        canonical = entry.get('canonical', '')
        if not patterns or not canonical:
            continue
        rules.append(
            MerchantRule(
                patterns=patterns,
                canonical=canonical,
                case_sensitive=entry.get('case_sensitive', True),
            )
        )
    return rules


class MerchantNormalizer:
    """Applies an ordered rule list to raw merchant names."""

    def __init__(self, rules: Optional[Sequence[MerchantRule]] = None):
        self.rules: List[MerchantRule] = list(rules) if rules is not None else load_rules()

    def standardize(self, name: Any) -> str:
        if name is None or (isinstance(name, float) and pd.isna(name)):
            return OTHER_LABEL
        raw = str(name)
        if not raw.strip():
            return OTHER_LABEL

        clean = _PARENTHETICAL.split(raw, maxsplit=1)[0].strip()
        for rule in self.rules:
            if rule.matches(clean):
                return rule.canonical
        return clean or raw.strip()


_default_normalizer: Optional[MerchantNormalizer] = None


def default_normalizer() -> MerchantNormalizer:
    # Rules are read-only once loaded, so one instance is shared.
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = MerchantNormalizer()
    return _default_normalizer


def standardize_merchant_name(name: Any, normalizer: Optional[MerchantNormalizer] = None) -> str:
    """Return the canonical label for a raw merchant string.

    >>> standardize_merchant_name('天猫超市(杭州)')
    '淘宝'
    >>> standardize_merchant_name('Corner Bakery (Main St)')
    'Corner Bakery'
    >>> standardize_merchant_name('')
    'Other'
    """
    return (normalizer or default_normalizer()).standardize(name)


def merchant_label(
    record: TransactionRecord,
    normalizer: Optional[MerchantNormalizer] = None,
    *,
    use_description: bool = True,
) -> str:
    """Standardized merchant for a record, falling back to its description."""
    raw = record.merchant or (record.description if use_description else '') or UNKNOWN_MERCHANT
    return standardize_merchant_name(raw, normalizer)


def top_merchants(
    expenses: Iterable[TransactionRecord],
    limit: int = 100,
    normalizer: Optional[MerchantNormalizer] = None,
) -> List[MerchantStat]:
    """Rank merchants by total spend, then by transaction count.

    Args:
        expenses: Outflow records for the period
        limit: Maximum number of merchants to return
        normalizer: Optional custom normalizer

    Returns:
        List of MerchantStat, largest first
    """
    merchants: Dict[str, MerchantStat] = {}
    for record in expenses:
        name = merchant_label(record, normalizer)
        stat = merchants.get(name)
        if stat is None:
            stat = merchants[name] = MerchantStat(name=name)
        amount = record.magnitude
        stat.total_amount += amount
        stat.transaction_count += 1
        breakdown = stat.category_breakdown.setdefault(record.category, CategoryStat())
        breakdown.total_amount += amount
        breakdown.count += 1
        if stat.last_transaction_date is None or record.day > stat.last_transaction_date:
            stat.last_transaction_date = record.day

    ranked = sorted(
        merchants.values(),
        key=lambda m: (-m.total_amount, -m.transaction_count),
    )
    return ranked[:limit]
