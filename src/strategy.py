"""
Matching strategy contract.

The exact and fuzzy matchers and the orchestrator take a MatchStrategy for every
caller-specific decision: brand/model extraction, brand equivalence, candidate
filtering, candidate priority and tokenization. DefaultMatchStrategy implements it on
top of InfoExtractor and the frozen config; tests and callers can swap in their own.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from dictionaries import PRIORITY_OTHER, PRIORITY_STANDARD, PRIORITY_VERSION_MATCH
from extractor import InfoExtractor
from text_normalize import tokenize

logger = logging.getLogger(__name__)


class MatchStrategy(ABC):

    @abstractmethod
    def extract_brand(self, text: str) -> Optional[str]:
        ...

    @abstractmethod
    def extract_model(self, text: str, brand: Optional[str] = None) -> Optional[str]:
        """Normalized model key, or None."""

    @abstractmethod
    def is_brand_match(self, input_brand: Optional[str], candidate_brand: Optional[str]) -> bool:
        """Symmetric brand equivalence, phonetic spellings and aliases included."""

    @abstractmethod
    def should_filter(self, input_text: str, candidate_name: str) -> bool:
        """True when the candidate must not be offered for this input at all."""

    @abstractmethod
    def get_priority(self, input_text: str, candidate_name: str) -> int:
        ...

    @abstractmethod
    def tokenize(self, text: str) -> List[str]:
        ...

    def brand_keys(self, brand: Optional[str]) -> List[str]:
        """Keys under which the catalog's brand index may hold this brand."""
        if not brand:
            return []
        return list(dict.fromkeys([brand, brand.lower()]))


class DefaultMatchStrategy(MatchStrategy):

    def __init__(self, extractor: InfoExtractor):
        self.extractor = extractor
        self.config = extractor.config

    def extract_brand(self, text: str) -> Optional[str]:
        return self.extractor.extract_brand(text).value

    def extract_model(self, text: str, brand: Optional[str] = None) -> Optional[str]:
        return self.extractor.extract_model(text, brand).value

    def is_brand_match(self, input_brand: Optional[str], candidate_brand: Optional[str]) -> bool:
        return self.extractor.brands_equivalent(input_brand, candidate_brand)

    def brand_keys(self, brand: Optional[str]) -> List[str]:
        canonical = self.extractor.canonical_brand(brand)
        if canonical is None:
            return []
        return list(dict.fromkeys([canonical, *self.extractor.brand_forms(canonical)]))

    def filter_reason(self, input_text: str, candidate_name: str) -> Optional[str]:
        """Why a candidate is excluded for this input, or None when it is allowed."""
        text = (input_text or '').lower()
        name = (candidate_name or '').lower()

        for keyword in self.config.gift_box_keywords + self.config.gift_keywords:
            if keyword in name and keyword not in text:
                return f"gift/bundle keyword '{keyword}'"

        # Bluetooth and eSIM editions are different devices
        if '蓝牙' in text and 'esim' in name:
            return 'eSIM edition for a Bluetooth input'
        if 'esim' in text and '蓝牙' in name:
            return 'Bluetooth edition for an eSIM input'

        for keyword in self.config.accessory_keywords:
            if keyword in name and keyword not in text:
                exempt_words = self.config.accessory_exemptions.get(keyword, ())
                if any(word in text for word in exempt_words):
                    continue
                return f"accessory keyword '{keyword}'"
        return None

    def should_filter(self, input_text: str, candidate_name: str) -> bool:
        reason = self.filter_reason(input_text, candidate_name)
        if reason:
            logger.debug("Filtered %r: %s", candidate_name, reason)
        return reason is not None

    def get_priority(self, input_text: str, candidate_name: str) -> int:
        """
        3: plain SPU (no gift-box wording, no network edition label)
        2: network edition label that the input also carries
        1: everything else
        """
        text = (input_text or '').lower()
        name = (candidate_name or '').lower()
        has_gift_box = any(keyword in name for keyword in self.config.gift_box_keywords)
        networks = [kw.lower() for kw in self.config.network_version_keywords if kw.lower() in name]
        if not has_gift_box and not networks:
            return PRIORITY_STANDARD
        if networks and any(kw in text for kw in networks):
            return PRIORITY_VERSION_MATCH
        return PRIORITY_OTHER

    def tokenize(self, text: str) -> List[str]:
        return tokenize(text)
