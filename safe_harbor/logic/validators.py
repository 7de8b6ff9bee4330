# safe_harbor/logic/validators.py

"""Validation strategies applied to raw rule matches before they become spans."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Highest age that Safe Harbor allows to be kept verbatim.
MAX_UNAGGREGATED_AGE = 89


class ValidationLogic:
    """Utility methods shared by validators."""

    # Pre-compiled regex patterns for performance
    FIRST_NUMBER = re.compile(r"\d+")

    @staticmethod
    def first_number(text: str) -> Optional[int]:
        """Returns the first run of digits in text as an int, if any."""
        found = ValidationLogic.FIRST_NUMBER.search(text)
        return int(found.group(0)) if found else None


class ValidatorStrategy(ABC):
    """Base class for match validators."""

    @abstractmethod
    def validate(self, text: str) -> bool:
        """Decides whether a raw match should be committed as a span.

        Args:
            text: Matched substring

        Returns:
            True if the match is kept
        """
        pass


class AgeOver89Validator(ValidatorStrategy):
    """Commits an age match only when the embedded age exceeds 89."""

    def __init__(self, threshold: int = MAX_UNAGGREGATED_AGE):
        self.threshold = threshold

    def validate(self, text: str) -> bool:
        age = ValidationLogic.first_number(text)
        return age is not None and age > self.threshold


class IPv4Validator(ValidatorStrategy):
    """Rejects dotted quads with an octet above 255 (e.g. version strings)."""

    def validate(self, text: str) -> bool:
        octets = text.split(".")
        if len(octets) != 4:
            return False
        return all(o.isdigit() and int(o) <= 255 for o in octets)


# Validators are stateless, so one instance per name is shared.
_validator_cache: Dict[str, ValidatorStrategy] = {}


def get_validator(name: str) -> Optional[ValidatorStrategy]:
    """Factory method to retrieve a validator by its registry name.

    Args:
        name: Validator name used in patterns.yaml (e.g. 'age_over_89')

    Returns:
        ValidatorStrategy instance or None if the name is unknown
    """
    if name in _validator_cache:
        return _validator_cache[name]

    lookup = {
        "age_over_89": AgeOver89Validator,
        "ipv4": IPv4Validator,
    }

    validator_class = lookup.get(name)

    if validator_class:
        instance = validator_class()
        _validator_cache[name] = instance
        return instance

    logger.warning(f"No validator found for name: {name}")
    return None
