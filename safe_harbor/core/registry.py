# safe_harbor/core/registry.py

"""Pattern registry: the immutable, ordered table of Safe Harbor rules."""

import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import (
    ConstantReplacement,
    PatternRule,
    PrefixPreservingReplacement,
    Replacement,
)
from safe_harbor.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS_PATH = Path(__file__).parent / "patterns.yaml"

KNOWN_VALIDATORS = frozenset({"age_over_89", "ipv4"})


class PatternRegistry:
    """Singleton registry of pattern rules.

    Loads rule definitions once from patterns.yaml and keeps them as an
    immutable tuple for the application lifecycle. The tuple is shared
    read-only across concurrent scans.
    """

    _instance: Optional["PatternRegistry"] = None
    _lock = threading.Lock()

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else DEFAULT_PATTERNS_PATH
        self._rules: Tuple[PatternRule, ...] = self._load_rules()
        self._by_name: Dict[str, PatternRule] = {r.name: r for r in self._rules}

    @classmethod
    def get_instance(cls) -> "PatternRegistry":
        """Returns the process-wide registry built from the bundled rules."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def rules(self) -> Tuple[PatternRule, ...]:
        return self._rules

    def get_rule(self, name: str) -> PatternRule:
        """Returns a rule by name.

        Raises:
            KeyError: If no rule has that name.
        """
        return self._by_name[name]

    def rules_for(self, category: IdentifierCategory) -> List[PatternRule]:
        return [r for r in self._rules if r.category is category]

    def _load_rules(self) -> Tuple[PatternRule, ...]:
        """Reads and validates the rules file.

        Raises:
            ConfigurationError: If the file is missing, unparsable, or invalid.
        """
        if not self.path.exists():
            error_msg = f"Pattern file not found: {self.path}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to parse {self.path.name}: {e}") from e

        if not isinstance(config, dict) or not config.get("rules"):
            raise ConfigurationError("Pattern file is empty or has no 'rules' section")

        rules = tuple(
            self._build_rule(definition, order)
            for order, definition in enumerate(config["rules"])
        )

        names = [r.name for r in rules]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate rule names: {duplicates}")

        covered = {r.category for r in rules}
        missing = [c.name for c in IdentifierCategory if c not in covered]
        if missing:
            error_msg = f"No rule registered for categories: {missing}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        logger.info(
            "Pattern rules loaded successfully",
            extra={"patterns_path": str(self.path), "rule_count": len(rules)},
        )
        return rules

    @staticmethod
    def _build_rule(definition: Any, order: int) -> PatternRule:
        if not isinstance(definition, dict):
            raise ConfigurationError(f"Rule #{order} must be a mapping")

        missing = [k for k in ("name", "category", "regex", "replacement") if k not in definition]
        if missing:
            raise ConfigurationError(f"Rule #{order} is missing keys: {missing}")

        name = str(definition["name"])

        try:
            category = IdentifierCategory[definition["category"]]
        except KeyError:
            raise ConfigurationError(
                f"Rule '{name}' has unknown category '{definition['category']}'"
            ) from None

        ignore_case = bool(definition.get("ignore_case", True))
        regex = str(definition["regex"])
        try:
            re.compile(regex, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            raise ConfigurationError(f"Rule '{name}' has an invalid regex: {e}") from e

        validator = definition.get("validator")
        if validator is not None and validator not in KNOWN_VALIDATORS:
            raise ConfigurationError(f"Rule '{name}' uses unknown validator '{validator}'")

        score = float(definition.get("score", 0.85))
        if not 0.0 < score <= 1.0:
            raise ConfigurationError(f"Rule '{name}' score must be in (0, 1], got {score}")

        priority = definition.get("priority")
        if priority is not None and (
            isinstance(priority, bool) or not isinstance(priority, int) or priority < 0
        ):
            raise ConfigurationError(
                f"Rule '{name}' priority must be a non-negative integer, got {priority!r}"
            )

        return PatternRule(
            name=name,
            category=category,
            regex=regex,
            replacement=_build_replacement(name, definition["replacement"]),
            order=order,
            score=score,
            ignore_case=ignore_case,
            validator=validator,
            priority=priority,
        )


def _build_replacement(rule_name: str, config: Any) -> Replacement:
    if not isinstance(config, dict) or not config.get("token"):
        raise ConfigurationError(f"Rule '{rule_name}' replacement needs a 'token'")

    token = str(config["token"])
    label = config.get("label")
    if label is None:
        return ConstantReplacement(token)

    try:
        compiled = re.compile(f"(?:{label})", re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(f"Rule '{rule_name}' has an invalid label: {e}") from e

    return PrefixPreservingReplacement(
        token=token, label=compiled, separator=str(config.get("separator", ": "))
    )
