"""
Configuration store - persisted rules and settings.
"""

import json
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Tuple

from desk_automation.core.errors import ConfigurationError, RuleNotFound
from desk_automation.scheduling.models import AutomationRule

from .backends import StorageBackend
from .settings import GlobalSettings

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"


class ConfigurationStore:
    """
    Persistent collection of automation rules plus global settings.

    Every mutating call saves through the backend immediately. Load and save
    failures raise ConfigurationError.

    Example:
        store = ConfigurationStore(YamlFileBackend("~/.config/desk-automation/config.yaml"))
        rules, settings = store.load()
        store.add_rule(rule)
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._rules: List[AutomationRule] = []
        self._settings = GlobalSettings()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def rules(self) -> List[AutomationRule]:
        return list(self._rules)

    @property
    def settings(self) -> GlobalSettings:
        return self._settings

    # =========================================================================
    # Load / Save
    # =========================================================================

    def load(self) -> Tuple[List[AutomationRule], GlobalSettings]:
        """
        Load rules and settings from the backend.

        An empty backend yields no rules and default settings.

        Raises:
            ConfigurationError: If the document cannot be read or parsed
        """
        try:
            data = self._backend.read() or {}
            rules, settings = self._parse_document(data)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError("Failed to load configuration", e) from e

        self._rules = rules
        self._settings = settings
        logger.info(f"Loaded {len(rules)} automation rules")
        return self.rules, self._settings

    def save(
        self,
        rules: Optional[List[AutomationRule]] = None,
        settings: Optional[GlobalSettings] = None,
    ) -> None:
        """
        Write the current state, optionally replacing rules and/or settings.

        The in-memory state changes only once the backend write succeeds.

        Raises:
            ConfigurationError: If the backend write fails
        """
        new_rules = list(rules) if rules is not None else self._rules
        new_settings = settings if settings is not None else self._settings

        try:
            self._backend.write(self._document(new_rules, new_settings))
        except Exception as e:
            raise ConfigurationError("Failed to save configuration", e) from e

        self._rules = new_rules
        self._settings = new_settings
        logger.debug(f"Saved {len(new_rules)} automation rules")

    def _document(
        self,
        rules: Optional[List[AutomationRule]] = None,
        settings: Optional[GlobalSettings] = None,
    ) -> Dict[str, Any]:
        rules = self._rules if rules is None else rules
        settings = self._settings if settings is None else settings
        return {
            "rules": [rule.to_dict() for rule in rules],
            "settings": settings.to_dict(),
        }

    def _parse_document(
        self, data: Dict[str, Any]
    ) -> Tuple[List[AutomationRule], GlobalSettings]:
        rules: List[AutomationRule] = []
        seen: set[str] = set()
        for item in data.get("rules") or []:
            rule = AutomationRule.from_dict(item)
            if rule.id in seen:
                logger.warning(f"Skipping duplicate rule id: {rule.id}")
                continue
            seen.add(rule.id)
            rules.append(rule)
        return rules, GlobalSettings.from_dict(data.get("settings"))

    # =========================================================================
    # Rules
    # =========================================================================

    def get_rule(self, rule_id: str) -> AutomationRule:
        """
        Get a rule by id.

        Raises:
            RuleNotFound: If no rule has this id
        """
        return self._rules[self._index(rule_id)]

    def _index(self, rule_id: str) -> int:
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return index
        raise RuleNotFound(rule_id)

    def add_rule(self, rule: AutomationRule) -> None:
        """
        Append a rule and save.

        Raises:
            ValueError: If a rule with the same id already exists
        """
        if any(r.id == rule.id for r in self._rules):
            raise ValueError(f"Rule {rule.id} already exists")
        self.save(rules=[*self._rules, rule])
        logger.info(f"Added rule: {rule.name}")

    def update_rule(self, rule: AutomationRule) -> AutomationRule:
        """
        Replace a stored rule, bump its updated_at and save.

        Returns:
            The stored (touched) rule

        Raises:
            RuleNotFound: If no rule has this id
        """
        index = self._index(rule.id)
        stored = rule.touched()
        rules = list(self._rules)
        rules[index] = stored
        self.save(rules=rules)
        logger.debug(f"Updated rule: {rule.name}")
        return stored

    def delete_rule(self, rule_id: str) -> AutomationRule:
        """
        Delete a rule and save.

        Raises:
            RuleNotFound: If no rule has this id
        """
        rules = list(self._rules)
        removed = rules.pop(self._index(rule_id))
        self.save(rules=rules)
        logger.info(f"Deleted rule: {removed.name}")
        return removed

    def toggle_rule(self, rule_id: str) -> AutomationRule:
        """
        Flip a rule's enabled flag and save.

        Raises:
            RuleNotFound: If no rule has this id
        """
        rule = self.get_rule(rule_id)
        return self.update_rule(rule.with_changes(enabled=not rule.enabled))

    def enabled_rules(self) -> List[AutomationRule]:
        return [rule for rule in self._rules if rule.enabled]

    def rules_for_capability(self, capability_id: str) -> List[AutomationRule]:
        return [rule for rule in self._rules if rule.capability_id == capability_id]

    # =========================================================================
    # Settings
    # =========================================================================

    def update_settings(self, settings: GlobalSettings) -> None:
        self.save(settings=settings)

    def reset(self) -> None:
        """Delete all rules, restore default settings and save."""
        self.save(rules=[], settings=GlobalSettings())
        logger.info("Configuration reset")

    # =========================================================================
    # Export / Import
    # =========================================================================

    def export_configuration(self) -> str:
        """Serialize rules and settings to a JSON document."""
        payload = {
            "version": EXPORT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            **self._document(),
        }
        return json.dumps(payload, sort_keys=True, indent=2)

    def import_configuration(self, text: str) -> None:
        """
        Replace rules and settings with an exported document and save.

        Raises:
            ConfigurationError: If the document is invalid
        """
        try:
            payload = json.loads(text)
            if not isinstance(payload, dict):
                raise ValueError("export document must be a JSON object")
            if "version" not in payload:
                raise ValueError("export document has no version")
            rules, settings = self._parse_document(payload)
        except Exception as e:
            raise ConfigurationError("Failed to import configuration", e) from e

        logger.info(f"Importing {len(rules)} rules (export version {payload['version']})")
        self.save(rules=rules, settings=settings)
