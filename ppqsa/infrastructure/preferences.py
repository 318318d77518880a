from __future__ import annotations

import hmac
import math
from typing import Any

from ppqsa.domain.services import coerce_target_score

from .config import AdminConfig, StorageConfig, get_settings
from .exceptions import ValidationError
from .kv import KeyValueStore
from .logging import get_logger

logger = get_logger(__name__)


class TargetScoreStore:
    """
    A target total out of 24 persisted as plain text under one key.

    Absent, blank or unreadable values read as the configured default.
    """

    def __init__(self, kv: KeyValueStore, key: str, default: float | None = None):
        self.kv = kv
        self.key = key
        self.default = (
            default if default is not None else get_settings().storage.default_target_score24
        )

    @classmethod
    def for_admin(cls, kv: KeyValueStore, config: StorageConfig | None = None) -> "TargetScoreStore":
        config = config or get_settings().storage
        return cls(kv, config.target_key, config.default_target_score24)

    @classmethod
    def for_results(cls, kv: KeyValueStore, config: StorageConfig | None = None) -> "TargetScoreStore":
        config = config or get_settings().storage
        return cls(kv, config.results_target_key, config.default_target_score24)

    def get(self) -> float:
        raw = self.kv.get(self.key)
        return coerce_target_score(raw, previous=self.default) if raw is not None else self.default

    def set(self, value: Any) -> float:
        """
        Store a new target.

        Raises:
            ValidationError: If ``value`` is not a finite number
        """
        target = coerce_target_score(value, previous=math.nan)
        if math.isnan(target):
            raise ValidationError("target_score24", "must be a finite number", value)
        self.kv.set(self.key, repr(target))
        logger.info(f"Target score under {self.key} set to {target}")
        return target


class AdminGate:
    """Checks the admin passcode; a blank configured code lets everyone in."""

    def __init__(self, config: AdminConfig | None = None):
        self.config = config or get_settings().admin

    @property
    def enabled(self) -> bool:
        return self.config.gate_enabled

    def verify(self, code: str | None) -> bool:
        if not self.enabled:
            return True
        supplied = (code or "").strip()
        return hmac.compare_digest(supplied.encode("utf-8"), self.config.code.encode("utf-8"))
