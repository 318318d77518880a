"""
Per-subject work in progress: answers, profile and pillar notes.

Each part is stored under ``<base>_<token>`` (or the bare base key for the
un-tokened subject) together with the owning token. A stored record whose
token does not match the one requested is treated as absent.
"""

from __future__ import annotations

import json
from typing import Any

from ppqsa.domain.schemas import Score, normalize_answers

from .config import StorageConfig, get_settings
from .kv import KeyValueStore, load_json
from .logging import get_logger

logger = get_logger(__name__)

PROFILE_FIELDS = (
    "organisationName",
    "country",
    "contactName",
    "contactEmail",
    "roleTitle",
    "ictTeamSize",
    "notes",
)


def storage_key(base: str, token: str | None) -> str:
    return f"{base}_{token}" if token else base


def _owned_by(stored: dict[str, Any], token: str | None) -> bool:
    owner = stored.get("token")
    if token:
        return owner == token
    return not owner


def empty_profile() -> dict[str, str]:
    return {name: "" for name in PROFILE_FIELDS}


class DraftWorkspace:
    def __init__(self, kv: KeyValueStore, config: StorageConfig | None = None):
        self.kv = kv
        self.config = config or get_settings().storage

    # ---------- Answers ----------

    def load_answers(self, token: str | None = None) -> dict[str, Score]:
        data = load_json(self.kv, storage_key(self.config.answers_key, token))
        if not isinstance(data, dict):
            return {}
        if "answers" in data:
            if not _owned_by(data, token):
                logger.debug(f"Ignoring answers draft owned by another token (requested {token})")
                return {}
            return normalize_answers(data.get("answers"))
        # bare answer map from earlier builds; only the un-tokened subject owns it
        if token:
            return {}
        return normalize_answers(data)

    def save_answers(self, answers: dict[str, Any], token: str | None = None) -> dict[str, Score]:
        clean = normalize_answers(answers)
        payload: dict[str, Any] = {"answers": clean}
        if token:
            payload = {"token": token, **payload}
        self.kv.set(storage_key(self.config.answers_key, token), json.dumps(payload))
        return clean

    # ---------- Profile ----------

    def load_profile(self, token: str | None = None) -> dict[str, str]:
        data = load_json(self.kv, storage_key(self.config.profile_key, token))
        if not isinstance(data, dict) or not _owned_by(data, token):
            return empty_profile()
        profile = empty_profile()
        for name in PROFILE_FIELDS:
            value = data.get(name)
            if isinstance(value, str):
                profile[name] = value
        return profile

    def save_profile(self, profile: dict[str, Any], token: str | None = None) -> dict[str, str]:
        clean = empty_profile()
        for name in PROFILE_FIELDS:
            value = profile.get(name)
            if isinstance(value, str):
                clean[name] = value
        payload: dict[str, Any] = dict(clean)
        if token:
            payload["token"] = token
        self.kv.set(storage_key(self.config.profile_key, token), json.dumps(payload))
        return clean

    # ---------- Pillar notes ----------

    def load_notes(self, token: str | None = None) -> dict[str, str]:
        data = load_json(self.kv, storage_key(self.config.notes_key, token))
        if not isinstance(data, dict):
            return {}
        if not _owned_by(data, token):
            return {}
        notes = data.get("notes")
        if not isinstance(notes, dict):
            return {}
        return {k: v for k, v in notes.items() if isinstance(k, str) and isinstance(v, str)}

    def save_notes(self, notes: dict[str, Any], token: str | None = None) -> dict[str, str]:
        clean = {k: v for k, v in notes.items() if isinstance(k, str) and isinstance(v, str)}
        payload: dict[str, Any] = {"notes": clean}
        if token:
            payload = {"token": token, **payload}
        self.kv.set(storage_key(self.config.notes_key, token), json.dumps(payload))
        return clean

    # ---------- Lifecycle ----------

    def has_progress(self, token: str | None = None) -> bool:
        """True once any profile field is filled in or any answer recorded."""
        profile = self.load_profile(token)
        if any(v.strip() for v in profile.values()):
            return True
        return bool(self.load_answers(token))

    def reset(self, token: str | None = None) -> None:
        for base in (self.config.answers_key, self.config.profile_key, self.config.notes_key):
            self.kv.delete(storage_key(base, token))
        logger.info(f"Reset draft for token {token or '(none)'}")
