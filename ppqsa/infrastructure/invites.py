from __future__ import annotations

import json
import secrets
from collections.abc import Iterable

from pydantic import ValidationError as PydanticValidationError

from ppqsa.domain.schemas import Invite, LifecycleStatus, Snapshot
from ppqsa.domain.timestamps import now_iso

from .config import StorageConfig, get_settings
from .drafts import DraftWorkspace
from .exceptions import InviteNotFoundError, ValidationError
from .kv import KeyValueStore, load_json
from .logging import get_logger, log_operation

logger = get_logger(__name__)

TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
TOKEN_LENGTH = 14


def generate_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


class InviteRegistry:
    """
    Issued invites, newest first, stored as one JSON array.

    Stored entries that are not well-formed invites are dropped on read.
    """

    def __init__(self, kv: KeyValueStore, config: StorageConfig | None = None):
        self.kv = kv
        self.key = (config or get_settings().storage).invites_key

    def list(self) -> list[Invite]:
        data = load_json(self.kv, self.key)
        if not isinstance(data, list):
            return []
        invites = []
        for item in data:
            try:
                invites.append(Invite.model_validate(item))
            except PydanticValidationError:
                logger.debug("Dropping malformed invite record")
        return invites

    def _save(self, invites: Iterable[Invite]) -> None:
        self.kv.set(self.key, json.dumps([i.to_record() for i in invites]))

    def get(self, token: str) -> Invite | None:
        return next((i for i in self.list() if i.token == token), None)

    @log_operation("create_invite")
    def create(self, label: str) -> Invite:
        label = label.strip() if isinstance(label, str) else ""
        if not label:
            raise ValidationError("label", "Invite label is required", label)

        existing = self.list()
        taken = {i.token for i in existing}
        token = generate_token()
        while token in taken:
            token = generate_token()

        invite = Invite(token=token, label=label, created_at=now_iso(), status="active")
        self._save([invite, *existing])
        logger.info(f"Created invite {token} ({label})")
        return invite

    def revoke(self, token: str) -> Invite:
        invites = self.list()
        if not any(i.token == token for i in invites):
            raise InviteNotFoundError(token)
        updated = [
            i.model_copy(update={"status": "revoked"}) if i.token == token else i for i in invites
        ]
        self._save(updated)
        logger.info(f"Revoked invite {token}")
        return next(i for i in updated if i.token == token)

    def revoke_all(self) -> int:
        invites = self.list()
        self._save(i.model_copy(update={"status": "revoked"}) for i in invites)
        logger.info(f"Revoked all {len(invites)} invites")
        return len(invites)

    def delete_all(self) -> int:
        count = len(self.list())
        self._save([])
        logger.info(f"Deleted {count} invites")
        return count


def lifecycle_status(
    token: str, snapshots: Iterable[Snapshot], drafts: DraftWorkspace
) -> LifecycleStatus:
    """Completed once a snapshot exists; In progress once a draft has content."""
    if any(s.token == token for s in snapshots):
        return "Completed"
    if drafts.has_progress(token):
        return "In progress"
    return "Not started"
