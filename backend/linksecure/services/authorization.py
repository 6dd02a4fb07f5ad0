"""Single access decision for a file.

Every route that reads or changes a file asks :func:`decide` and then checks
the operation against the returned decision. Resolution order, first match
wins:

1. soft-deleted file -> deny (gone), even for the owner
2. owner -> admin
3. public file -> view (an active grant on the same file still applies)
4. active grant -> the grant's role
5. validated link capability for this file -> view, link-mediated
6. deny

The function is pure: it never touches the store and records nothing.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from linksecure.core.errors import Forbidden, Gone
from linksecure.models.access_grant import AccessGrant
from linksecure.models.file import File

ROLE_VIEW = "view"
ROLE_EDIT = "edit"
ROLE_ADMIN = "admin"
ROLES = (ROLE_VIEW, ROLE_EDIT, ROLE_ADMIN)

_ROLE_RANK = {ROLE_VIEW: 1, ROLE_EDIT: 2, ROLE_ADMIN: 3}


class Operation(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    EDIT = "edit"
    DELETE = "delete"
    SHARE = "share"


_REQUIRED_ROLE = {
    Operation.VIEW: ROLE_VIEW,
    Operation.DOWNLOAD: ROLE_VIEW,
    Operation.EDIT: ROLE_EDIT,
    Operation.DELETE: ROLE_ADMIN,
    Operation.SHARE: ROLE_ADMIN,
}

_LINK_OPERATIONS = frozenset({Operation.VIEW, Operation.DOWNLOAD})


class Via(str, Enum):
    OWNER = "owner"
    PUBLIC = "public"
    GRANT = "grant"
    LINK = "link"


REASON_DELETED = "deleted"
REASON_FORBIDDEN = "forbidden"


def role_at_least(role: str | None, minimum: str) -> bool:
    return _ROLE_RANK.get(role or "", 0) >= _ROLE_RANK[minimum]


@dataclass(frozen=True)
class LinkCapability:
    """A secure-link token or short code that already passed validation."""

    file_id: str | None = None
    blob_path: str | None = None

    def targets(self, file: File) -> bool:
        if self.file_id is not None and self.file_id == file.id:
            return True
        return self.blob_path is not None and self.blob_path == file.storage_path


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    role: str | None = None
    via: Via | None = None
    grant: AccessGrant | None = None

    @property
    def link_mediated(self) -> bool:
        return self.via is Via.LINK

    @property
    def direct(self) -> bool:
        """Standing access that must not consume link quota."""
        return self.via in (Via.OWNER, Via.GRANT)

    def permits(self, operation: Operation) -> bool:
        if not self.allowed:
            return False
        # a link never grants more than reading, whatever role it nominally has
        if self.link_mediated and operation not in _LINK_OPERATIONS:
            return False
        return role_at_least(self.role, _REQUIRED_ROLE[operation])

    def require(self, operation: Operation) -> "AccessDecision":
        if not self.allowed and self.reason == REASON_DELETED:
            raise Gone("File is in trash")
        if not self.permits(operation):
            raise Forbidden(f"You do not have permission to {operation.value} this file")
        return self


def _active_grant(file: File, actor_id: str, grants: Iterable[AccessGrant]) -> AccessGrant | None:
    for grant in grants:
        if grant.file_id == file.id and grant.user_id == actor_id and grant.is_active:
            return grant
    return None


def decide(
    file: File,
    actor_id: str | None,
    grants: Iterable[AccessGrant] = (),
    capability: LinkCapability | None = None,
) -> AccessDecision:
    if file.is_deleted:
        return AccessDecision(False, REASON_DELETED)

    if actor_id is not None and actor_id == file.owner_id:
        return AccessDecision(True, "owner", ROLE_ADMIN, Via.OWNER)

    grant = _active_grant(file, actor_id, grants) if actor_id is not None else None

    if file.is_public and grant is None:
        return AccessDecision(True, "public", ROLE_VIEW, Via.PUBLIC)

    if grant is not None:
        return AccessDecision(True, "grant", grant.role, Via.GRANT, grant)

    if capability is not None and capability.targets(file):
        return AccessDecision(True, "link", ROLE_VIEW, Via.LINK)

    return AccessDecision(False, REASON_FORBIDDEN)


def decide_trash(file: File, actor_id: str | None) -> AccessDecision:
    """Restore and permanent delete act on trashed files and stay owner-only."""
    if actor_id is not None and actor_id == file.owner_id:
        return AccessDecision(True, "owner", ROLE_ADMIN, Via.OWNER)
    return AccessDecision(False, REASON_FORBIDDEN)
