"""Assignment resolver – who may read or write a stat's canonical values.

The stat's single owner field is the only assignment relation: a personal
stat belongs to one user, a divisional stat to one division, and a main stat
to the whole company. Every refusal raises ``ScopeError`` with a ``code`` the
caller can turn into an actionable message.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from stathq.modules.stats.errors import ScopeError
from stathq.modules.stats.models import SCOPE_PERSONAL

logger = logging.getLogger(__name__)

OP_READ = "read"
OP_WRITE = "write"

# Personal writes come from the owner's own input screens; divisional and main
# values are entered through the admin-only path.
PATH_PERSONAL = "personal"
PATH_PRIVILEGED = "privileged"


@dataclass(frozen=True)
class Actor:
    user_id: int
    company_id: int
    is_admin: bool = False
    division_id: Optional[int] = None
    username: Optional[str] = None


def _deny(actor: Actor, stat, code: str, message: str):
    logger.warning(
        "Scope denied: user=%s stat=%s scope=%s code=%s",
        actor.user_id, getattr(stat, "id", None), getattr(stat, "scope_type", None), code,
    )
    raise ScopeError(message, code=code, details={"stat_id": getattr(stat, "id", None)})


def authorize(actor: Actor, stat, operation: str, path: str = PATH_PERSONAL,
              on_behalf_of: Optional[int] = None) -> None:
    """Return quietly when allowed, raise ``ScopeError`` otherwise."""
    if stat.company_id is not None and stat.company_id != actor.company_id:
        _deny(actor, stat, "cross_company", "Stat belongs to another company")

    if operation == OP_READ:
        _authorize_read(actor, stat, on_behalf_of)
    elif operation == OP_WRITE:
        _authorize_write(actor, stat, path)
    else:
        raise ValueError(f"Unknown operation {operation!r}")


def _authorize_read(actor: Actor, stat, on_behalf_of: Optional[int]) -> None:
    if on_behalf_of is not None:
        if not actor.is_admin:
            _deny(actor, stat, "on_behalf_forbidden",
                  "Insufficient permissions to request other user's stats")
        if stat.scope_type == SCOPE_PERSONAL and stat.assigned_user_id != on_behalf_of:
            _deny(actor, stat, "not_assigned",
                  f"Stat {stat.short_id} is not assigned to user {on_behalf_of}")
        return

    if stat.scope_type != SCOPE_PERSONAL or actor.is_admin:
        return
    if stat.assigned_user_id is None and getattr(stat, "placeholder", False):
        return
    if stat.assigned_user_id != actor.user_id:
        _deny(actor, stat, "not_assigned", f"Stat {stat.short_id} is not assigned to you")


def _authorize_write(actor: Actor, stat, path: str) -> None:
    if stat.is_calculated:
        _deny(actor, stat, "calculated_stat",
              f"Stat {stat.short_id} is calculated from other stats and cannot be written")

    if path == PATH_PERSONAL:
        if stat.scope_type != SCOPE_PERSONAL:
            _deny(actor, stat, "personal_only",
                  f"Stat {stat.short_id} (id={stat.id}) is not a personal stat; "
                  "this endpoint only accepts personal-scope writes")
        if stat.assigned_user_id is None or stat.assigned_user_id != actor.user_id:
            _deny(actor, stat, "not_assigned",
                  f"Stat {stat.short_id} is not assigned to you")
        return

    if path == PATH_PRIVILEGED:
        if not actor.is_admin:
            _deny(actor, stat, "admin_only", "Divisional and main stats can only be written by an admin")
        if stat.scope_type == SCOPE_PERSONAL:
            _deny(actor, stat, "personal_owner_only",
                  f"Stat {stat.short_id} is personal and can only be written by its assigned user")
        return

    raise ValueError(f"Unknown write path {path!r}")
