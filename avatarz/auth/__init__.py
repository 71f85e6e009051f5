from .models import AllowlistEntry, CurrentUser, InviteCode
from .token_utils import bearer_token, generate_invite_code, invite_expiry, normalize_invite_code

__all__ = [
    "AllowlistEntry",
    "CurrentUser",
    "InviteCode",
    "bearer_token",
    "generate_invite_code",
    "invite_expiry",
    "normalize_invite_code",
]
