"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, from_timestamp
from utils.user_context import (
    get_current_claims,
    get_current_user_id,
    set_current_claims,
    clear_current_claims,
    user_context,
)
