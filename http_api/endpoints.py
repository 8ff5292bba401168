"""
Backend endpoint paths.

All paths are relative to the configured API base URL.
"""

from sync_queue.models import EntityKind

AUTH_REFRESH = "/api/mobile/auth/refresh"

WORKOUTS = "/api/mobile/workouts"
BODY_METRICS = "/api/mobile/metrics"
USER_PROFILE = "/api/mobile/user/profile"

_BASE_PATHS = {
    EntityKind.WORKOUT: WORKOUTS,
    EntityKind.BODY_METRIC: BODY_METRICS,
    EntityKind.USER: USER_PROFILE,
}


def base_path(entity_kind: EntityKind) -> str:
    """Collection endpoint for an entity kind."""
    return _BASE_PATHS[EntityKind(entity_kind)]


def single(entity_kind: EntityKind, entity_id: str) -> str:
    """Endpoint for one entity of a kind."""
    return f"{base_path(entity_kind)}/{entity_id}"
