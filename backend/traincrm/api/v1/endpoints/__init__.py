# API endpoints
from . import auth, health, settings, navigation, scheduling, training, rosters, certificates, workflows, notifications

__all__ = ["auth", "health", "settings", "navigation", "scheduling", "training", "rosters", "certificates", "workflows", "notifications"]
