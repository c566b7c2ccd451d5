import logging

from flask import current_app

from utils.helpers import utcnow

logger = logging.getLogger(__name__)


def _setting(name, default):
    try:
        return current_app.config.get(name, default)
    except RuntimeError:
        # outside an application context
        return default


def add_xp(progress, points, xp_per_level=None):
    """Add ``points`` to the learner's XP and recompute the level.

    Returns True when the level went up.
    """
    xp_per_level = xp_per_level or _setting("XP_PER_LEVEL", 1000)
    progress.total_xp = (progress.total_xp or 0) + int(points)

    new_level = progress.total_xp // xp_per_level + 1
    if new_level > (progress.level or 1):
        progress.level = new_level
        logger.info("Learner %s reached level %d", progress.learner_id, new_level)
        return True
    return False


def update_streak(progress, now=None):
    """Count consecutive calendar days with activity."""
    now = now or utcnow()
    last = progress.last_activity_date

    if last is None:
        progress.current_streak = 1
    else:
        days = (now.date() - last.date()).days
        if days <= 0:
            return progress.current_streak
        progress.current_streak = (progress.current_streak or 0) + 1 if days == 1 else 1

    progress.last_activity_date = now
    if progress.current_streak > (progress.longest_streak or 0):
        progress.longest_streak = progress.current_streak
    return progress.current_streak


def assessment_xp(score, multiplier):
    return int(round((score or 0) * multiplier))
