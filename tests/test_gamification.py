from datetime import datetime, timedelta

from models.learner_progress import LearnerProgress
from utils.gamification import add_xp, assessment_xp, update_streak


def _progress(**fields) -> LearnerProgress:
    defaults = {"learner_id": "learner-1", "total_xp": 0, "level": 1, "current_streak": 0, "longest_streak": 0}
    defaults.update(fields)
    return LearnerProgress(**defaults)


def test_add_xp_levels_up_every_threshold() -> None:
    progress = _progress()

    assert add_xp(progress, 999, xp_per_level=1000) is False
    assert progress.level == 1
    assert add_xp(progress, 1, xp_per_level=1000) is True
    assert progress.level == 2
    assert add_xp(progress, 2500, xp_per_level=1000) is True
    assert progress.total_xp == 3500
    assert progress.level == 4


def test_add_xp_uses_app_setting(app) -> None:
    app.config["XP_PER_LEVEL"] = 10
    progress = _progress()
    assert add_xp(progress, 25) is True
    assert progress.level == 3


def test_first_activity_starts_a_streak() -> None:
    progress = _progress()
    now = datetime(2024, 3, 1, 9, 0)

    assert update_streak(progress, now) == 1
    assert progress.last_activity_date == now
    assert progress.longest_streak == 1


def test_same_day_activity_keeps_streak() -> None:
    progress = _progress(current_streak=3, longest_streak=5, last_activity_date=datetime(2024, 3, 1, 9, 0))
    assert update_streak(progress, datetime(2024, 3, 1, 23, 30)) == 3
    assert progress.last_activity_date == datetime(2024, 3, 1, 9, 0)


def test_consecutive_calendar_days_extend_streak() -> None:
    last = datetime(2024, 3, 1, 23, 50)
    progress = _progress(current_streak=5, longest_streak=5, last_activity_date=last)

    assert update_streak(progress, last + timedelta(minutes=20)) == 6
    assert progress.longest_streak == 6


def test_missed_day_resets_streak() -> None:
    progress = _progress(current_streak=4, longest_streak=9, last_activity_date=datetime(2024, 3, 1))
    assert update_streak(progress, datetime(2024, 3, 3)) == 1
    assert progress.longest_streak == 9


def test_assessment_xp() -> None:
    assert assessment_xp(80, 1.5) == 120
    assert assessment_xp(None, 1.0) == 0
