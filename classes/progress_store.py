import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.learner_progress import LearnerProgress
from utils.errors import ConcurrentUpdate
from utils.helpers import utcnow

logger = logging.getLogger(__name__)


class ProgressStore:
    @staticmethod
    def find_progress_by_learner(learner_id):
        if learner_id is None:
            return None
        return LearnerProgress.query.filter_by(learner_id=str(learner_id)).first()

    @staticmethod
    def create_progress(learner_id):
        progress = LearnerProgress(
            learner_id=str(learner_id),
            total_xp=0,
            level=1,
            current_streak=0,
            longest_streak=0,
            total_time_spent=0,
        )
        db.session.add(progress)
        db.session.flush()
        logger.info("Created progress aggregate for learner %s", learner_id)
        return progress

    @staticmethod
    def get_or_create(learner_id):
        progress = ProgressStore.find_progress_by_learner(learner_id)
        if progress is None:
            progress = ProgressStore.create_progress(learner_id)
        return progress

    @staticmethod
    def save(progress):
        """Write the whole aggregate back.

        The aggregate row is always touched so its version counter is checked
        and bumped even when only nested entries changed.
        """
        progress.last_activity_at = utcnow()
        flag_modified(progress, "last_activity_at")
        db.session.add(progress)
        db.session.commit()


def run_progress_operation(operation, *args, **kwargs):
    """Run a read-modify-write of one learner's aggregate as a unit of work.

    Any exception rolls the session back so nothing computed by a failed
    attempt reaches the database. A stale version or a racing lazy create
    re-runs the whole operation from a fresh read.
    """
    attempts = max(1, int(current_app.config.get("PROGRESS_SAVE_RETRIES", 3)))
    for attempt in range(1, attempts + 1):
        try:
            return operation(*args, **kwargs)
        except (StaleDataError, IntegrityError) as e:
            db.session.rollback()
            if attempt == attempts:
                logger.error("Progress update failed after %d attempts: %s", attempts, e)
                raise ConcurrentUpdate("Progress was modified concurrently, please retry") from e
            logger.warning("Progress update conflict (attempt %d/%d), retrying: %s", attempt, attempts, e)
        except Exception:
            db.session.rollback()
            raise
