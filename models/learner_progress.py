from datetime import datetime

from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from models import db
from utils.helpers import format_datetime


class LearnerProgress(db.Model):
    """The single per-learner progress aggregate.

    ``version`` is the optimistic concurrency counter: every flush that updates
    the row is issued as ``UPDATE ... WHERE version = :expected`` and bumps it.
    """

    __tablename__ = "learner_progress"

    id = db.Column(db.Integer, primary_key=True)
    learner_id = db.Column(db.String(64), nullable=False, unique=True)
    current_track = db.Column(db.String(100), nullable=True)
    current_module = db.Column(db.String(100), nullable=True)
    current_lesson = db.Column(db.String(100), nullable=True)
    total_xp = db.Column(db.Integer, nullable=False, default=0)
    level = db.Column(db.Integer, nullable=False, default=1)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    last_activity_date = db.Column(db.DateTime, nullable=True)
    total_time_spent = db.Column(db.Integer, nullable=False, default=0)  # seconds
    last_activity_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    tracks_progress = relationship(
        "TrackProgress",
        back_populates="progress",
        order_by="TrackProgress.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<LearnerProgress learner={self.learner_id} v{self.version}>"

    def to_dict(self):
        return {
            "id": self.id,
            "learner_id": self.learner_id,
            "current_track": self.current_track,
            "current_module": self.current_module,
            "current_lesson": self.current_lesson,
            "total_xp": self.total_xp,
            "level": self.level,
            "streak": {
                "current_streak": self.current_streak,
                "longest_streak": self.longest_streak,
                "last_activity_date": format_datetime(self.last_activity_date),
            },
            "total_time_spent": self.total_time_spent,
            "last_activity_at": format_datetime(self.last_activity_at),
            "version": self.version,
            "tracks_progress": [tp.to_dict() for tp in self.tracks_progress],
        }
