from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from models import db
from utils.helpers import format_datetime


class TrackProgress(db.Model):
    __tablename__ = "track_progress"

    id = db.Column(db.Integer, primary_key=True)
    progress_id = db.Column(db.Integer, db.ForeignKey("learner_progress.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    # Stored as whichever identifier the track was started with
    track_id = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=True, default="locked")  # 'locked', 'unlocked', 'in_progress', 'completed'
    overall_score = db.Column(db.Float, nullable=False, default=0.0)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    progress = relationship("LearnerProgress", back_populates="tracks_progress")
    modules_progress = relationship(
        "ModuleProgress",
        back_populates="track_progress",
        order_by="ModuleProgress.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<TrackProgress {self.track_id} ({self.status})>"

    def to_dict(self):
        return {
            "track_id": self.track_id,
            "status": self.status,
            "overall_score": self.overall_score,
            "started_at": format_datetime(self.started_at),
            "completed_at": format_datetime(self.completed_at),
            "modules_progress": [mp.to_dict() for mp in self.modules_progress],
        }
