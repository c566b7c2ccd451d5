from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from models import db
from utils.helpers import format_datetime


class ModuleProgress(db.Model):
    __tablename__ = "module_progress"

    id = db.Column(db.Integer, primary_key=True)
    track_progress_id = db.Column(db.Integer, db.ForeignKey("track_progress.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    module_id = db.Column(db.String(100), nullable=False)
    # Legacy rows may carry no status at all; treated as locked
    status = db.Column(db.String(20), nullable=True, default="locked")
    best_quiz_score = db.Column(db.Float, nullable=False, default=0.0)
    best_lab_score = db.Column(db.Float, nullable=False, default=0.0)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    track_progress = relationship("TrackProgress", back_populates="modules_progress")
    lessons_progress = relationship(
        "LessonProgress",
        back_populates="module_progress",
        order_by="LessonProgress.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    quiz_attempts = relationship(
        "QuizAttemptRecord",
        back_populates="module_progress",
        order_by="QuizAttemptRecord.attempt_number",
        cascade="all, delete-orphan",
    )
    lab_attempts = relationship(
        "LabAttemptRecord",
        back_populates="module_progress",
        order_by="LabAttemptRecord.attempt_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<ModuleProgress {self.module_id} ({self.status})>"

    def to_dict(self):
        return {
            "module_id": self.module_id,
            "status": self.status,
            "best_quiz_score": self.best_quiz_score,
            "best_lab_score": self.best_lab_score,
            "started_at": format_datetime(self.started_at),
            "completed_at": format_datetime(self.completed_at),
            "lessons_progress": [lp.to_dict() for lp in self.lessons_progress],
            "quiz_attempts": [qa.to_dict() for qa in self.quiz_attempts],
            "lab_attempts": [la.to_dict() for la in self.lab_attempts],
        }
