from sqlalchemy.orm import relationship

from models import db
from utils.helpers import format_datetime


class LessonProgress(db.Model):
    __tablename__ = "lesson_progress"

    id = db.Column(db.Integer, primary_key=True)
    module_progress_id = db.Column(db.Integer, db.ForeignKey("module_progress.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    lesson_id = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="not_started")  # 'not_started', 'in_progress', 'completed'
    time_spent = db.Column(db.Integer, nullable=False, default=0)  # seconds
    last_position = db.Column(db.Integer, nullable=False, default=0)
    completed_content_items = db.Column(db.JSON, nullable=False, default=list)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    module_progress = relationship("ModuleProgress", back_populates="lessons_progress")

    def __repr__(self):
        return f"<LessonProgress {self.lesson_id} ({self.status})>"

    def to_dict(self):
        return {
            "lesson_id": self.lesson_id,
            "status": self.status,
            "time_spent": self.time_spent,
            "last_position": self.last_position,
            "completed_content_items": list(self.completed_content_items or []),
            "started_at": format_datetime(self.started_at),
            "completed_at": format_datetime(self.completed_at),
        }
