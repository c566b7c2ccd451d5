from datetime import datetime
from models import db


class QuizAttemptRecord(db.Model):
    __tablename__ = "quiz_attempt_records"

    id = db.Column(db.Integer, primary_key=True)
    module_progress_id = db.Column(db.Integer, db.ForeignKey("module_progress.id"), nullable=False)
    quiz_id = db.Column(db.String(100), nullable=True)
    attempt_number = db.Column(db.Integer, nullable=False, default=1)
    score = db.Column(db.Float, nullable=True)
    passed = db.Column(db.Boolean, nullable=False, default=False)
    answers = db.Column(db.JSON, nullable=True)
    time_spent = db.Column(db.Integer, nullable=True)
    completed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

    module_progress = db.relationship("ModuleProgress", back_populates="quiz_attempts")

    def to_dict(self):
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "attempt_number": self.attempt_number,
            "score": self.score,
            "passed": self.passed,
            "answers": self.answers,
            "time_spent": self.time_spent,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class LabAttemptRecord(db.Model):
    __tablename__ = "lab_attempt_records"

    id = db.Column(db.Integer, primary_key=True)
    module_progress_id = db.Column(db.Integer, db.ForeignKey("module_progress.id"), nullable=False)
    lab_id = db.Column(db.String(100), nullable=True)
    attempt_number = db.Column(db.Integer, nullable=False, default=1)
    score = db.Column(db.Float, nullable=True)
    passed = db.Column(db.Boolean, nullable=False, default=False)
    responses = db.Column(db.JSON, nullable=True)
    completed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

    module_progress = db.relationship("ModuleProgress", back_populates="lab_attempts")

    def to_dict(self):
        return {
            "id": self.id,
            "lab_id": self.lab_id,
            "attempt_number": self.attempt_number,
            "score": self.score,
            "passed": self.passed,
            "responses": self.responses,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
