from models import db
from utils.helpers import generate_object_id, format_datetime


class Lesson(db.Model):
    __tablename__ = "lessons"

    id = db.Column(db.String(24), primary_key=True, default=generate_object_id)
    lesson_code = db.Column(db.String(100), nullable=False, unique=True)
    module_id = db.Column(db.String(100), nullable=False, index=True)
    legacy_id = db.Column(db.String(100), nullable=True)
    slug = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    prerequisites = db.Column(db.JSON, nullable=False, default=list)
    estimated_duration = db.Column(db.Integer, nullable=True)  # minutes
    is_lab = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    def __repr__(self):
        return f"<Lesson {self.lesson_code} (Module {self.module_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "lesson_code": self.lesson_code,
            "module_id": self.module_id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description if self.description is not None else "",
            "order": self.order,
            "status": self.status,
            "prerequisites": list(self.prerequisites or []),
            "estimated_duration": self.estimated_duration,
            "is_lab": self.is_lab,
            "created_at": format_datetime(self.created_at),
        }
