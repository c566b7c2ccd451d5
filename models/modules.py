from models import db
from utils.helpers import generate_object_id, format_datetime


class Module(db.Model):
    __tablename__ = "modules"

    id = db.Column(db.String(24), primary_key=True, default=generate_object_id)
    module_code = db.Column(db.String(100), nullable=False, unique=True)
    # Holds whatever encoding of the parent track the content was authored with
    track_id = db.Column(db.String(100), nullable=False, index=True)
    legacy_id = db.Column(db.String(100), nullable=True)
    slug = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    prerequisites = db.Column(db.JSON, nullable=False, default=list)
    quiz_id = db.Column(db.String(100), nullable=True)
    passing_score = db.Column(db.Float, nullable=False, default=70.0)
    requires_lab_completion = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="check_module_passing_score"),
    )

    @property
    def has_assessment_gate(self):
        return bool(self.quiz_id) or bool(self.requires_lab_completion)

    def __repr__(self):
        return f"<Module {self.module_code} (Track {self.track_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "module_code": self.module_code,
            "track_id": self.track_id,
            "legacy_id": self.legacy_id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description if self.description is not None else "",
            "order": self.order,
            "status": self.status,
            "prerequisites": list(self.prerequisites or []),
            "quiz_id": self.quiz_id,
            "passing_score": self.passing_score,
            "requires_lab_completion": self.requires_lab_completion,
            "created_at": format_datetime(self.created_at),
        }
