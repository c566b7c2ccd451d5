from models import db
from utils.helpers import generate_object_id, format_datetime


class Track(db.Model):
    __tablename__ = "tracks"

    id = db.Column(db.String(24), primary_key=True, default=generate_object_id)
    track_code = db.Column(db.String(100), nullable=False, unique=True)
    legacy_id = db.Column(db.String(100), nullable=True)
    slug = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    order = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")  # 'draft', 'active', 'archived'
    prerequisites = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    __table_args__ = (
        db.Index("ix_tracks_status_order", "status", "order"),
    )

    def __repr__(self):
        return f"<Track {self.track_code} ({self.name})>"

    def to_dict(self):
        return {
            "id": self.id,
            "track_code": self.track_code,
            "legacy_id": self.legacy_id,
            "slug": self.slug,
            "name": self.name,
            "title": self.title,
            "description": self.description if self.description is not None else "",
            "level": self.level,
            "order": self.order,
            "status": self.status,
            "prerequisites": list(self.prerequisites or []),
            "created_at": format_datetime(self.created_at),
        }
