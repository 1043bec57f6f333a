import uuid
from datetime import datetime
from codecollab.models.db import db


class SessionVersion(db.Model):
    """One code snapshot in a session's append-only history."""
    __tablename__ = "session_versions"
    __table_args__ = (
        db.UniqueConstraint("session_id", "position", name="uq_session_version_position"),
    )

    id = db.Column(db.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = db.Column(db.Uuid(as_uuid=True), db.ForeignKey("code_sessions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    code = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
