import uuid
from datetime import datetime
from codecollab.models.db import db


class CodeSession(db.Model):
    __tablename__ = "code_sessions"

    id = db.Column(db.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner = db.Column(db.String(100), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    versions = db.relationship(
        "SessionVersion",
        backref="session",
        lazy=True,
        order_by="SessionVersion.position",
        cascade="all, delete-orphan",
    )
