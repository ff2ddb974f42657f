# models.py
import datetime
import uuid

from config import db, DEFAULT_SESSION_TITLE


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


def new_id():
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


class Session(db.Model):
    __tablename__ = "sessions"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(120), nullable=False, default=DEFAULT_SESSION_TITLE)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # ORM-side cascade as well, SQLite does not enforce FKs unless told to
    messages = db.relationship("Message", backref="session", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class Message(db.Model):
    __tablename__ = "messages"
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.String(36), db.ForeignKey("sessions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    role = db.Column(db.String(32), nullable=False)  # 'user', 'assistant', 'system'
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": isoformat(self.created_at),
        }


class Role(db.Model):
    __tablename__ = "roles"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(100), unique=True, nullable=False)
    instructions = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "instructions": self.instructions,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
