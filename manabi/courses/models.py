from datetime import datetime

from manabi import db


class Course(db.Model):
    """
    A course. Its curriculum is a list of modules, each a list of items;
    quiz items are stored in the quizzes table keyed by
    (course_id, module_index, item_index).
    """
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True)

    quizzes = db.relationship("Quiz", backref="course", lazy="dynamic", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Course {self.id}: {self.title}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
