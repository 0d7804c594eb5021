import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON, DateTime, Enum
from sqlalchemy.orm import relationship

from lms_quiz.core.utils import utcnow
from lms_quiz.db.base_class import Base


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class QuestionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Question(Base):
    """Question bank entry. Owned by the question bank; the quiz engine only reads it."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    difficulty = Column(Enum(Difficulty, native_enum=False, length=20), nullable=False, default=Difficulty.MEDIUM)
    tags = Column(JSON)  # Store as JSON array
    status = Column(Enum(QuestionStatus, native_enum=False, length=20), nullable=False, default=QuestionStatus.DRAFT)
    correct_option = Column(String(1), nullable=False)  # A, B, C, D
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.option_key",
        lazy="selectin",
    )

    @property
    def option_keys(self):
        return [option.option_key for option in self.options]


class QuestionOption(Base):
    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_key = Column(String(1), nullable=False)
    content = Column(Text, nullable=False)

    question = relationship("Question", back_populates="options")
