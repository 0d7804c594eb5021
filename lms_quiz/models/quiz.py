from sqlalchemy import Column, Integer, Boolean, ForeignKey, JSON, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from lms_quiz.core.utils import utcnow
from lms_quiz.db.base_class import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lesson_id = Column(Integer, unique=True, index=True, nullable=False)
    time_limit_minutes = Column(Integer)  # None means no limit
    max_attempts = Column(Integer, nullable=False, default=1)
    passing_score = Column(Integer, nullable=False, default=60)  # percentage
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    shuffle_options = Column(Boolean, nullable=False, default=False)
    show_results_immediately = Column(Boolean, nullable=False, default=True)
    show_correct_answers = Column(Boolean, nullable=False, default=False)
    start_date = Column(DateTime)
    end_date = Column(DateTime)

    # Random selection criteria, used only when the manual list is empty
    random_count = Column(Integer)
    random_difficulties = Column(JSON)
    random_tags = Column(JSON)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    quiz_questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
        lazy="selectin",
    )

    @property
    def question_ids(self):
        """Manual selection list, in curator order."""
        return [qq.question_id for qq in self.quiz_questions]


class QuizQuestion(Base):
    """Manual selection entry: one question at one position of a quiz."""

    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)

    quiz = relationship("Quiz", back_populates="quiz_questions")
    question = relationship("Question", lazy="selectin")
