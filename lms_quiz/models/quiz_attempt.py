import enum

from sqlalchemy import Column, Integer, String, Boolean, Float, ForeignKey, JSON, DateTime, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from lms_quiz.core.errors import InvalidStatusTransition
from lms_quiz.core.utils import utcnow
from lms_quiz.db.base_class import Base


class AttemptStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "AttemptStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS = {
    AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.SUBMITTED, AttemptStatus.EXPIRED}),
    AttemptStatus.SUBMITTED: frozenset(),
    AttemptStatus.EXPIRED: frozenset(),
}


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("quiz_id", "student_id", "attempt_number", name="uq_quiz_attempt_number"),
        Index("ix_quiz_attempts_quiz_student", "quiz_id", "student_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    # Soft reference; students live in the user service
    student_id = Column(Integer, nullable=False)
    attempt_number = Column(Integer, nullable=False)
    status = Column(Enum(AttemptStatus, native_enum=False, length=20), nullable=False, default=AttemptStatus.IN_PROGRESS)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    time_spent_seconds = Column(Integer)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    score = Column(Float)  # percentage (0.0 to 100.0)
    is_passed = Column(Boolean)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    quiz = relationship("Quiz", lazy="selectin")
    items = relationship(
        "QuizAttemptItem",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="QuizAttemptItem.position",
        lazy="selectin",
    )

    @property
    def question_order(self):
        """Question IDs in the order frozen when the attempt was created."""
        return [item.question_id for item in self.items]

    def transition_to(self, target: AttemptStatus) -> None:
        current = AttemptStatus(self.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransition(
                f"Attempt {self.id} cannot move from {current.value} to {target.value}",
                field="status",
            )
        self.status = target


class QuizAttemptItem(Base):
    __tablename__ = "quiz_attempt_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    option_order = Column(JSON)  # Shuffled option keys, when the quiz shuffles options
    selected_option = Column(String(1))  # A, B, C, D or None if not answered
    is_correct = Column(Boolean)
    time_spent_seconds = Column(Integer)

    # Relationships
    attempt = relationship("QuizAttempt", back_populates="items")
    question = relationship("Question", lazy="selectin")

    @property
    def question_content(self):
        return self.question.content

    @property
    def options(self):
        """Question options in the order the student sees them."""
        by_key = {option.option_key: option for option in self.question.options}
        if not self.option_order:
            return list(by_key.values())
        return [by_key[key] for key in self.option_order if key in by_key]
