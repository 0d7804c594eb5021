from lms_quiz.models.question import Question, QuestionOption, Difficulty, QuestionStatus
from lms_quiz.models.quiz import Quiz, QuizQuestion
from lms_quiz.models.quiz_attempt import QuizAttempt, QuizAttemptItem, AttemptStatus

__all__ = [
    "Question",
    "QuestionOption",
    "Difficulty",
    "QuestionStatus",
    "Quiz",
    "QuizQuestion",
    "QuizAttempt",
    "QuizAttemptItem",
    "AttemptStatus",
]
