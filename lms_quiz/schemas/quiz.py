from pydantic import BaseModel, Field, model_validator
from typing import Annotated, Dict, List, Optional
from datetime import datetime

from lms_quiz.models.question import Difficulty, QuestionStatus
from lms_quiz.models.quiz_attempt import AttemptStatus

OptionKey = Annotated[str, Field(min_length=1, max_length=1)]


class QuestionOption(BaseModel):
    option_key: str
    content: str

    class Config:
        from_attributes = True


class Question(BaseModel):
    id: int
    content: str
    difficulty: Difficulty
    tags: Optional[List[str]] = None
    status: QuestionStatus
    correct_option: str
    options: List[QuestionOption]

    class Config:
        from_attributes = True


class QuizSettings(BaseModel):
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)
    max_attempts: int = Field(default=1, ge=1)
    passing_score: int = Field(default=60, ge=0, le=100)
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_results_immediately: bool = True
    show_correct_answers: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    random_count: Optional[int] = Field(default=None, ge=1)
    random_difficulties: Optional[List[Difficulty]] = None
    random_tags: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class QuizCreate(QuizSettings):
    question_ids: List[int] = []


class QuizQuestionsUpdate(BaseModel):
    question_ids: List[int]


class Quiz(QuizSettings):
    id: int
    lesson_id: int
    question_ids: List[int]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StartAttemptRequest(BaseModel):
    student_id: int


class SubmitAttemptRequest(BaseModel):
    # question id -> selected option key; unanswered questions are simply absent
    answers: Dict[int, OptionKey] = {}
    time_spent_seconds: Dict[int, Annotated[int, Field(ge=0)]] = {}


class QuizAttemptItem(BaseModel):
    # Student-facing: question text and options, never the answer key
    question_id: int
    position: int
    question_content: str
    options: List[QuestionOption]
    option_order: Optional[List[str]] = None
    selected_option: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent_seconds: Optional[int] = None

    class Config:
        from_attributes = True


class QuizAttempt(BaseModel):
    id: int
    quiz_id: int
    student_id: int
    attempt_number: int
    status: AttemptStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    time_spent_seconds: Optional[int] = None
    total_questions: int
    # None while results are withheld from the student
    correct_answers: Optional[int] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    question_order: List[int]
    items: List[QuizAttemptItem]
    created_at: datetime

    class Config:
        from_attributes = True


class QuizAttemptList(BaseModel):
    attempts: List[QuizAttempt]


class QuizResultItem(BaseModel):
    question_id: int
    question_content: str
    options: List[QuestionOption]
    option_order: Optional[List[str]] = None
    selected_option: Optional[str] = None
    correct_option: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent_seconds: Optional[int] = None


class QuizResultDetail(BaseModel):
    attempt_id: int
    lesson_id: int
    student_id: int
    score: Optional[float] = None
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    is_passed: Optional[bool] = None
    passing_score: int
    start_time: datetime
    end_time: Optional[datetime] = None
    time_spent_seconds: Optional[int] = None
    show_correct_answers: bool
    result_items: List[QuizResultItem]


class QuestionStatistic(BaseModel):
    question_id: int
    question_content: str
    total_attempts: int = 0
    correct_attempts: int = 0
    correct_rate: float = 0.0


class QuizStatistics(BaseModel):
    quiz_id: int
    lesson_id: int
    total_attempts: int
    completed_attempts: int
    average_score: float
    pass_rate: float
    passing_score: int
    question_statistics: List[QuestionStatistic]
