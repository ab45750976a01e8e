from pydantic import BaseModel, Field, validator
from typing import List, Optional, Any
from enum import Enum

from eduknit import config

# ==================== ENUMS ====================

class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"

class AttemptStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    EXPIRED = "EXPIRED"

# ==================== QUIZ DEFINITION ====================

class QuizQuestion(BaseModel):
    id: str
    question: str
    type: QuestionType
    options: List[str] = []
    correct_answer: Any
    points: int = Field(1, ge=0)
    explanation: Optional[str] = None

    @validator("options", always=True)
    def validate_options(cls, v, values):
        if values.get("type") == QuestionType.MULTIPLE_CHOICE and len(v) < 2:
            raise ValueError("Multiple choice questions need at least two options")
        return v

class QuizSettings(BaseModel):
    time_limit: Optional[int] = Field(None, ge=1)  # minutes
    passing_score: int = Field(config.DEFAULT_PASSING_SCORE, ge=0, le=100)
    max_attempts: int = Field(config.DEFAULT_MAX_ATTEMPTS, ge=1)
    allow_multiple_attempts: bool = True
    show_correct_answers: bool = True
    show_feedback: bool = True

class QuizDefinition(BaseModel):
    questions: List[QuizQuestion]
    settings: QuizSettings = QuizSettings()

    @validator("questions")
    def validate_questions(cls, v):
        if not v:
            raise ValueError("A quiz needs at least one question")
        ids = [q.id for q in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Question ids must be unique")
        return v

# ==================== ATTEMPTS ====================

class QuizAnswer(BaseModel):
    question_id: str
    answer: Any = None

class QuizSubmission(BaseModel):
    attempt_id: str
    answers: List[QuizAnswer] = []
    time_spent: Optional[int] = Field(None, ge=0)  # seconds, computed from started_at when omitted
