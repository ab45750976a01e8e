from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from enum import Enum

from eduknit.quizzes.models import QuizDefinition

# ==================== ENUMS ====================

class CourseCategory(str, Enum):
    AI_CERTIFICATE = "AI_CERTIFICATE"
    DATA_CERTIFICATION = "DATA_CERTIFICATION"
    PROFESSIONAL_SKILLS = "PROFESSIONAL_SKILLS"
    TECHNICAL_SKILLS = "TECHNICAL_SKILLS"

class CourseLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    ALL_LEVELS = "ALL_LEVELS"

class LessonType(str, Enum):
    VIDEO = "VIDEO"
    TEXT = "TEXT"
    QUIZ = "QUIZ"
    ASSIGNMENT = "ASSIGNMENT"
    INTERACTIVE = "INTERACTIVE"
    DOCUMENT = "DOCUMENT"

CATEGORY_LABELS = {
    CourseCategory.AI_CERTIFICATE.value: "AI Certificate",
    CourseCategory.DATA_CERTIFICATION.value: "Data Certification",
    CourseCategory.PROFESSIONAL_SKILLS.value: "Professional Skills",
    CourseCategory.TECHNICAL_SKILLS.value: "Technical Skills",
}

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    category: CourseCategory
    instructor: str
    duration: str = ""  # e.g. "8 weeks"
    timeframe: str = ""  # e.g. "Self-paced"
    level: CourseLevel = CourseLevel.BEGINNER
    price: float = Field(0, ge=0)
    currency: str = "USD"
    image_url: Optional[str] = None
    overview: str = ""
    skills: List[str] = []
    prerequisites: List[str] = []
    estimated_duration: int = Field(0, ge=0)  # hours
    duration_days: int = Field(30, ge=1)
    certificate_awarded: bool = True
    is_active: bool = True

    @validator("currency")
    def validate_currency(cls, v):
        return v.upper()

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    category: Optional[CourseCategory] = None
    instructor: Optional[str] = None
    duration: Optional[str] = None
    timeframe: Optional[str] = None
    level: Optional[CourseLevel] = None
    price: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    image_url: Optional[str] = None
    overview: Optional[str] = None
    skills: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    estimated_duration: Optional[int] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, ge=1)
    certificate_awarded: Optional[bool] = None
    is_active: Optional[bool] = None

# ==================== MODULE MODELS ====================

class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    order_index: int = Field(..., ge=0)
    estimated_duration: int = Field(0, ge=0)  # minutes
    prerequisites: List[str] = []  # module ids
    learning_objectives: List[str] = []
    is_active: bool = True

class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)
    estimated_duration: Optional[int] = Field(None, ge=0)
    prerequisites: Optional[List[str]] = None
    learning_objectives: Optional[List[str]] = None
    is_active: Optional[bool] = None

# ==================== LESSON MODELS ====================

class LessonResource(BaseModel):
    title: str
    url: str
    type: str = "link"

class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    order_index: int = Field(..., ge=0)
    type: LessonType = LessonType.TEXT
    content: Dict[str, Any] = {}  # e.g. {"text": "..."} or {"video_url": "..."}
    estimated_duration: int = Field(0, ge=0)  # minutes
    is_required: bool = True
    prerequisites: List[str] = []  # lesson ids
    learning_objectives: List[str] = []
    resources: List[LessonResource] = []
    quiz: Optional[QuizDefinition] = None
    is_active: bool = True

class LessonUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)
    type: Optional[LessonType] = None
    content: Optional[Dict[str, Any]] = None
    estimated_duration: Optional[int] = Field(None, ge=0)
    is_required: Optional[bool] = None
    prerequisites: Optional[List[str]] = None
    learning_objectives: Optional[List[str]] = None
    resources: Optional[List[LessonResource]] = None
    is_active: Optional[bool] = None
