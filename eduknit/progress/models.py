from pydantic import BaseModel, Field
from typing import Optional


class ActivityRecord(BaseModel):
    course_id: str
    lesson_id: str
    time_spent: int = Field(0, ge=0, le=24 * 60)  # minutes
    completed: bool = False
    score: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = Field(None, max_length=2000)


class LessonCompleteRequest(BaseModel):
    time_spent: int = Field(0, ge=0, le=24 * 60)
    notes: Optional[str] = Field(None, max_length=2000)
