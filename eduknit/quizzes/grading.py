"""
Quiz grading and answer visibility.
No database access here; the service layer feeds documents in.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from eduknit import config
from eduknit.analytics.metrics import round_half_up
from eduknit.errors import ValidationError

TRUE_VALUES = {"true", "t", "yes", "1"}
FALSE_VALUES = {"false", "f", "no", "0"}


def _as_bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    return None


def is_answer_correct(question: dict, answer) -> bool:
    if answer is None:
        return False

    qtype = question.get("type")
    correct = question.get("correct_answer")

    if qtype == "TRUE_FALSE":
        given = _as_bool(answer)
        return given is not None and given == _as_bool(correct)

    if qtype == "SHORT_ANSWER":
        return str(answer).strip().lower() == str(correct).strip().lower()

    # MULTIPLE_CHOICE: exact match
    return answer == correct


def grade_quiz(quiz: dict, answers: List[dict], passing_score: Optional[int] = None) -> dict:
    """
    Grade submitted answers against a quiz definition.

    Raises ValidationError for answers to unknown question ids.
    Unanswered questions score 0.
    """
    questions = {q["id"]: q for q in quiz.get("questions", [])}
    submitted = {}
    for item in answers:
        question_id = item.get("question_id")
        if question_id not in questions:
            raise ValidationError(f"Unknown question id: {question_id}")
        submitted[question_id] = item.get("answer")

    if passing_score is None:
        passing_score = quiz.get("settings", {}).get("passing_score", config.DEFAULT_PASSING_SCORE)

    score = 0
    max_score = 0
    graded = []
    for question_id, question in questions.items():
        points = question.get("points", 1)
        max_score += points
        answer = submitted.get(question_id)
        correct = is_answer_correct(question, answer)
        earned = points if correct else 0
        score += earned
        graded.append({
            "question_id": question_id,
            "answer": answer,
            "is_correct": correct,
            "points_earned": earned,
            "points_possible": points,
        })

    percentage = round_half_up(score / max_score * 100) if max_score else 0
    return {
        "score": score,
        "max_score": max_score,
        "percentage": percentage,
        "is_passed": percentage >= passing_score,
        "passing_score": passing_score,
        "answers": graded,
    }


def is_attempt_expired(attempt: dict, now: Optional[datetime] = None) -> bool:
    """Past the time limit plus the grace window"""
    time_limit = (attempt.get("settings") or {}).get("time_limit")
    if not time_limit:
        return False
    deadline = attempt["started_at"] + timedelta(minutes=time_limit, seconds=config.QUIZ_GRACE_SECONDS)
    return (now or datetime.utcnow()) > deadline


# ==================== VISIBILITY ====================

def public_quiz(quiz: Optional[dict]) -> Optional[dict]:
    """Quiz without correct answers or explanations"""
    if not quiz:
        return None
    return {
        "questions": [
            {
                "id": q["id"],
                "question": q["question"],
                "type": q["type"],
                "options": q.get("options", []),
                "points": q.get("points", 1),
            }
            for q in quiz.get("questions", [])
        ],
        "settings": quiz.get("settings", {}),
        "total_questions": len(quiz.get("questions", [])),
        "max_score": sum(q.get("points", 1) for q in quiz.get("questions", [])),
    }


def attempt_feedback(attempt: dict, quiz: Optional[dict]) -> List[dict]:
    """Per-question results, revealing answers only when the quiz settings allow it"""
    settings = attempt.get("settings") or (quiz or {}).get("settings", {})
    questions = {q["id"]: q for q in (quiz or {}).get("questions", [])}
    show_answers = settings.get("show_correct_answers", True)
    show_feedback = settings.get("show_feedback", True)

    feedback = []
    for item in attempt.get("answers", []):
        entry = {
            "question_id": item["question_id"],
            "answer": item.get("answer"),
            "is_correct": item.get("is_correct", False),
            "points_earned": item.get("points_earned", 0),
        }
        question = questions.get(item["question_id"])
        if question:
            entry["question"] = question["question"]
            if show_answers:
                entry["correct_answer"] = question.get("correct_answer")
            if show_feedback and question.get("explanation"):
                entry["explanation"] = question["explanation"]
        feedback.append(entry)
    return feedback
