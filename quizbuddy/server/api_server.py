"""FastAPI server exposing authoring, quiz-taking and analytics endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from quizbuddy.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizbuddy.constants.quiz_constants import (
    DEFAULT_DURATION_MINUTES,
    MAX_GENERATED_QUESTION_COUNT,
)
from quizbuddy.core.errors import QuizInUseError, QuizValidationError, StorageError
from quizbuddy.core.markdown_renderer import renderer
from quizbuddy.core.models import Question, QuestionType, Quiz, Submission, format_timestamp
from quizbuddy.core.quiz_manager import QuizManager
from quizbuddy.core.services.analytics import QuizAnalytics
from quizbuddy.core.services.reports import SubmissionResult
from quizbuddy.core.services.timed_session import TimedSession

logger = logging.getLogger(__name__)

_QUIZ_NOT_FOUND = "Quiz not found."
_SESSION_NOT_FOUND = "Session not found."
_RESULT_NOT_FOUND = "Result not found."


class QuestionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    text: str
    type: Literal["single", "multiple"] = "single"
    options: list[str]
    correct_answers: list[int] = Field(alias="correctAnswers")


class QuizCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    topic: str = ""
    duration_minutes: int = Field(DEFAULT_DURATION_MINUTES, alias="durationMinutes", gt=0)
    due_date: datetime | None = Field(None, alias="dueDate")
    questions: list[QuestionPayload]


class GeneratePayload(BaseModel):
    topic: str
    count: int | None = Field(None, ge=1, le=MAX_GENERATED_QUESTION_COUNT)


class SelectPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    option_index: int = Field(alias="optionIndex")


def _learner_quiz_view(quiz: Quiz) -> dict[str, object]:
    """Quiz as shown while taking it: rendered text, no answer key."""
    return {
        "id": quiz.id,
        "title": quiz.title,
        "topic": quiz.topic,
        "durationMinutes": quiz.duration_minutes,
        "dueDate": format_timestamp(quiz.due_date),
        "questions": [
            {
                "id": question.id,
                "text": question.text,
                "question_html": renderer.render_question(question.text),
                "type": question.type.value,
                "options": list(question.options),
                "options_html": [renderer.render_option(option) for option in question.options],
            }
            for question in quiz.questions
        ],
    }


def _session_view(session: TimedSession) -> dict[str, object]:
    submission = session.submission
    return {
        "session_id": session.id,
        "quiz_id": session.quiz.id,
        "state": session.state.name,
        "remaining_seconds": session.remaining_seconds,
        "time_left": session.time_left_display,
        "low_on_time": session.is_low_on_time,
        "answers": {question_id: list(selected) for question_id, selected in session.answers.items()},
        "attempted": session.attempted_count,
        "remaining": session.remaining_count,
        "submission_id": submission.id if submission else None,
    }


def _finished_session_view(session_id: str, submission: Submission) -> dict[str, object]:
    """View of a session that has ended and been released, rebuilt from its submission."""
    answers = {question_id: list(selected) for question_id, selected in submission.answers.items()}
    attempted = sum(1 for selected in answers.values() if selected)
    return {
        "session_id": session_id,
        "quiz_id": submission.quiz_id,
        "state": "FINISHED",
        "answers": answers,
        "attempted": attempted,
        "remaining": submission.total_possible - attempted,
        "submission_id": submission.id,
    }


def _ended_session_view(manager: QuizManager, session_id: str) -> dict[str, object]:
    submission = manager.finished_submission(session_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=_SESSION_NOT_FOUND)
    return _finished_session_view(session_id, submission)


def _submission_summary(submission: Submission) -> dict[str, object]:
    return {
        "id": submission.id,
        "quizId": submission.quiz_id,
        "studentName": submission.student_name,
        "score": submission.score,
        "totalPossible": submission.total_possible,
        "timestamp": format_timestamp(submission.timestamp),
    }


def _result_view(result: SubmissionResult) -> dict[str, object]:
    return {
        "submission": result.submission.to_record(),
        "quiz_title": result.quiz.title,
        "percentage": result.percentage,
        "correct": result.correct_count,
        "incorrect": result.incorrect_count,
        "review": [
            {
                "question_id": review.question_id,
                "text": review.text,
                "options": list(review.options),
                "selected": list(review.selected),
                "correct_answers": list(review.correct_answers),
                "is_correct": review.is_correct,
            }
            for review in result.reviews
        ],
    }


def _analytics_view(analytics: QuizAnalytics) -> dict[str, object]:
    return {
        "quiz_id": analytics.quiz_id,
        "title": analytics.title,
        "submission_count": analytics.submission_count,
        # None means "not applicable": there is nothing to average yet.
        "average_score_percentage": analytics.average_score_percentage,
        "questions": [
            {
                "question_id": stats.question_id,
                "text": stats.text,
                "attempted": stats.attempted,
                "correct": stats.correct,
                "incorrect": stats.incorrect,
                "accuracy_percentage": stats.accuracy_percentage,
            }
            for stats in analytics.questions
        ],
        "submissions": [_submission_summary(s) for s in analytics.ranked_submissions],
    }


def _to_question(payload: QuestionPayload) -> Question:
    return Question(
        id=payload.id or uuid4().hex,
        text=payload.text,
        type=QuestionType(payload.type),
        options=tuple(payload.options),
        correct_answers=frozenset(payload.correct_answers),
    )


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title="QuizBuddy API", version="0.1.0")
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    # --- User ---

    @app.get("/user")
    def get_user(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return manager.current_user.to_record()

    @app.post("/user/switch-role")
    def switch_role(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return manager.switch_role().to_record()

    # --- Quizzes ---

    @app.get("/quizzes")
    def list_quizzes(manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [quiz.to_record() for quiz in manager.list_quizzes()]

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: QuizCreatePayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            questions = [_to_question(item) for item in payload.questions]
            quiz = manager.create_quiz(
                title=payload.title,
                questions=questions,
                topic=payload.topic,
                duration_minutes=payload.duration_minutes,
                due_date=payload.due_date,
            )
        except QuizValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except StorageError as exc:
            logger.error("Could not store new quiz: %s", exc)
            raise HTTPException(status_code=503, detail="Quiz could not be saved.") from exc
        return quiz.to_record()

    @app.post("/quizzes/generate")
    def generate_questions(
        payload: GeneratePayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        result = manager.generate_questions(payload.topic, payload.count)
        return {
            "questions": [question.to_record() for question in result.questions],
            "rejected": result.rejected,
            "failed": result.failed,
            "error": result.error,
        }

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        quiz = manager.get_quiz(quiz_id)
        if quiz is None:
            raise HTTPException(status_code=404, detail=_QUIZ_NOT_FOUND)
        return _learner_quiz_view(quiz)

    @app.delete("/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> None:
        try:
            deleted = manager.delete_quiz(quiz_id)
        except QuizInUseError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if not deleted:
            raise HTTPException(status_code=404, detail=_QUIZ_NOT_FOUND)

    @app.get("/quizzes/{quiz_id}/analytics")
    def get_analytics(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        analytics = manager.quiz_analytics(quiz_id)
        if analytics is None:
            raise HTTPException(status_code=404, detail=_QUIZ_NOT_FOUND)
        return _analytics_view(analytics)

    # --- Sessions ---

    @app.post("/quizzes/{quiz_id}/sessions", status_code=201)
    def start_session(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            session = manager.start_session(quiz_id)
        except QuizValidationError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if session is None:
            raise HTTPException(status_code=404, detail=_QUIZ_NOT_FOUND)
        return _session_view(session)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        session = manager.get_session(session_id)
        if session is None:
            return _ended_session_view(manager, session_id)
        return _session_view(session)

    @app.post("/sessions/{session_id}/select")
    def select_answer(
        session_id: str,
        payload: SelectPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        session = manager.get_session(session_id)
        if session is None:
            return {"applied": False, **_ended_session_view(manager, session_id)}
        applied = manager.select_answer(session_id, payload.question_id, payload.option_index)
        return {"applied": applied, **_session_view(session)}

    @app.post("/sessions/{session_id}/finish")
    def finish_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        session = manager.get_session(session_id)
        if session is None:
            return {"persist_failed": manager.persist_failed, **_ended_session_view(manager, session_id)}
        manager.finish_session(session_id)
        return {"persist_failed": manager.persist_failed, **_session_view(session)}

    @app.delete("/sessions/{session_id}", status_code=204)
    def cancel_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> None:
        if not manager.cancel_session(session_id):
            raise HTTPException(status_code=404, detail=_SESSION_NOT_FOUND)

    # --- Results & dashboards ---

    @app.get("/submissions/{submission_id}/result")
    def get_result(submission_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        result = manager.get_result(submission_id)
        if result is None:
            raise HTTPException(status_code=404, detail=_RESULT_NOT_FOUND)
        return _result_view(result)

    @app.get("/dashboard/faculty")
    def faculty_dashboard(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        dashboard = manager.faculty_dashboard()
        return {
            "total_quizzes": dashboard.total_quizzes,
            "total_submissions": dashboard.total_submissions,
            "average_score_percentage": dashboard.average_score_percentage,
            "quizzes": [
                {**row.quiz.to_record(), "submission_count": row.submission_count}
                for row in dashboard.quizzes
            ],
        }

    @app.get("/dashboard/student")
    def student_dashboard(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        dashboard = manager.student_dashboard()
        return {
            "available": [
                {
                    "id": entry.quiz.id,
                    "title": entry.quiz.title,
                    "topic": entry.quiz.topic,
                    "durationMinutes": entry.quiz.duration_minutes,
                    "questionCount": entry.quiz.question_count,
                    "dueDate": format_timestamp(entry.quiz.due_date),
                    "overdue": entry.is_overdue,
                }
                for entry in dashboard.available
            ],
            "completed": [
                {**_submission_summary(entry.submission), "quiz_title": entry.quiz_title}
                for entry in dashboard.completed
            ],
            "average_score_percentage": dashboard.average_score_percentage,
        }

    return app


def run_api_server(quiz_manager: QuizManager, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Serve the API on the calling thread until interrupted."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    uvicorn.Server(config).run()

