"""
FastAPI app exposing the learning AI over HTTP.

Endpoints delegate to a shared LearningAI built on first use from
``LearningConfig.from_env()``. Blocking work (SQLite, Wikipedia, the teacher
LLM) runs in a worker thread so the event loop stays responsive.
"""
import logging
import os
import threading
from typing import List, Optional

import anyio
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from aisync.learning_ai import LearningAI
from aisync.patterns import FEEDBACK_TYPES, FeedbackEvent

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: str
    context: List[str] = Field(default_factory=list)


class FeedbackRequest(BaseModel):
    message_id: Optional[str] = None
    feedback: str
    question: str = ""
    rating: Optional[int] = None
    helpful: Optional[bool] = None
    comment: Optional[str] = None


class LearningRequest(BaseModel):
    action: str
    max_questions: Optional[int] = Field(default=None, ge=1)


LEARNING_ACTIONS = ("start-session", "get-stats", "check")

app = FastAPI(title="AISync Learning API", version="0.1")

_learning_ai: Optional[LearningAI] = None
_learning_ai_lock = threading.Lock()


def get_learning_ai() -> LearningAI:
    """Shared LearningAI, created on first request."""

    global _learning_ai
    if _learning_ai is None:
        with _learning_ai_lock:
            if _learning_ai is None:
                ai = LearningAI.from_config()
                ai.initialize()
                _learning_ai = ai
    return _learning_ai


def set_learning_ai(ai: Optional[LearningAI]) -> None:
    """Replace the shared LearningAI (tests, embedding applications)."""

    global _learning_ai
    _learning_ai = ai


@app.post("/chat")
async def chat(req: ChatRequest):
    message = req.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    ai = get_learning_ai()
    response = await anyio.to_thread.run_sync(ai.generate_response, message, req.context)
    return {"response": response}


@app.post("/feedback")
async def feedback(req: FeedbackRequest):
    if req.feedback not in FEEDBACK_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid feedback type. Must be one of: {', '.join(FEEDBACK_TYPES)}",
        )

    event = FeedbackEvent(
        type=req.feedback,
        question=req.question,
        response_id=req.message_id,
        rating=req.rating,
        helpful=req.helpful,
        comment=req.comment,
    )
    ai = get_learning_ai()
    outcome = await anyio.to_thread.run_sync(ai.process_feedback, event)
    if outcome is None:
        raise HTTPException(status_code=500, detail="Feedback could not be stored")

    metrics = await anyio.to_thread.run_sync(ai.get_metrics)
    return {
        "success": True,
        "message": "Feedback processed successfully",
        "updated_patterns": len(outcome.updated_ids),
        "ai_stats": metrics.to_dict(),
    }


@app.post("/learning")
async def learning(req: LearningRequest):
    if req.action not in LEARNING_ACTIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid action. Must be one of: {', '.join(LEARNING_ACTIONS)}",
        )

    ai = get_learning_ai()
    if req.action == "start-session":
        if ai.trainer is None or not ai.trainer.available:
            raise HTTPException(status_code=400, detail="Self-training requires a teacher LLM API key")
        session = await anyio.to_thread.run_sync(ai.trainer.start_session, req.max_questions)
        return {"success": session.status == "completed", "session": session.to_dict()}

    stats = await anyio.to_thread.run_sync(ai.get_learning_stats)
    if req.action == "check":
        return {"should_run": stats["session_due"], "teacher_available": stats["teacher_available"]}
    return {"success": True, "stats": stats}


@app.get("/learning")
async def learning_stats():
    ai = get_learning_ai()
    return await anyio.to_thread.run_sync(ai.get_learning_stats)


@app.get("/metrics")
async def metrics():
    ai = get_learning_ai()
    result = await anyio.to_thread.run_sync(ai.get_metrics)
    return result.to_dict()


@app.get("/health")
async def health():
    return {"status": "ok"}


def main():
    """Run the API with uvicorn (``aisync-server``)."""
    import uvicorn

    logging.basicConfig(level=os.getenv("AISYNC_LOG_LEVEL", "INFO").upper())
    uvicorn.run(
        "aisync.server:app",
        host=os.getenv("AISYNC_HOST", "127.0.0.1"),
        port=int(os.getenv("AISYNC_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
