from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import config
from .api import router
from .db import init_db
from .errors import QuizError
from .notifications import NotificationSink
from .question_bank import QuestionBank
from .service import QuizService

logger = logging.getLogger(__name__)


async def _quiz_error_handler(request: Request, exc: QuizError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code, "message": exc.message},
    )


def create_app(
    *,
    bank: QuestionBank | None = None,
    bank_path: Path | str | None = None,
    sink: NotificationSink | None = None,
) -> FastAPI:
    """Build the app and its single QuestionBank / QuizService pair."""

    config.configure_logging()
    question_bank = bank or QuestionBank(bank_path or config.BANK_PATH)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        init_db()
        yield

    app = FastAPI(title="quizpath", lifespan=lifespan)
    app.state.service = QuizService(question_bank, sink=sink)
    app.add_exception_handler(QuizError, _quiz_error_handler)
    app.include_router(router)

    # Ensure the schema exists even when lifespan hooks are not triggered (e.g. in tests).
    init_db()
    return app


def main() -> None:
    import uvicorn

    uvicorn.run("quizpath.app:create_app", factory=True, host="127.0.0.1", port=8000, reload=True)


if __name__ == "__main__":
    main()
