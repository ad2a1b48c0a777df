"""Letter counting endpoints."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _answer(request: Request, word: str) -> str:
    logger.info("Counting 'e's in %s", word)
    answer = await request.app.state.orchestrator.answer(word)
    logger.info("Result=%s", answer)
    return answer


@router.get("/countEs/{word}", response_class=PlainTextResponse)
async def count_es(word: str, request: Request) -> str:
    """Number of 'e's in ``word``, as answered by the agent."""
    return await _answer(request, word)


@router.post("/countEs", response_class=PlainTextResponse, response_model=None)
async def count_es_body(request: Request) -> str | PlainTextResponse:
    """Same as the GET variant with the word as the raw request body."""
    body = await request.body()
    try:
        word = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Rejected request body: %s", exc)
        return PlainTextResponse("Request body must be UTF-8 text", status_code=status.HTTP_400_BAD_REQUEST)
    return await _answer(request, word)
