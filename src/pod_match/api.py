"""Pod-Match REST API: podcast ingestion, listening history and recommendations."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[2] / ".env")

from fastapi import FastAPI, Query
from fastapi.responses import PlainTextResponse

from .completions import CompletionClient
from .config import IdParsePolicy, env_flag
from .db import SqlExecutor
from .embeddings import EmbeddingClient
from .models import PodcastRequest, UserHistoryRequest
from .recommender import InvalidUserIdError, PodcastService, parse_user_id

logger = logging.getLogger(__name__)

service: PodcastService
id_parse_policy: IdParsePolicy = IdParsePolicy.PROPAGATE


@asynccontextmanager
async def lifespan(app: FastAPI):
    global service, id_parse_policy
    executor = SqlExecutor()
    embeddings = EmbeddingClient()
    if env_flag("POD_MATCH_INIT_SCHEMA"):
        await executor.init_schema(embeddings.dimensions)
    service = PodcastService(executor, embeddings, CompletionClient())
    id_parse_policy = IdParsePolicy.from_env()
    logger.info(f"Pod Match ready (id parse policy: {id_parse_policy.value})")
    yield


app = FastAPI(title="Pod Match", version="0.1.0", lifespan=lifespan)


def _bad_request(message: str) -> PlainTextResponse:
    logger.warning(message)
    return PlainTextResponse(message, status_code=400)


def _user_id_or_error(raw: str, field: str, strict: bool) -> int | PlainTextResponse:
    """Parse ``raw``; under strict parsing a bad id becomes a 400 instead of an error."""
    try:
        return parse_user_id(raw, field)
    except InvalidUserIdError:
        if strict:
            return _bad_request(f"Invalid '{field}'. It must be an integer.")
        raise


# --- Podcasts ---


@app.post("/add-podcast")
async def add_podcast(req: PodcastRequest | None = None):
    logger.info("Received a request to add a new podcast.")

    if req is None or not req.title or not req.transcript:
        return _bad_request("Missing 'title' or 'transcript' in the request body.")

    await service.add_podcast(req.title, req.transcript)
    return PlainTextResponse(f"Podcast '{req.title}' added successfully.", status_code=201)


# --- Listening History ---


@app.post("/update-user-history")
async def update_user_history(req: UserHistoryRequest | None = None):
    logger.info("Received a request to update user listening history.")

    if req is None or not req.user_id or not req.listening_history:
        return _bad_request("Missing 'user_id' or 'listening_history' in the request body.")

    user_id = _user_id_or_error(
        req.user_id, "user_id", strict=id_parse_policy is IdParsePolicy.STRICT
    )
    if isinstance(user_id, PlainTextResponse):
        return user_id

    await service.update_user_history(user_id, req.listening_history)
    return PlainTextResponse(
        f"Listening history for user {req.user_id} updated successfully.", status_code=200
    )


# --- Recommendations ---


@app.get("/recommend-podcasts")
async def recommend_podcasts(user_id: str | None = Query(default=None, alias="userId")):
    logger.info("Received a request to recommend podcasts.")

    if not user_id:
        return _bad_request("Missing 'userId' in query parameters.")

    parsed = _user_id_or_error(user_id, "userId", strict=id_parse_policy is IdParsePolicy.STRICT)
    if isinstance(parsed, PlainTextResponse):
        return parsed

    recommendations = await service.recommend(parsed)
    if recommendations is None:
        return PlainTextResponse(f"No embedding found for user ID {parsed}.", status_code=404)

    return [rec.model_dump() for rec in recommendations]


@app.get("/get-suggested-podcasts")
async def get_suggested_podcasts(user_id: str | None = Query(default=None, alias="userId")):
    logger.info("Received a request to fetch suggested podcasts for a user.")

    if not user_id:
        return _bad_request("Missing 'userId' in query parameters.")

    # Always validated, whatever the configured id parse policy.
    parsed = _user_id_or_error(user_id, "userId", strict=True)
    if isinstance(parsed, PlainTextResponse):
        return parsed

    suggested = await service.get_suggested_podcasts(parsed)
    return [s.model_dump() for s in suggested]


def main():
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    uvicorn.run(
        app,
        host=os.getenv("POD_MATCH_HOST", "127.0.0.1"),
        port=int(os.getenv("POD_MATCH_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
