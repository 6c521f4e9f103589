from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PodcastRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: str | None = None
    transcript: str | None = None


class UserHistoryRequest(BaseModel):
    # JSON numbers are accepted and kept in their string form
    model_config = ConfigDict(coerce_numbers_to_str=True)

    user_id: str | None = None
    listening_history: str | None = None


class PodcastRecommendation(BaseModel):
    id: str
    title: str
    summary: str  # short model-written description, not the stored summary
    similarity: float


class SuggestedPodcast(BaseModel):
    user_id: int
    podcast_id: int
    title: str
