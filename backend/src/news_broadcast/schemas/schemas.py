from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..utilities.constants import PUBLISHED_TIME_FORMAT


class NewsItem(BaseModel):
    ''' A published news post. Never mutated once created.'''

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str
    content: str
    # server wall-clock time, serialized without a zone
    published_at: datetime = Field(alias="publishedTime")
    category: str
    author: str

    @field_serializer("published_at")
    def _format_published_at(self, value: datetime) -> str:
        return value.strftime(PUBLISHED_TIME_FORMAT)


class CreateNewsRequest(BaseModel):
    title: str
    content: str
    category: str
    author: str
