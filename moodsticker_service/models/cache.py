from pydantic import AwareDatetime, BaseModel


class CacheEntry(BaseModel):
    key: str
    labels: list[str]
    hit_count: int = 1
    created_at: AwareDatetime
    last_used_at: AwareDatetime


class CacheStatusResponse(BaseModel):
    hot_count: int = 0
    persisted_count: int = 0
    version: int | None = None
    persistent: bool = False
