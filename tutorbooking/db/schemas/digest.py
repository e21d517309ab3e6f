from pydantic import BaseModel


class DigestResult(BaseModel):
    ok: bool = True
    skipped: str | None = None
    ymd: str | None = None
    count: int = 0
