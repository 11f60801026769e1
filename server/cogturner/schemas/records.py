from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Serialized as camelCase for the browser collaborator
_wire_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Record(BaseModel):
    """A catalog release, either basic (from search) or enriched.

    The three enrichment fields are None until an upstream call supplies a
    valid value; None means absent, never zero.
    """

    model_config = _wire_config

    id: int
    artist: str
    title: str
    style: str
    year: int = 0
    image: str = ""
    source_url: str
    youtube_id: str | None = None
    lowest_price: float | None = None
    community_rating: float | None = None
    haves: int = 0
    wants: int = 0


class RecordsPage(BaseModel):
    """Phased-mode response body.

    ``handle`` is set on basic responses; pass it back with
    ``phase=complete`` to have that same sample enriched.
    """

    model_config = _wire_config

    records: list[Record]
    is_complete: bool
    handle: str | None = None


class ErrorResponse(BaseModel):
    error: str
