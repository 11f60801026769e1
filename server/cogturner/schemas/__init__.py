from cogturner.schemas.records import ErrorResponse, Record, RecordsPage

__all__ = [
    "ErrorResponse",
    "Record",
    "RecordsPage",
]
