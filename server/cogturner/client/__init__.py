from cogturner.client.cache import ClientRecordCache
from cogturner.client.records import ClientResult, ClientSource, RecordsClient, RecordsUnavailable
from cogturner.client.storage import LocalStorage, StorageQuotaExceeded

__all__ = [
    "ClientRecordCache",
    "ClientResult",
    "ClientSource",
    "LocalStorage",
    "RecordsClient",
    "RecordsUnavailable",
    "StorageQuotaExceeded",
]
