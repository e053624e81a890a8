# ledger/errors.py
# Role: Exception types shared by services and routes.
#       Routes translate them into {"error": ...} JSON responses (see main.py).

"""
Error taxonomy for the commission ledger.

- ValidationError   missing/invalid input, caller must fix it (HTTP 400)
- RecordNotFound    unknown commission/phase/voice/file id (HTTP 404)
- StorageFault      attachment I/O failure other than "file not found" (HTTP 500)
- RepositoryFault   database/backend failure (HTTP 500)

Deleting an attachment that is already gone is not an error at all.
Nothing here is retried automatically.
"""


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    status_code = 400


class RecordNotFound(LedgerError):
    status_code = 404

    def __init__(self, entity: str, record_id):
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class StorageFault(LedgerError):
    status_code = 500


class RepositoryFault(LedgerError):
    status_code = 500
