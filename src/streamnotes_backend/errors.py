"""Attachment pipeline errors.

Each error carries the HTTP status and the `ErrorResponse.error` code it is
rendered with by `error_handlers`. Retrieval candidates failing individually
(`UpstreamRetrievalError`) are swallowed by the resolver loop; everything else
aborts the operation and reaches the client.
"""

from __future__ import annotations


class AttachmentError(Exception):
    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, *, details: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ClientInputError(AttachmentError):
    status_code = 400
    error = "bad_request"


class PayloadTooLargeError(ClientInputError):
    status_code = 413
    error = "payload_too_large"


class UpstreamRetrievalError(AttachmentError):
    error = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        location: str,
        upstream_status: int | None = None,
        body_snippet: str = "",
    ) -> None:
        super().__init__(
            message,
            details={
                "location": location,
                "status": upstream_status,
                "body": body_snippet,
            },
        )
        self.location = location
        self.upstream_status = upstream_status
        self.body_snippet = body_snippet
        # Surface the upstream status when there was one; transport failures are 502.
        self.status_code = upstream_status if upstream_status and upstream_status >= 400 else 502


class ExhaustionError(AttachmentError):
    status_code = 502
    error = "upstream_error"


class StorageWriteError(AttachmentError):
    error = "storage_write_failed"


class ConsistencyError(AttachmentError):
    error = "storage_delete_failed"


class NoteRecordDeleteError(AttachmentError):
    error = "note_delete_failed"
