"""Document upload side-channel for step 4.

Each attached file goes out as its own multipart request, independent of
the other files and of the JSON step write. A partial set of successful
uploads is a normal outcome: failures are logged and recorded per
document, never retried and never escalated to the step.
"""

import logging

from activation.schemas.profile import DocumentType, UploadResult
from activation.schemas.steps import LocalFile, Step4Form
from activation.services.remote import CURRENT_SESSION, RemoteSyncClient
from activation.services.tasks import BackgroundTaskQueue

logger = logging.getLogger(__name__)

# Step 4 file field → document type tag expected by the service
FILE_FIELDS: dict[str, DocumentType] = {
    "front_image": DocumentType.ID_FRONT,
    "back_image": DocumentType.ID_BACK,
    "selfie_image": DocumentType.SELFIE,
    "passport_photo": DocumentType.PASSPORT_PHOTO,
    "driver_license_photo": DocumentType.DRIVER_LICENSE,
    "electricity_bill_photo": DocumentType.ELECTRICITY_BILL,
}

PENDING = "pending"
UPLOADED = "uploaded"
FAILED = "failed"


class UploadTracker:
    """Per-document upload status for the current session only."""

    def __init__(self) -> None:
        self._status: dict[DocumentType, str] = {}
        self._results: dict[DocumentType, UploadResult] = {}
        self._tickets: dict[DocumentType, int] = {}
        self._issued = 0

    def mark_pending(self, document_type: DocumentType) -> int:
        """Mark `document_type` in flight. Returns the ticket its result must present."""
        self._issued += 1
        self._tickets[document_type] = self._issued
        self._status[document_type] = PENDING
        self._results.pop(document_type, None)
        return self._issued

    def is_current(self, document_type: DocumentType, ticket: int) -> bool:
        return self._tickets.get(document_type) == ticket

    def store_result(self, result: UploadResult) -> None:
        self._status[result.document_type] = UPLOADED if result.success else FAILED
        self._results[result.document_type] = result

    def status(self, document_type: DocumentType) -> str | None:
        return self._status.get(document_type)

    def result(self, document_type: DocumentType) -> UploadResult | None:
        return self._results.get(document_type)

    def pending(self) -> list[DocumentType]:
        return [d for d, s in self._status.items() if s == PENDING]

    def failed(self) -> list[DocumentType]:
        return [d for d, s in self._status.items() if s == FAILED]

    def uploaded(self) -> list[DocumentType]:
        return [d for d, s in self._status.items() if s == UPLOADED]

    def reset(self) -> None:
        self._status.clear()
        self._results.clear()
        self._tickets.clear()


class DocumentUploader:
    def __init__(
        self,
        client: RemoteSyncClient,
        queue: BackgroundTaskQueue,
        tracker: UploadTracker | None = None,
    ):
        self.client = client
        self.queue = queue
        self.tracker = tracker or UploadTracker()

    def schedule(self, form: Step4Form, token=CURRENT_SESSION) -> list[DocumentType]:
        """Queue one upload per bound file. Returns the document types queued.

        Uploads are sent with `token`, the session the form belongs to, even
        if the client has switched accounts before they go out.
        """
        queued = []
        for field_name, file in form.attachments().items():
            document_type = FILE_FIELDS[field_name]
            ticket = self.tracker.mark_pending(document_type)
            self.queue.submit(
                f"upload-{document_type.value}",
                self._upload(file, document_type, ticket, token),
            )
            queued.append(document_type)
        return queued

    async def _upload(
        self, file: LocalFile, document_type: DocumentType, ticket: int, token
    ) -> UploadResult:
        try:
            result = await self.client.upload_document(file, document_type, token=token)
        except Exception as e:
            if self._is_current(document_type, ticket):
                self.tracker.store_result(
                    UploadResult(document_type=document_type, success=False, error=str(e))
                )
            raise
        if not self._is_current(document_type, ticket):
            return result
        self.tracker.store_result(result)
        if result.success:
            logger.info(f"Uploaded {document_type.value}: {result.document.id}")
        else:
            logger.error(f"Failed to upload {document_type.value}: {result.error}")
        return result

    def _is_current(self, document_type: DocumentType, ticket: int) -> bool:
        if self.tracker.is_current(document_type, ticket):
            return True
        # Tracker was reset (clear or account switch) or the document re-queued meanwhile
        logger.info(f"Dropping stale upload result for {document_type.value}")
        return False
