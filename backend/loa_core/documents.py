"""
Document upload through the storage collaborator.

The storage collaborator is anything with:
    async upload(key: str, data: bytes, content_type: str) -> str   (url)
    async delete(url: str) -> None
and raising StorageError on failure.

Upload failures become DOCUMENT results naming the failing file field;
the url of every successful upload is registered for compensation.
"""

from typing import Optional, Tuple
import logging
import uuid

from loa_core.compensation import CompensationStack
from loa_core.models import UploadedDocument
from loa_core.results import ErrorKind, FieldError, ServiceResult, StorageError

logger = logging.getLogger(__name__)

# Storage key prefixes
LOA_DOCUMENTS = "loas"
BILL_DOCUMENTS = "bills"
AMENDMENT_DOCUMENTS = "amendments"
OTHER_DOCUMENTS = "loas/other-documents"

FILE_LABELS = {
    "document_file": "LOA document file",
    "invoice_pdf_file": "invoice PDF file",
}


class DocumentUploader:

    def __init__(self, storage):
        self.storage = storage

    async def upload(self, prefix: str, document: UploadedDocument) -> str:
        key = f"{prefix}/{uuid.uuid4()}{document.extension}"
        try:
            content = document.content()
        except ValueError as e:
            raise StorageError(key, "decode", e)
        url = await self.storage.upload(key, content, document.content_type)
        logger.info(f"[STORAGE] Uploaded {document.file_name} -> {key}")
        return url

    async def process(
        self,
        field_name: str,
        prefix: str,
        document: Optional[UploadedDocument],
        compensations: CompensationStack,
        label: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[ServiceResult]]:
        """
        Upload one optional file.

        Returns (url, None) on success or when no file was supplied, and
        (None, failure) when the upload failed. Registered compensations are
        executed before the failure is returned.
        """
        if document is None:
            return None, None

        try:
            url = await self.upload(prefix, document)
        except StorageError as e:
            label = label or FILE_LABELS.get(field_name, field_name)
            logger.error(f"[STORAGE] Error processing {label} '{document.file_name}': {e}")
            failures = await compensations.run()
            failure = ServiceResult.fail(
                ErrorKind.DOCUMENT,
                f"Failed to process {label}",
                [FieldError(field_name, f"Failed to process {label} '{document.file_name}'")],
                warnings=[f"Cleanup failed: {f.description}" for f in failures]
            )
            return None, failure

        compensations.push(f"upload {url}", lambda: self.storage.delete(url))
        return url, None

