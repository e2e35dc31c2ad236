"""
Signing orchestration service layer.

Responsibilities:
- Pick the next pending field for a signer on a document
- Apply signature and rejection outcomes to field records
- Gate stamping until no field is left pending

Persistence, link issuance and notifications belong to the caller; this
service works on the field records it is given.
"""

import logging
from typing import Optional

from ..exceptions import InvalidFieldTransition, SigningIncomplete
from ..records import FieldStatus, SignatureField
from .pdf_stamping import PDFStampingService, get_pdf_stamping_service

logger = logging.getLogger(__name__)


def _reading_order(field):
    return (field.page_number, field.y_fraction, field.x_fraction)


class SigningOrchestrator:
    """Thin sequencing layer between capture and stamping."""

    def __init__(self, stamping_service: Optional[PDFStampingService] = None):
        self.stamping_service = stamping_service or get_pdf_stamping_service()

    @staticmethod
    def next_pending_field(fields, document_id, signer_email) -> Optional[SignatureField]:
        """
        Get the next field the signer still has to fill, in reading order.

        Args:
            fields: iterable of SignatureField
            document_id: document the signer is working on
            signer_email: signer identifier (case-insensitive)

        Returns:
            SignatureField or None when the signer is done
        """
        email = (signer_email or '').strip().lower()
        candidates = [
            f for f in fields
            if f.document_id == document_id
            and f.is_pending
            and f.signer_email.strip().lower() == email
        ]
        return min(candidates, key=_reading_order) if candidates else None

    @staticmethod
    def record_signature(field: SignatureField, captured, signed_at=None) -> SignatureField:
        """
        Attach a completed capture to its field (pending -> signed).

        The capture must come from the signer the field is assigned to.
        """
        if captured.signer_email.strip().lower() != field.signer_email.strip().lower():
            raise InvalidFieldTransition(
                f'Signature for field {field.id} was captured by {captured.signer_email}, '
                f'not the assigned signer'
            )
        signed = field.sign(captured.data_url, signed_at=signed_at)
        logger.info(f'Field {field.id} signed by {field.signer_email}')
        return signed

    @staticmethod
    def record_rejection(field: SignatureField, reason=None) -> SignatureField:
        rejected = field.reject(reason)
        logger.info(f'Field {field.id} rejected by {field.signer_email}')
        return rejected

    @staticmethod
    def signer_status(fields):
        """
        Get signing status per signer.

        Returns:
            dict: Maps signer email -> {total, signed, rejected, completed}
        """
        status = {}
        for f in sorted(fields, key=lambda f: f.signer_email):
            entry = status.setdefault(f.signer_email, {'total': 0, 'signed': 0, 'rejected': 0})
            entry['total'] += 1
            if f.status == FieldStatus.SIGNED:
                entry['signed'] += 1
            elif f.status == FieldStatus.REJECTED:
                entry['rejected'] += 1

        for entry in status.values():
            entry['completed'] = entry['signed'] + entry['rejected'] == entry['total']
        return status

    @staticmethod
    def is_complete(fields) -> bool:
        return all(not f.is_pending for f in fields)

    def finalize(self, document_id, original_pdf_bytes, fields):
        """
        Stamp the document once every field has been signed or rejected.

        Raises:
            SigningIncomplete: a field is still pending
        """
        snapshot = tuple(f for f in fields if f.document_id == document_id)
        pending = [f.id for f in snapshot if f.is_pending]
        if pending:
            raise SigningIncomplete(
                f'Document {document_id} has {len(pending)} pending field(s)',
                pending_fields=pending,
            )
        return self.stamping_service.stamp_document(document_id, original_pdf_bytes, snapshot)


# Singleton instance
_signing_orchestrator = None


def get_signing_orchestrator() -> SigningOrchestrator:
    """Get singleton instance of signing orchestrator."""
    global _signing_orchestrator
    if _signing_orchestrator is None:
        _signing_orchestrator = SigningOrchestrator()
    return _signing_orchestrator
