"""
Error taxonomy for placement, capture and stamping.

Every error carries a stable ``error_kind`` so callers can surface
``{error_kind, message}`` verbatim at the invocation boundary.
"""


class SigningError(Exception):
    """Base class for all signing-core errors."""

    error_kind = 'signing_error'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message()
        self.details = details
        super().__init__(self.message)

    def default_message(self):
        return 'Signing operation failed'

    def to_payload(self):
        """Error payload for API responses."""
        return {
            'error_kind': self.error_kind,
            'message': self.message,
        }


class GeometryNotReady(SigningError):
    """Content size has not been measured (or measured as zero) yet."""

    error_kind = 'geometry_not_ready'

    def default_message(self):
        return 'Page content has not been measured yet; retry after the next measurement'


class EmptyInput(SigningError):
    error_kind = 'empty_input'

    def default_message(self):
        return 'No signature was drawn or typed'


class MissingSignerInfo(SigningError):
    error_kind = 'missing_signer_info'

    def default_message(self):
        return 'Signer name and email are required'


class CaptureClosed(SigningError):
    error_kind = 'capture_closed'

    def default_message(self):
        return 'Signature capture was cancelled'


class InvalidFieldTransition(SigningError):
    """A field lifecycle change was attempted from a state that forbids it."""

    error_kind = 'invalid_field_transition'

    def default_message(self):
        return 'Field can no longer be changed'


class FieldPageOutOfRange(SigningError):
    error_kind = 'field_page_out_of_range'

    def __init__(self, field_id, page_number, page_count):
        super().__init__(
            f'Field {field_id} references page {page_number} '
            f'but the document has {page_count} page(s)',
            field_id=field_id,
            page_number=page_number,
            page_count=page_count,
        )


class SourceDocumentInvalid(SigningError):
    error_kind = 'source_document_invalid'

    def default_message(self):
        return 'The source PDF could not be read'


class ImageEmbedFailed(SigningError):
    error_kind = 'image_embed_failed'

    def __init__(self, field_id, reason):
        super().__init__(
            f'Signature image for field {field_id} could not be embedded: {reason}',
            field_id=field_id,
        )


class SigningIncomplete(SigningError):
    error_kind = 'signing_incomplete'

    def default_message(self):
        return 'Document still has pending signature fields'
