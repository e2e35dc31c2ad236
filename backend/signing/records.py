"""
Plain signature-field records exchanged with the persistence layer.

Records are immutable: every lifecycle step returns a new record, so a list
of fields read at the start of a stamping run stays a consistent snapshot.
"""

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone

from .exceptions import InvalidFieldTransition


class FieldStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SIGNED = 'signed', 'Signed'
    REJECTED = 'rejected', 'Rejected'


def _check_fraction(name, value):
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        raise ValueError(f'{name} must be within [0, 1], got {value!r}')


def _check_size(name, value):
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f'{name} must be a positive number, got {value!r}')


@dataclass(frozen=True)
class SignatureField:
    """
    A signature box placed on one page of a document.

    Position is the top-left corner as a fraction of the full rendered page
    content (top-left origin). ``width``/``height`` are field units: device
    pixels at zoom 1.0, converted to points with ``FIELD_UNITS_PER_POINT``.
    """

    id: str
    document_id: str
    signer_email: str
    signer_name: str
    page_number: int
    x_fraction: float
    y_fraction: float
    width: float
    height: float
    status: FieldStatus = FieldStatus.PENDING
    signature_image: Optional[str] = None
    signed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    link_issued: bool = field(default=False)

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f'page_number must be >= 1, got {self.page_number}')
        _check_fraction('x_fraction', self.x_fraction)
        _check_fraction('y_fraction', self.y_fraction)
        _check_size('width', self.width)
        _check_size('height', self.height)
        if self.status == FieldStatus.SIGNED and not self.signature_image:
            raise ValueError('signed fields must carry a signature image')
        if self.status != FieldStatus.SIGNED and self.signature_image:
            raise ValueError('only signed fields may carry a signature image')
        if (self.status == FieldStatus.SIGNED) != (self.signed_at is not None):
            raise ValueError('signed_at is set if and only if the field is signed')

    @classmethod
    def create(cls, *, document_id, signer_email, signer_name, page_number,
               x_fraction, y_fraction, width=None, height=None, field_id=None):
        """Create a new pending field with no image."""
        return cls(
            id=field_id or uuid.uuid4().hex,
            document_id=document_id,
            signer_email=signer_email,
            signer_name=signer_name,
            page_number=page_number,
            x_fraction=x_fraction,
            y_fraction=y_fraction,
            width=width if width is not None else settings.DEFAULT_FIELD_WIDTH,
            height=height if height is not None else settings.DEFAULT_FIELD_HEIGHT,
        )

    @property
    def is_pending(self):
        return self.status == FieldStatus.PENDING

    @property
    def is_stampable(self):
        return self.status == FieldStatus.SIGNED and bool(self.signature_image)

    def _require_pending(self, action):
        if not self.is_pending:
            raise InvalidFieldTransition(
                f'Cannot {action} field {self.id}: status is {self.status}'
            )

    def move_to(self, x_fraction, y_fraction):
        """Return the field re-positioned to a new normalized top-left corner."""
        self._require_pending('move')
        return replace(self, x_fraction=x_fraction, y_fraction=y_fraction)

    def resize(self, width, height):
        self._require_pending('resize')
        return replace(self, width=width, height=height)

    def reassign(self, signer_name, signer_email):
        self._require_pending('reassign')
        if self.link_issued:
            raise InvalidFieldTransition(
                f'Signer of field {self.id} is fixed once a signing link is issued'
            )
        return replace(self, signer_name=signer_name, signer_email=signer_email)

    def issue_link(self):
        self._require_pending('issue a signing link for')
        return replace(self, link_issued=True)

    def sign(self, signature_image, signed_at=None):
        """pending -> signed; ``signed_at`` is set exactly once here."""
        self._require_pending('sign')
        if not signature_image:
            raise InvalidFieldTransition(f'Field {self.id} cannot be signed without an image')
        return replace(
            self,
            status=FieldStatus.SIGNED,
            signature_image=signature_image,
            signed_at=signed_at or timezone.now(),
        )

    def reject(self, reason=None):
        self._require_pending('reject')
        return replace(self, status=FieldStatus.REJECTED, rejection_reason=reason)

    def ensure_deletable(self):
        self._require_pending('delete')
