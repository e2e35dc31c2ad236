"""
PDF stamping service layer.

Responsibilities:
- Convert normalized field positions into PDF page-space placements
- Decode and validate signature images before any page is written
- Burn signature images into page content via a per-page overlay merge

Stamping is a pure transform of the original bytes: a fresh reader and
writer per call, no shared mutable state, and either a complete output
document or an error.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

from django.conf import settings
from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..exceptions import FieldPageOutOfRange, ImageEmbedFailed, SourceDocumentInvalid
from ..records import SignatureField
from .hashing import HashingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageBox:
    """A page's media box in points (origin may be offset from 0, 0)."""
    left: float
    bottom: float
    width: float
    height: float

    @classmethod
    def from_page(cls, page):
        box = page.mediabox
        return cls(
            left=float(box.left),
            bottom=float(box.bottom),
            width=float(box.width),
            height=float(box.height),
        )


@dataclass(frozen=True)
class Placement:
    """Absolute placement of one image on a page, bottom-left origin, in points."""
    field_id: str
    page_index: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class StampPlan:
    placements: Dict[int, List[Placement]] = field(default_factory=dict)
    skipped: List[FieldPageOutOfRange] = field(default_factory=list)
    page_boxes: Dict[int, PageBox] = field(default_factory=dict)

    @property
    def placement_count(self) -> int:
        return sum(len(p) for p in self.placements.values())

    def all_placements(self) -> List[Placement]:
        return [p for page_index in sorted(self.placements) for p in self.placements[page_index]]


@dataclass(frozen=True)
class StampOutcome:
    document_id: str
    signed_document: bytes
    stamped_count: int
    skipped_fields: Tuple[str, ...]
    sha256: str


class PDFCoordinateConverter:
    """Convert UI coordinates (top-left origin) into PDF coordinates (bottom-left origin)."""

    @staticmethod
    def to_page_space(field: SignatureField, page_box: PageBox, units_per_point: float = 1.0) -> Tuple[float, float, float, float]:
        """
        Compute the page-space rectangle of a field.

        Args:
            field: field with fractional top-left position and box size in field units
            page_box: target page media box in points
            units_per_point: system-wide field-unit to point scale

        Returns:
            (x, y, width, height) in points, (x, y) being the bottom-left corner
        """
        width_pts = field.width / units_per_point
        height_pts = field.height / units_per_point

        absolute_x = field.x_fraction * page_box.width
        absolute_y_topdown = field.y_fraction * page_box.height
        pdf_y = page_box.height - absolute_y_topdown - height_pts

        return (
            page_box.left + absolute_x,
            page_box.bottom + pdf_y,
            width_pts,
            height_pts,
        )


class SignatureImageDecoder:
    """Decode stored signature images (raw base64 or data URL) into Pillow images."""

    @staticmethod
    def decode(field: SignatureField) -> Image.Image:
        data = field.signature_image or ''
        if data.startswith('data:'):
            header, _, data = data.partition(',')
            if ';base64' not in header:
                raise ImageEmbedFailed(field.id, 'data URL is not base64 encoded')

        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageEmbedFailed(field.id, f'invalid base64 ({e})') from e
        if not raw:
            raise ImageEmbedFailed(field.id, 'image data is empty')

        try:
            image = Image.open(BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageEmbedFailed(field.id, f'unreadable image ({e})') from e

        return image.convert('RGBA')


class PDFOverlayRenderer:
    """Render signature images onto a page-sized overlay."""

    def render_page(self, page_box: PageBox, items: Sequence[Tuple[Placement, Image.Image]]) -> BytesIO:
        overlay_buffer = BytesIO()

        # Same origin as the target page so placements apply unchanged
        overlay_canvas = canvas.Canvas(
            overlay_buffer,
            pagesize=(page_box.left + page_box.width, page_box.bottom + page_box.height),
        )
        for placement, image in items:
            try:
                overlay_canvas.drawImage(
                    ImageReader(image),
                    placement.x,
                    placement.y,
                    width=placement.width,
                    height=placement.height,
                    mask='auto',
                )
            except Exception as e:
                raise ImageEmbedFailed(placement.field_id, f'{type(e).__name__}: {e}') from e

        overlay_canvas.showPage()
        overlay_canvas.save()
        overlay_buffer.seek(0)
        return overlay_buffer


class PDFStampingService:
    """Service for burning signed fields into a PDF."""

    def __init__(self, units_per_point=None):
        self.units_per_point = float(
            units_per_point if units_per_point is not None else settings.FIELD_UNITS_PER_POINT
        )
        if self.units_per_point <= 0:
            raise ValueError('units_per_point must be positive')
        self.converter = PDFCoordinateConverter()
        self.renderer = PDFOverlayRenderer()

    @staticmethod
    def read_document(original_pdf_bytes) -> PdfReader:
        """Parse the source PDF or fail with SourceDocumentInvalid."""
        if not original_pdf_bytes:
            raise SourceDocumentInvalid('The source PDF is empty')
        try:
            reader = PdfReader(BytesIO(bytes(original_pdf_bytes)))
            if reader.is_encrypted:
                raise SourceDocumentInvalid('Encrypted PDFs cannot be stamped')
            page_count = len(reader.pages)
        except SourceDocumentInvalid:
            raise
        except Exception as e:
            raise SourceDocumentInvalid(f'The source PDF could not be read: {type(e).__name__}: {e}') from e

        if page_count == 0:
            raise SourceDocumentInvalid('The source PDF has no pages')
        return reader

    @staticmethod
    def stampable_fields(fields) -> Tuple[SignatureField, ...]:
        """Snapshot of the signed fields that carry an image."""
        return tuple(f for f in fields if f.is_stampable)

    @staticmethod
    def _page_box(reader: PdfReader, page_index) -> PageBox:
        try:
            return PageBox.from_page(reader.pages[page_index])
        except Exception as e:
            raise SourceDocumentInvalid(
                f'Page {page_index + 1} of the source PDF could not be read: {type(e).__name__}: {e}'
            ) from e

    def plan(self, reader: PdfReader, fields) -> StampPlan:
        """Resolve pages and page-space placements; out-of-range fields are skipped."""
        plan = StampPlan()
        page_count = len(reader.pages)

        for sig_field in self.stampable_fields(fields):
            page_index = sig_field.page_number - 1
            if not 0 <= page_index < page_count:
                skipped = FieldPageOutOfRange(sig_field.id, sig_field.page_number, page_count)
                logger.warning(f'⚠️  {skipped.message}; field not stamped')
                plan.skipped.append(skipped)
                continue

            if page_index not in plan.page_boxes:
                plan.page_boxes[page_index] = self._page_box(reader, page_index)
            page_box = plan.page_boxes[page_index]
            x, y, width, height = self.converter.to_page_space(sig_field, page_box, self.units_per_point)
            plan.placements.setdefault(page_index, []).append(
                Placement(sig_field.id, page_index, x, y, width, height)
            )

        return plan

    def _stamp_with_plan(self, original_pdf_bytes, fields) -> Tuple[bytes, StampPlan]:
        reader = self.read_document(original_pdf_bytes)
        snapshot = self.stampable_fields(fields)
        plan = self.plan(reader, snapshot)

        if not plan.placements:
            return bytes(original_pdf_bytes), plan

        # Decode every image before writing anything
        fields_by_id = {f.id: f for f in snapshot}
        images = {
            p.field_id: SignatureImageDecoder.decode(fields_by_id[p.field_id])
            for p in plan.all_placements()
        }

        writer = PdfWriter()
        for page_index, original_page in enumerate(reader.pages):
            placements = plan.placements.get(page_index)
            if placements:
                overlay = self.renderer.render_page(
                    plan.page_boxes[page_index],
                    [(p, images[p.field_id]) for p in placements],
                )
                overlay_page = PdfReader(overlay).pages[0]
                try:
                    original_page.merge_page(overlay_page)
                except Exception as e:
                    logger.error(f'❌ Error merging overlay for page {page_index + 1}: {e}')
                    raise SourceDocumentInvalid(
                        f'Page {page_index + 1} of the source PDF could not be read: {type(e).__name__}: {e}'
                    ) from e
            writer.add_page(original_page)

        output_buffer = BytesIO()
        try:
            writer.write(output_buffer)
        except Exception as e:
            raise SourceDocumentInvalid(
                f'The source PDF could not be rewritten: {type(e).__name__}: {e}'
            ) from e
        return output_buffer.getvalue(), plan

    def stamp(self, original_pdf_bytes, fields) -> bytes:
        """
        Embed every signed field's image into a copy of the document.

        Args:
            original_pdf_bytes: source PDF, never modified
            fields: iterable of SignatureField; only signed fields with an image are stamped

        Returns:
            bytes: the stamped PDF (a copy of the original when nothing is stampable)

        Raises:
            SourceDocumentInvalid: source cannot be parsed
            ImageEmbedFailed: any signature image is corrupt; nothing is produced
        """
        signed_pdf, _ = self._stamp_with_plan(original_pdf_bytes, fields)
        return signed_pdf

    def stamp_document(self, document_id, original_pdf_bytes, fields) -> StampOutcome:
        """Stamp and describe the result for the invocation boundary."""
        try:
            signed_pdf, plan = self._stamp_with_plan(original_pdf_bytes, fields)
        except (SourceDocumentInvalid, ImageEmbedFailed) as e:
            logger.error(f'❌ Stamping document {document_id} failed: {e.message}')
            raise

        outcome = StampOutcome(
            document_id=document_id,
            signed_document=signed_pdf,
            stamped_count=plan.placement_count,
            skipped_fields=tuple(s.details['field_id'] for s in plan.skipped),
            sha256=HashingService.compute_bytes_sha256(signed_pdf),
        )
        logger.info(
            f'✅ Stamped document {document_id}: {outcome.stamped_count} field(s), '
            f'{len(outcome.skipped_fields)} skipped'
        )
        return outcome


# Singleton instance
_stamping_service = None


def get_pdf_stamping_service() -> PDFStampingService:
    """Get singleton instance of PDF stamping service."""
    global _stamping_service
    if _stamping_service is None:
        _stamping_service = PDFStampingService()
    return _stamping_service
