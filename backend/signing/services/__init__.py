from .hashing import HashingService
from .geometry import ContentSize, FractionalPoint, PixelPoint, GeometryNormalizer
from .field_placement import (
    ContentMeasurer, PointerAction, PointerEvent, FieldDragController, PlacementSession
)
from .signature_capture import (
    SignatureCapture, CapturedSignature, PillowRasterizer, MODE_DRAW, MODE_TYPE
)
from .pdf_stamping import PDFStampingService, PDFCoordinateConverter, get_pdf_stamping_service
from .signing_orchestrator import SigningOrchestrator, get_signing_orchestrator

__all__ = [
    'HashingService',
    'ContentSize',
    'FractionalPoint',
    'PixelPoint',
    'GeometryNormalizer',
    'ContentMeasurer',
    'PointerAction',
    'PointerEvent',
    'FieldDragController',
    'PlacementSession',
    'SignatureCapture',
    'CapturedSignature',
    'PillowRasterizer',
    'MODE_DRAW',
    'MODE_TYPE',
    'PDFStampingService',
    'PDFCoordinateConverter',
    'get_pdf_stamping_service',
    'SigningOrchestrator',
    'get_signing_orchestrator',
]
