import logging

from django.http import HttpResponse
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import (
    CaptureClosed, EmptyInput, ImageEmbedFailed, MissingSignerInfo,
    SourceDocumentInvalid,
)
from .serializers import (
    CaptureRequestSerializer, CaptureResponseSerializer,
    StampRequestSerializer, StampResponseSerializer,
)
from .services import SignatureCapture, get_pdf_stamping_service

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """Report request validation failures in the same shape as signing errors."""
    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, ValidationError):
        response.data = {
            'error_kind': 'validation_error',
            'message': 'The request payload is invalid',
            'errors': response.data,
        }
    return response


class SigningViewSet(viewsets.ViewSet):
    """Invocation boundary for stamping documents and rasterizing signatures."""

    @action(detail=False, methods=['post'])
    def stamp(self, request):
        """
        Stamp every signed field of a document into its PDF.

        Success returns the stamped document (base64 JSON, or the raw PDF
        as an attachment with ``?download=1``). Failure returns
        ``{error_kind, message}`` and never a document.
        """
        serializer = StampRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = get_pdf_stamping_service()
        try:
            outcome = service.stamp_document(data['document_id'], data['document'], data['records'])
        except (SourceDocumentInvalid, ImageEmbedFailed) as e:
            return Response(e.to_payload(), status=status.HTTP_422_UNPROCESSABLE_ENTITY)

        if request.query_params.get('download') in ('1', 'true'):
            response = HttpResponse(outcome.signed_document, content_type='application/pdf')
            response['Content-Disposition'] = f'attachment; filename="{outcome.document_id}_signed.pdf"'
            response['X-Signed-PDF-SHA256'] = outcome.sha256
            return response

        return Response(StampResponseSerializer(outcome).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'])
    def capture(self, request):
        """Rasterize a drawn or typed signature into a PNG data URL."""
        serializer = CaptureRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        pad_size = None
        if 'pad_width' in data:
            pad_size = (data['pad_width'], data['pad_height'])

        capture = SignatureCapture(
            signer_name=data['signer_name'],
            signer_email=data['signer_email'],
            mode=data['mode'],
            pad_size=pad_size,
        )
        for stroke in data['strokes']:
            capture.add_stroke(stroke)
        capture.type_text(data.get('text', ''))

        try:
            captured = capture.complete()
        except (EmptyInput, MissingSignerInfo, CaptureClosed) as e:
            return Response(e.to_payload(), status=status.HTTP_400_BAD_REQUEST)

        return Response(CaptureResponseSerializer(captured).data, status=status.HTTP_200_OK)
