import base64
import binascii

from django.conf import settings
from rest_framework import serializers

from .records import FieldStatus, SignatureField
from .services.signature_capture import CAPTURE_MODES


class StrictFieldsMixin:
    """Reject payload keys the serializer does not declare."""

    def to_internal_value(self, data):
        if isinstance(data, dict):
            unknown = sorted(set(data) - set(self.fields))
            if unknown:
                raise serializers.ValidationError({
                    key: 'Unknown field.' for key in unknown
                })
        return super().to_internal_value(data)


class Base64PDFField(serializers.Field):
    """PDF bytes carried as base64 text (raw or data URL)."""

    default_error_messages = {
        'invalid': 'Document must be a base64 encoded string.',
        'empty': 'Document is empty.',
        'too_large': 'Document exceeds {max_bytes} bytes.',
    }

    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail('invalid')
        if data.startswith('data:'):
            data = data.partition(',')[2]
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            self.fail('invalid')
        if not raw:
            self.fail('empty')
        if len(raw) > settings.MAX_UPLOAD_PDF_BYTES:
            self.fail('too_large', max_bytes=settings.MAX_UPLOAD_PDF_BYTES)
        return raw

    def to_representation(self, value):
        return base64.b64encode(value).decode('ascii')


class SignatureFieldSerializer(StrictFieldsMixin, serializers.Serializer):
    """Serializer for SignatureField records crossing the persistence boundary."""
    id = serializers.CharField(max_length=100)
    document_id = serializers.CharField(max_length=100)
    signer_email = serializers.EmailField()
    signer_name = serializers.CharField(max_length=255)
    page_number = serializers.IntegerField(min_value=1)
    x_fraction = serializers.FloatField(min_value=0.0, max_value=1.0)
    y_fraction = serializers.FloatField(min_value=0.0, max_value=1.0)
    width = serializers.FloatField()
    height = serializers.FloatField()
    status = serializers.ChoiceField(choices=FieldStatus.choices)
    signature_image = serializers.CharField(required=False, allow_null=True)
    signed_at = serializers.DateTimeField(required=False, allow_null=True)
    rejection_reason = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    link_issued = serializers.BooleanField(default=False)

    def validate_width(self, value):
        if value <= 0:
            raise serializers.ValidationError('Width must be positive.')
        return value

    def validate_height(self, value):
        if value <= 0:
            raise serializers.ValidationError('Height must be positive.')
        return value

    def validate(self, data):
        """Signed records carry an image and a timestamp; others carry neither."""
        status = data['status']
        image = data.get('signature_image')

        if status == FieldStatus.SIGNED:
            if not image:
                raise serializers.ValidationError({'signature_image': 'Signed fields require a signature image.'})
            if not data.get('signed_at'):
                raise serializers.ValidationError({'signed_at': 'Signed fields require signed_at.'})
        else:
            if image:
                raise serializers.ValidationError({'signature_image': 'Only signed fields may carry an image.'})
            if data.get('signed_at'):
                raise serializers.ValidationError({'signed_at': 'Only signed fields have signed_at.'})

        if status != FieldStatus.REJECTED and data.get('rejection_reason'):
            raise serializers.ValidationError({'rejection_reason': 'Only rejected fields have a reason.'})
        return data

    @staticmethod
    def to_record(attrs):
        """Build a SignatureField from validated data."""
        attrs = dict(attrs)
        attrs['status'] = FieldStatus(attrs['status'])
        try:
            return SignatureField(**attrs)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

    def create(self, validated_data):
        return self.to_record(validated_data)


class StampRequestSerializer(serializers.Serializer):
    """Payload for stamping a document."""
    document_id = serializers.CharField(max_length=100)
    document = Base64PDFField()
    fields = SignatureFieldSerializer(many=True, allow_empty=True)

    def validate(self, data):
        document_id = data['document_id']
        seen = set()
        for attrs in data['fields']:
            if attrs['document_id'] != document_id:
                raise serializers.ValidationError({
                    'fields': f"Field {attrs['id']} belongs to document {attrs['document_id']}."
                })
            if attrs['id'] in seen:
                raise serializers.ValidationError({'fields': f"Duplicate field id {attrs['id']}."})
            seen.add(attrs['id'])

        data['records'] = [SignatureFieldSerializer.to_record(attrs) for attrs in data['fields']]
        return data


class StampResponseSerializer(serializers.Serializer):
    document_id = serializers.CharField()
    signed_document = Base64PDFField()
    stamped_count = serializers.IntegerField()
    skipped_fields = serializers.ListField(child=serializers.CharField())
    signed_pdf_sha256 = serializers.CharField(source='sha256')


class CaptureRequestSerializer(serializers.Serializer):
    """
    Payload for server-side signature rasterization.

    Blank signer details pass validation so that capture itself reports
    them as ``missing_signer_info``.
    """
    mode = serializers.ChoiceField(choices=CAPTURE_MODES)
    signer_name = serializers.CharField(allow_blank=True, max_length=255)
    signer_email = serializers.CharField(allow_blank=True, max_length=254)
    text = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, max_length=200)
    strokes = serializers.ListField(
        child=serializers.ListField(
            child=serializers.ListField(child=serializers.FloatField(), min_length=2, max_length=2),
        ),
        required=False,
        default=list,
    )
    pad_width = serializers.FloatField(required=False, min_value=1.0)
    pad_height = serializers.FloatField(required=False, min_value=1.0)

    def validate(self, data):
        if ('pad_width' in data) != ('pad_height' in data):
            raise serializers.ValidationError('pad_width and pad_height must be given together.')
        return data


class CaptureResponseSerializer(serializers.Serializer):
    signature_image = serializers.CharField(source='data_url')
    width = serializers.IntegerField()
    height = serializers.IntegerField()
    mode = serializers.CharField()
    signer_name = serializers.CharField()
    signer_email = serializers.CharField()
