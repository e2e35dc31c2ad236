import base64
import re
from datetime import datetime, timezone as dt_timezone
from io import BytesIO

from PIL import Image
from PyPDF2 import PdfReader
from PyPDF2.generic import ContentStream
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from signing.records import FieldStatus, SignatureField


def make_pdf(page_count=3, pagesize=letter):
    """A PDF whose page N carries the text 'Page N'."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=pagesize)
    for n in range(1, page_count + 1):
        c.setFont('Helvetica', 14)
        c.drawString(72, pagesize[1] - 72, f'Page {n}')
        c.showPage()
    c.save()
    return buf.getvalue()


def damage_content_streams(pdf_bytes):
    """
    Overwrite every stream body with bytes its ASCII85 filter cannot decode.

    Lengths are preserved so the xref table still resolves and the damage
    only surfaces once page content is decoded.
    """
    def garble(match):
        return match.group(1) + b'u' * len(match.group(2)) + match.group(3)

    return re.sub(rb'((?<!end)stream\r?\n)(.*?)(endstream)', garble, pdf_bytes, flags=re.DOTALL)


def make_png(color=(0, 0, 255, 255), size=(400, 100)):
    image = Image.new('RGBA', size, (255, 255, 255, 0))
    for x in range(20, size[0] - 20):
        image.putpixel((x, size[1] // 2), color)
    buf = BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


def png_data_url(color=(0, 0, 255, 255)):
    return 'data:image/png;base64,' + base64.b64encode(make_png(color)).decode('ascii')


def make_field(field_id='f1', *, document_id='doc-1', page_number=1, x_fraction=0.1,
               y_fraction=0.1, width=150, height=50, signer_email='signer@example.com',
               signer_name='Sam Signer', status=FieldStatus.PENDING, signature_image=None):
    signed_at = None
    if status == FieldStatus.SIGNED:
        signature_image = signature_image or png_data_url()
        signed_at = datetime(2026, 1, 5, 12, 0, tzinfo=dt_timezone.utc)
    return SignatureField(
        id=field_id,
        document_id=document_id,
        signer_email=signer_email,
        signer_name=signer_name,
        page_number=page_number,
        x_fraction=x_fraction,
        y_fraction=y_fraction,
        width=width,
        height=height,
        status=status,
        signature_image=signature_image,
        signed_at=signed_at,
    )


def _multiply(m, n):
    return (
        m[0] * n[0] + m[1] * n[2],
        m[0] * n[1] + m[1] * n[3],
        m[2] * n[0] + m[3] * n[2],
        m[2] * n[1] + m[3] * n[3],
        m[4] * n[0] + m[5] * n[2] + n[4],
        m[4] * n[1] + m[5] * n[3] + n[5],
    )


def drawn_images(pdf_bytes):
    """
    Every XObject drawn on every page as (page_index, x, y, width, height).

    Tracks the graphics state so the box is the image's final placement
    in page space regardless of how the content stream builds it.
    """
    reader = PdfReader(BytesIO(pdf_bytes))
    boxes = []
    for index, page in enumerate(reader.pages):
        contents = page.get_contents()
        if contents is None:
            continue
        ctm = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
        stack = []
        for operands, operator in ContentStream(contents, reader).operations:
            if operator == b'q':
                stack.append(ctm)
            elif operator == b'Q' and stack:
                ctm = stack.pop()
            elif operator == b'cm':
                ctm = _multiply([float(v) for v in operands], ctm)
            elif operator == b'Do':
                a, _, _, d, e, f = ctm
                boxes.append((index, e, f, a, d))
    return boxes


def images_per_page(pdf_bytes):
    counts = [0] * len(PdfReader(BytesIO(pdf_bytes)).pages)
    for index, *_ in drawn_images(pdf_bytes):
        counts[index] += 1
    return counts


def page_texts(pdf_bytes):
    reader = PdfReader(BytesIO(pdf_bytes))
    return [page.extract_text() for page in reader.pages]
