"""
Signature capture: freehand strokes or typed text -> one PNG image.

The output canvas has a fixed size from settings so the stamper can scale
the image into a field box deterministically. Rasterization goes through
an injected ``Rasterizer`` (Pillow by default).
"""

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from django.conf import settings
from PIL import Image, ImageDraw, ImageFont

from ..exceptions import CaptureClosed, EmptyInput, MissingSignerInfo

logger = logging.getLogger(__name__)

MODE_DRAW = 'draw'
MODE_TYPE = 'type'
CAPTURE_MODES = (MODE_DRAW, MODE_TYPE)

# Valid TrueType/OpenType magic numbers
_FONT_HEADERS = (b'\x00\x01\x00\x00', b'true', b'typ1', b'OTTO')

Point = Tuple[float, float]


class SignatureFontManager:
    """Locate and load the handwriting-style font used for typed signatures."""

    def __init__(self, font_paths=None):
        self._font_paths = list(font_paths if font_paths is not None else settings.SIGNATURE_FONT_PATHS)
        self._font_path = None
        self._resolved = False

    def font_path(self) -> Optional[Path]:
        if self._resolved:
            return self._font_path

        for candidate in self._font_paths:
            path = Path(candidate)
            if not path.exists():
                continue
            with open(path, 'rb') as f:
                header = f.read(4)
            if header not in _FONT_HEADERS:
                logger.warning(f'⚠️  Invalid font format, skipping: {path}')
                continue
            self._font_path = path
            logger.debug(f'Using signature font {path}')
            break
        else:
            logger.info('No handwriting font found, using the default font')

        self._resolved = True
        return self._font_path

    def load(self, size: int):
        path = self.font_path()
        if path is not None:
            try:
                return ImageFont.truetype(str(path), size)
            except OSError as e:
                logger.warning(f'⚠️  Failed to load {path}: {e}; using the default font')
        return ImageFont.load_default(size=size)


class Rasterizer(Protocol):
    width: int
    height: int

    def render_strokes(self, strokes: Sequence[Sequence[Point]], pad_size: Tuple[float, float]) -> bytes:
        ...

    def render_text(self, text: str) -> bytes:
        ...


class PillowRasterizer:
    """Pillow-backed rasterizer producing fixed-size RGBA PNGs."""

    INK = (0, 0, 0, 255)
    PADDING = 8
    MIN_FONT_SIZE = 8

    def __init__(self, width=None, height=None, pen_width=None, font_size=None,
                 background=None, font_manager=None):
        self.width = int(width or settings.SIGNATURE_IMAGE_WIDTH)
        self.height = int(height or settings.SIGNATURE_IMAGE_HEIGHT)
        self.pen_width = int(pen_width or settings.SIGNATURE_PEN_WIDTH)
        self.font_size = int(font_size or settings.SIGNATURE_FONT_SIZE)
        self.background = background or settings.SIGNATURE_BACKGROUND
        self.font_manager = font_manager or SignatureFontManager()

    def _new_canvas(self):
        if self.background == 'white':
            fill = (255, 255, 255, 255)
        else:
            fill = (255, 255, 255, 0)
        return Image.new('RGBA', (self.width, self.height), fill)

    @staticmethod
    def _encode(image) -> bytes:
        buf = BytesIO()
        image.save(buf, format='PNG')
        return buf.getvalue()

    def render_strokes(self, strokes, pad_size):
        """Scale pad-space strokes into the output canvas and draw them."""
        pad_w, pad_h = pad_size
        sx = self.width / pad_w
        sy = self.height / pad_h

        image = self._new_canvas()
        draw = ImageDraw.Draw(image)
        r = self.pen_width / 2

        for stroke in strokes:
            points = [(x * sx, y * sy) for x, y in stroke]
            if len(points) == 1:
                x, y = points[0]
                draw.ellipse((x - r, y - r, x + r, y + r), fill=self.INK)
            else:
                draw.line(points, fill=self.INK, width=self.pen_width, joint='curve')

        return self._encode(image)

    def render_text(self, text):
        """Draw text centered, shrinking the font until it fits."""
        image = self._new_canvas()
        draw = ImageDraw.Draw(image)

        max_w = self.width - 2 * self.PADDING
        max_h = self.height - 2 * self.PADDING
        size = self.font_size
        while True:
            font = self.font_manager.load(size)
            left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
            if (right - left <= max_w and bottom - top <= max_h) or size <= self.MIN_FONT_SIZE:
                break
            size -= 2

        x = (self.width - (right - left)) / 2 - left
        y = (self.height - (bottom - top)) / 2 - top
        draw.text((x, y), text, font=font, fill=self.INK)
        return self._encode(image)


@dataclass(frozen=True)
class CapturedSignature:
    png_bytes: bytes
    width: int
    height: int
    mode: str
    signer_name: str
    signer_email: str

    def to_base64(self) -> str:
        return base64.b64encode(self.png_bytes).decode('ascii')

    @property
    def data_url(self) -> str:
        return f'data:image/png;base64,{self.to_base64()}'


class SignatureCapture:
    """
    One signer's capture session.

    ``complete()`` requires a non-empty signature in the active mode and a
    non-blank signer name and email; a failure leaves the input in place
    for correction. ``cancel()`` discards everything and closes the session.
    """

    def __init__(self, signer_name='', signer_email='', mode=MODE_DRAW,
                 pad_size=None, rasterizer: Optional[Rasterizer] = None):
        self.signer_name = signer_name or ''
        self.signer_email = signer_email or ''
        self.rasterizer = rasterizer or PillowRasterizer()
        self.pad_size = pad_size or (self.rasterizer.width, self.rasterizer.height)
        if self.pad_size[0] <= 0 or self.pad_size[1] <= 0:
            raise ValueError(f'Pad size must be positive, got {self.pad_size}')
        self._strokes: List[List[Point]] = []
        self._current: Optional[List[Point]] = None
        self.typed_text = ''
        self.closed = False
        self.mode = MODE_DRAW
        self.switch_mode(mode)

    def _ensure_open(self):
        if self.closed:
            raise CaptureClosed()

    def switch_mode(self, mode):
        self._ensure_open()
        if mode not in CAPTURE_MODES:
            raise ValueError(f'Unknown capture mode {mode!r}')
        self.mode = mode

    # Freehand input
    def begin_stroke(self, x, y):
        self._ensure_open()
        self.end_stroke()
        self._current = [(x, y)]

    def extend_stroke(self, x, y):
        self._ensure_open()
        if self._current is not None:
            self._current.append((x, y))

    def end_stroke(self):
        if self._current:
            self._strokes.append(self._current)
        self._current = None

    def add_stroke(self, points):
        """Record a complete stroke at once."""
        self._ensure_open()
        points = [(float(x), float(y)) for x, y in points]
        if points:
            self._strokes.append(points)

    @property
    def stroke_count(self) -> int:
        return len(self._strokes) + (1 if self._current else 0)

    # Typed input
    def type_text(self, text):
        self._ensure_open()
        self.typed_text = text or ''

    @property
    def is_empty(self) -> bool:
        if self.mode == MODE_DRAW:
            return self.stroke_count == 0
        return not self.typed_text.strip()

    def clear(self):
        self._ensure_open()
        self._strokes = []
        self._current = None
        self.typed_text = ''

    def cancel(self):
        self._strokes = []
        self._current = None
        self.typed_text = ''
        self.closed = True

    def complete(self) -> CapturedSignature:
        self._ensure_open()
        self.end_stroke()

        if self.is_empty:
            raise EmptyInput(
                'Draw your signature first' if self.mode == MODE_DRAW else 'Type your signature first'
            )
        if not self.signer_name.strip() or not self.signer_email.strip():
            raise MissingSignerInfo()

        if self.mode == MODE_DRAW:
            png = self.rasterizer.render_strokes(self._strokes, self.pad_size)
        else:
            png = self.rasterizer.render_text(self.typed_text.strip())

        return CapturedSignature(
            png_bytes=png,
            width=self.rasterizer.width,
            height=self.rasterizer.height,
            mode=self.mode,
            signer_name=self.signer_name.strip(),
            signer_email=self.signer_email.strip(),
        )
