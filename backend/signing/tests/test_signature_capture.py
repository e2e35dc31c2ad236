import base64
from io import BytesIO

from django.test import SimpleTestCase, override_settings
from PIL import Image

from signing.exceptions import CaptureClosed, EmptyInput, MissingSignerInfo
from signing.services.signature_capture import (
    MODE_DRAW, MODE_TYPE, PillowRasterizer, SignatureCapture, SignatureFontManager,
)


def _image(captured):
    return Image.open(BytesIO(captured.png_bytes))


class RecordingRasterizer:
    """Rasterizer double that records calls instead of drawing."""
    width = 40
    height = 10

    def __init__(self):
        self.calls = []

    def render_strokes(self, strokes, pad_size):
        self.calls.append(('strokes', [list(s) for s in strokes], pad_size))
        return b'strokes-png'

    def render_text(self, text):
        self.calls.append(('text', text))
        return b'text-png'


@override_settings(SIGNATURE_FONT_PATHS=[])
class SignatureCaptureTests(SimpleTestCase):

    def _capture(self, **kwargs):
        kwargs.setdefault('signer_name', 'Sam Signer')
        kwargs.setdefault('signer_email', 'sam@example.com')
        return SignatureCapture(**kwargs)

    def test_empty_canvas_fails_with_empty_input(self):
        with self.assertRaises(EmptyInput):
            self._capture().complete()

    def test_blank_typed_text_fails_with_empty_input(self):
        capture = self._capture(mode=MODE_TYPE)
        capture.type_text('   ')
        with self.assertRaises(EmptyInput):
            capture.complete()

    def test_missing_email_fails_with_missing_signer_info(self):
        capture = self._capture(signer_email='')
        capture.add_stroke([(10, 10), (100, 50)])
        with self.assertRaises(MissingSignerInfo):
            capture.complete()

    def test_missing_name_fails_with_missing_signer_info(self):
        capture = self._capture(signer_name='  ', mode=MODE_TYPE)
        capture.type_text('Sam Signer')
        with self.assertRaises(MissingSignerInfo):
            capture.complete()

    def test_failed_complete_keeps_input_for_correction(self):
        capture = self._capture(signer_email='')
        capture.add_stroke([(10, 10), (100, 50)])
        with self.assertRaises(MissingSignerInfo):
            capture.complete()

        capture.signer_email = 'sam@example.com'
        self.assertEqual(capture.complete().mode, MODE_DRAW)

    def test_drawn_signature_has_fixed_dimensions(self):
        capture = self._capture(pad_size=(800, 220))
        capture.begin_stroke(50, 100)
        capture.extend_stroke(400, 120)
        capture.extend_stroke(750, 90)
        capture.end_stroke()
        capture.begin_stroke(300, 30)  # a dot, still open

        captured = capture.complete()

        image = _image(captured)
        self.assertEqual(image.size, (400, 100))
        self.assertEqual((captured.width, captured.height), (400, 100))
        self.assertEqual(image.mode, 'RGBA')
        self.assertEqual(image.getpixel((0, 0))[3], 0)
        self.assertIsNotNone(image.getbbox())

    def test_typed_signature_is_centered(self):
        capture = self._capture(mode=MODE_TYPE)
        capture.type_text('  Sam Signer  ')

        captured = capture.complete()

        image = _image(captured)
        self.assertEqual(image.size, (400, 100))
        left, top, right, bottom = image.getbbox()
        self.assertLess(abs((left + right) / 2 - 200), 10)
        self.assertLess(abs((top + bottom) / 2 - 50), 15)

    def test_long_text_is_shrunk_to_fit(self):
        capture = self._capture(mode=MODE_TYPE)
        capture.type_text('Bartholomew Maximilian Featherstonehaugh-Worthington')
        left, top, right, bottom = _image(capture.complete()).getbbox()
        self.assertGreater(left, 0)
        self.assertLess(right, 399)

    def test_white_background(self):
        capture = self._capture(rasterizer=PillowRasterizer(background='white'))
        capture.add_stroke([(5, 5), (60, 60)])
        image = _image(capture.complete())
        self.assertEqual(image.getpixel((399, 0)), (255, 255, 255, 255))

    def test_data_url(self):
        capture = self._capture()
        capture.add_stroke([(5, 5)])
        captured = capture.complete()
        prefix, _, payload = captured.data_url.partition(',')
        self.assertEqual(prefix, 'data:image/png;base64')
        self.assertEqual(base64.b64decode(payload), captured.png_bytes)

    def test_strokes_are_scaled_from_pad(self):
        rasterizer = RecordingRasterizer()
        capture = self._capture(pad_size=(200, 50), rasterizer=rasterizer)
        capture.add_stroke([(0, 0), (200, 50)])
        captured = capture.complete()

        self.assertEqual(captured.png_bytes, b'strokes-png')
        self.assertEqual(rasterizer.calls, [('strokes', [[(0.0, 0.0), (200.0, 50.0)]], (200, 50))])
        self.assertEqual((captured.width, captured.height), (40, 10))

    def test_mode_switch_uses_active_input(self):
        rasterizer = RecordingRasterizer()
        capture = self._capture(rasterizer=rasterizer)
        capture.add_stroke([(1, 1), (2, 2)])
        capture.type_text('Sam')
        capture.switch_mode(MODE_TYPE)
        capture.complete()
        self.assertEqual(rasterizer.calls, [('text', 'Sam')])

    def test_clear_discards_both_inputs(self):
        capture = self._capture()
        capture.add_stroke([(1, 1), (2, 2)])
        capture.type_text('Sam')
        capture.clear()
        self.assertEqual(capture.stroke_count, 0)
        self.assertEqual(capture.typed_text, '')

    def test_cancel_discards_input_and_closes(self):
        capture = self._capture()
        capture.add_stroke([(1, 1), (2, 2)])
        capture.cancel()
        self.assertEqual(capture.stroke_count, 0)
        with self.assertRaises(CaptureClosed):
            capture.complete()
        with self.assertRaises(CaptureClosed):
            capture.add_stroke([(1, 1)])

    def test_unknown_mode_is_rejected(self):
        with self.assertRaises(ValueError):
            self._capture(mode='upload')


class SignatureFontManagerTests(SimpleTestCase):

    def test_invalid_font_files_are_skipped(self):
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmp:
            bogus = Path(tmp) / 'bogus.ttf'
            bogus.write_bytes(b'not a font at all')
            manager = SignatureFontManager(font_paths=[Path(tmp) / 'missing.ttf', bogus])
            self.assertIsNone(manager.font_path())
            self.assertIsNotNone(manager.load(20))
