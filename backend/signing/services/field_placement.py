"""
Field placement on a rendered page surface.

Responsibilities:
- Track the content size of the visible page surface per (page, zoom) view
- Drive per-field drag interactions as an explicit idle/dragging state machine
- Produce overlay pixel positions only once the current view is measured

Pointer input comes from an injected ``PointerEventSource`` owned by the
caller, so independent sessions never share listeners.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from ..exceptions import GeometryNotReady, InvalidFieldTransition
from ..records import SignatureField
from .geometry import ContentSize, FractionalPoint, GeometryNormalizer, PixelPoint

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.5
MAX_ZOOM = 3.0


class ContentMeasurer:
    """
    Latest content-size measurement for the page surface currently shown.

    Any page or zoom change drops the measurement; so does ``invalidate()``
    for layout-affecting mutations. Size updates keep arriving through
    ``observe()`` while the surface is visible, because late image and
    layout loading changes the scrollable size after mount.
    """

    def __init__(self, page_number: int = 1, zoom: float = 1.0):
        self._page_number = page_number
        self._zoom = self._clamp_zoom(zoom)
        self._size: Optional[ContentSize] = None

    @staticmethod
    def _clamp_zoom(zoom: float) -> float:
        return min(MAX_ZOOM, max(MIN_ZOOM, zoom))

    @property
    def page_number(self) -> int:
        return self._page_number

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def view(self) -> Tuple[int, float]:
        return self._page_number, self._zoom

    @property
    def is_ready(self) -> bool:
        return self._size is not None

    def set_view(self, page_number: Optional[int] = None, zoom: Optional[float] = None) -> None:
        """Switch page and/or zoom; a changed view must be re-measured."""
        new_page = self._page_number if page_number is None else page_number
        new_zoom = self._zoom if zoom is None else self._clamp_zoom(zoom)
        if new_page < 1:
            raise ValueError(f'page_number must be >= 1, got {new_page}')
        if (new_page, new_zoom) != self.view:
            self._page_number, self._zoom = new_page, new_zoom
            self._size = None

    def invalidate(self) -> None:
        self._size = None

    def observe(self, width: float, height: float) -> bool:
        """Record a size observation for the current view. Returns readiness."""
        size = ContentSize(width, height)
        self._size = size if size.is_measured else None
        return self.is_ready

    def content_size(self) -> ContentSize:
        if self._size is None:
            raise GeometryNotReady(
                f'Page {self._page_number} at zoom {self._zoom:g} has not been measured yet'
            )
        return self._size


class PointerAction(enum.Enum):
    DOWN = 'down'
    MOVE = 'move'
    UP = 'up'
    CANCEL = 'cancel'


@dataclass(frozen=True)
class PointerEvent:
    """A pointer event in content coordinates (scroll offset included)."""
    action: PointerAction
    field_id: str
    x: float = 0.0
    y: float = 0.0


class PointerEventSource(Protocol):
    def events(self) -> Iterable[PointerEvent]:
        ...


class DragState(enum.Enum):
    IDLE = 'idle'
    DRAGGING = 'dragging'


class FieldDragController:
    """
    Drag state machine for one field: idle -> dragging -> idle.

    Moves only update a pixel preview; the field is re-normalized and
    committed once, on release.
    """

    def __init__(self, field: SignatureField, measurer: ContentMeasurer,
                 on_commit: Optional[Callable[[SignatureField], None]] = None):
        self.field = field
        self._measurer = measurer
        self._on_commit = on_commit
        self.state = DragState.IDLE
        self.preview: Optional[PixelPoint] = None
        self._grab_offset = (0.0, 0.0)
        self._view = None

    @property
    def is_dragging(self) -> bool:
        return self.state == DragState.DRAGGING

    def press(self, x: float, y: float) -> bool:
        if self.is_dragging:
            raise InvalidFieldTransition(f'Field {self.field.id} is already being dragged')
        if not self.field.is_pending:
            logger.debug(f'Ignoring drag on field {self.field.id} ({self.field.status})')
            return False

        origin = GeometryNormalizer.display(
            FractionalPoint(self.field.x_fraction, self.field.y_fraction),
            self._measurer.content_size(),
        )
        self._grab_offset = (x - origin.x, y - origin.y)
        self._view = self._measurer.view
        self.preview = origin
        self.state = DragState.DRAGGING
        return True

    def move(self, x: float, y: float) -> Optional[PixelPoint]:
        if not self.is_dragging:
            return None
        dx, dy = self._grab_offset
        self.preview = PixelPoint(max(0.0, x - dx), max(0.0, y - dy))
        return self.preview

    def release(self, x: float, y: float) -> Optional[SignatureField]:
        """
        Commit the drag.

        Raises GeometryNotReady (staying in the dragging state) when the
        surface lost its measurement; the caller retries after re-measuring.
        """
        if not self.is_dragging:
            return None
        if self._measurer.view != self._view:
            logger.warning(f'View changed while dragging field {self.field.id}; drag discarded')
            self.cancel()
            return None

        self.move(x, y)
        point = GeometryNormalizer.capture(
            self.preview.x, self.preview.y, self._measurer.content_size()
        )
        self.field = self.field.move_to(point.x, point.y)
        self.state = DragState.IDLE
        self.preview = None

        if self._on_commit:
            self._on_commit(self.field)
        return self.field

    def cancel(self) -> None:
        self.state = DragState.IDLE
        self.preview = None
        self._view = None


class PlacementSession:
    """Fields of one document placed on a measured page surface."""

    def __init__(self, fields: Iterable[SignatureField] = (),
                 measurer: Optional[ContentMeasurer] = None,
                 on_commit: Optional[Callable[[SignatureField], None]] = None):
        self.measurer = measurer or ContentMeasurer()
        self._on_commit = on_commit
        self._controllers: Dict[str, FieldDragController] = {}
        for field in fields:
            self._controllers[field.id] = self._make_controller(field)

    def _make_controller(self, field):
        return FieldDragController(field, self.measurer, on_commit=self._on_commit)

    @property
    def fields(self) -> List[SignatureField]:
        return [c.field for c in self._controllers.values()]

    def get_field(self, field_id: str) -> SignatureField:
        return self._controllers[field_id].field

    def add_field(self, field: SignatureField) -> SignatureField:
        self._controllers[field.id] = self._make_controller(field)
        # A different field count may change layout and thus content size
        self.measurer.invalidate()
        return field

    def place_field(self, *, pointer_x, pointer_y, document_id, signer_name, signer_email,
                    width=None, height=None) -> SignatureField:
        """Create a pending field with its top-left corner at the pointer."""
        point = GeometryNormalizer.capture(pointer_x, pointer_y, self.measurer.content_size())
        field = SignatureField.create(
            document_id=document_id,
            signer_email=signer_email,
            signer_name=signer_name,
            page_number=self.measurer.page_number,
            x_fraction=point.x,
            y_fraction=point.y,
            width=width,
            height=height,
        )
        return self.add_field(field)

    def remove_field(self, field_id: str) -> None:
        controller = self._controllers[field_id]
        controller.field.ensure_deletable()
        controller.cancel()
        del self._controllers[field_id]
        self.measurer.invalidate()

    def dispatch(self, event: PointerEvent):
        """Route one pointer event to the field's drag controller."""
        controller = self._controllers.get(event.field_id)
        if controller is None:
            logger.debug(f'Pointer event for unknown field {event.field_id}')
            return None

        if event.action == PointerAction.DOWN:
            return controller.press(event.x, event.y)
        if event.action == PointerAction.MOVE:
            return controller.move(event.x, event.y)
        if event.action == PointerAction.UP:
            return controller.release(event.x, event.y)
        controller.cancel()
        return None

    def pump(self, source: PointerEventSource) -> List[SignatureField]:
        """Dispatch every event from a source; returns the committed fields."""
        committed = []
        for event in source.events():
            result = self.dispatch(event)
            if event.action == PointerAction.UP and result is not None:
                committed.append(result)
        return committed

    def overlay_positions(self, page_number: Optional[int] = None) -> List[Tuple[SignatureField, PixelPoint]]:
        """
        Pixel positions of the fields on the current page.

        Empty until the current view has a valid measurement; fields being
        dragged report their preview position.
        """
        page = self.measurer.page_number if page_number is None else page_number
        if page != self.measurer.page_number or not self.measurer.is_ready:
            return []

        content = self.measurer.content_size()
        positions = []
        for controller in self._controllers.values():
            field = controller.field
            if field.page_number != page:
                continue
            if controller.is_dragging and controller.preview is not None:
                positions.append((field, controller.preview))
            else:
                positions.append((field, GeometryNormalizer.display(
                    FractionalPoint(field.x_fraction, field.y_fraction), content
                )))
        return positions
