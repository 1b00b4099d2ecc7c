"""UI dialogs package."""

from .polygon_editor_dialog import PolygonEditorDialog

__all__ = [
    'PolygonEditorDialog',
]
