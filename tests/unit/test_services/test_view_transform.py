"""Unit tests for the zoom/pan view transform."""
import pytest

from hidemeter.core.entities import Point
from hidemeter.services.editor import VertexEditor
from hidemeter.services.view_transform import ViewState, ViewTransform
from hidemeter.utils.coordinates import SurfaceBox


class TestZoom:
    def test_defaults(self):
        view = ViewTransform()
        assert view.zoom == 1.0
        assert view.pan == (0.0, 0.0)
        assert not view.pan_mode

    def test_step_and_bounds(self):
        view = ViewTransform()
        assert view.zoom_in() == 1.5
        for _ in range(20):
            view.zoom_in()
        assert view.zoom == 5.0
        for _ in range(20):
            view.zoom_out()
        assert view.zoom == 1.0

    @pytest.mark.parametrize("requested,expected", [(0.2, 1.0), (3, 3.0), (12, 5.0)])
    def test_set_zoom_clamps(self, requested, expected):
        assert ViewTransform().set_zoom(requested) == expected

    @pytest.mark.parametrize("kwargs", [{"max_zoom": 0.5}, {"zoom_step": 0}])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            ViewTransform(**kwargs)

    def test_floor_is_one(self):
        view = ViewTransform(zoom_step=2.0, max_zoom=1.0)
        assert view.zoom_in() == 1.0
        assert view.zoom_out() == 1.0


class TestReset:
    def test_reset_after_zoom_and_pan_leaves_points(self, auto_result):
        editor = VertexEditor.start_edit(auto_result)
        view = editor.view
        view.set_zoom(3)
        view.pan_by(120, -40)

        view.reset()

        assert view.zoom == 1.0
        assert view.pan == (0.0, 0.0)
        assert editor.target == auto_result.target


class TestPan:
    def test_gesture_requires_pan_mode(self):
        view = ViewTransform()
        assert not view.begin_pan(0, 0)
        assert not view.pan_to(10, 10)
        assert view.pan == (0.0, 0.0)

    def test_gesture_accumulates(self):
        view = ViewTransform()
        assert view.toggle_pan_mode()
        view.begin_pan(100, 100)
        view.pan_to(110, 95)
        view.pan_to(130, 90)
        view.end_pan()

        assert view.pan == (30.0, -10.0)
        assert not view.is_panning

    def test_leaving_pan_mode_drops_gesture(self):
        view = ViewTransform()
        view.toggle_pan_mode()
        view.begin_pan(0, 0)
        assert not view.toggle_pan_mode()
        assert not view.is_panning

    def test_visible_pan_is_bounded_by_zoom(self):
        surface = SurfaceBox(0, 0, 400, 200)
        view = ViewTransform()
        view.pan_by(500, -500)
        assert view.visible_pan(surface) == (0.0, 0.0)

        view.set_zoom(2)
        assert view.visible_pan(surface) == (200.0, -100.0)
        assert view.snapshot(surface) == ViewState(2.0, 200.0, -100.0)
        assert view.snapshot() == ViewState(2.0, 500.0, -500.0)


class TestScreenSizes:
    @pytest.mark.parametrize("zoom", [1.0, 2.5, 5.0])
    def test_stroke_constant_on_screen(self, zoom):
        view = ViewTransform()
        view.set_zoom(zoom)
        assert view.stroke_width(2) * view.zoom == pytest.approx(2)
        assert view.hit_radius(15) * view.zoom == pytest.approx(15)

    def test_repr(self):
        assert repr(ViewTransform()) == "ViewTransform(zoom=1, pan=(0, 0), pan_mode=False)"


def test_zoomed_click_lands_on_visible_point(surface):
    editor = VertexEditor.start_manual()
    editor.view.set_zoom(2)
    editor.pointer_down(350, 250, surface)
    assert editor.reference[0] == Point(500, 500)
