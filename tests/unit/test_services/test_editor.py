"""Unit tests for the vertex editor state machine."""
import pytest

from hidemeter.core.constants import MANUAL_EXPLANATION
from hidemeter.core.entities import Point
from hidemeter.core.exceptions import EditorStateError
from hidemeter.services.editor import EditorMode, EditorStep, VertexEditor


def trace(editor, polygon):
    for point in polygon:
        assert editor.add_point(point)


@pytest.fixture
def manual_editor():
    return VertexEditor.start_manual()


@pytest.fixture
def traced_editor(manual_editor, reference_square, target_square):
    """Manual session walked through to DONE."""
    trace(manual_editor, reference_square)
    manual_editor.advance()
    trace(manual_editor, target_square)
    manual_editor.advance()
    return manual_editor


class TestReferenceCapture:
    def test_starts_capturing_reference(self, manual_editor):
        assert manual_editor.step is EditorStep.CAPTURING_REFERENCE
        assert manual_editor.mode is EditorMode.MANUAL
        assert not manual_editor.can_advance

    def test_fifth_point_ignored(self, manual_editor, reference_square):
        trace(manual_editor, reference_square)
        assert not manual_editor.add_point(Point(900, 900))
        assert len(manual_editor.reference) == 4
        assert manual_editor.can_advance

    def test_undo_reenables_capture(self, manual_editor, reference_square):
        trace(manual_editor, reference_square)
        assert manual_editor.undo()
        assert len(manual_editor.reference) == 3
        assert not manual_editor.can_advance
        assert manual_editor.add_point(Point(900, 900))
        assert manual_editor.reference[3] == Point(900, 900)

    def test_advance_requires_four_points(self, manual_editor, reference_square):
        trace(manual_editor, reference_square.points[:3])
        assert not manual_editor.advance()
        assert manual_editor.step is EditorStep.CAPTURING_REFERENCE

    def test_undo_on_empty_is_noop(self, manual_editor):
        assert not manual_editor.undo()

    def test_reference_outline_follows_points(self, manual_editor, reference_square):
        trace(manual_editor, reference_square.points[:2])
        assert manual_editor.reference_outline == "M 100 100 L 400 100"

    def test_reference_sheet_carries_configured_area(self, reference_square, target_square):
        editor = VertexEditor.start_manual(reference_real_area_m2=0.0603)
        trace(editor, reference_square)
        assert editor.reference_sheet.is_captured
        assert editor.reference_sheet.real_area_m2 == 0.0603

        editor.advance()
        trace(editor, target_square)
        assert editor.current_area == pytest.approx(0.0603 / 4)


class TestTargetCapture:
    @pytest.fixture
    def capturing(self, manual_editor, reference_square):
        trace(manual_editor, reference_square)
        manual_editor.advance()
        return manual_editor

    def test_points_go_to_target(self, capturing):
        capturing.add_point(Point(10, 10))
        assert capturing.step is EditorStep.CAPTURING_TARGET
        assert len(capturing.target) == 1
        assert len(capturing.reference) == 4

    def test_undo_below_three_disables_advance(self, capturing, target_square):
        trace(capturing, target_square.points[:3])
        assert capturing.can_advance
        capturing.undo()
        assert len(capturing.target) == 2
        assert not capturing.can_advance
        assert not capturing.advance()

    def test_target_is_unbounded(self, capturing, detailed_target):
        trace(capturing, detailed_target)
        assert len(capturing.target) == 24

    def test_live_area(self, capturing, target_square):
        trace(capturing, target_square)
        assert capturing.current_area == pytest.approx(0.0155925)

    def test_cannot_save_before_done(self, capturing):
        with pytest.raises(EditorStateError):
            capturing.save()


class TestDone:
    def test_no_points_added(self, traced_editor):
        assert traced_editor.step is EditorStep.DONE
        assert not traced_editor.add_point(Point(1, 1))
        assert not traced_editor.undo()
        assert not traced_editor.can_advance
        assert traced_editor.can_save

    def test_drag_is_exclusive(self, traced_editor):
        assert traced_editor.begin_drag(0)
        assert not traced_editor.begin_drag(1)
        assert traced_editor.drag_to(Point(480, 480))
        traced_editor.end_drag()

        assert traced_editor.target[0] == Point(480, 480)
        assert traced_editor.target[1] == Point(650, 500)
        assert traced_editor.drag_index is None

    def test_drag_without_begin_is_ignored(self, traced_editor, target_square):
        assert not traced_editor.drag_to(Point(0, 0))
        assert traced_editor.target == target_square

    def test_begin_drag_out_of_range(self, traced_editor):
        assert not traced_editor.begin_drag(10)

    def test_vertex_at_uses_hit_radius(self, traced_editor):
        assert traced_editor.vertex_at(Point(505, 505)) == 0
        assert traced_editor.vertex_at(Point(575, 575)) is None

    def test_hit_radius_shrinks_with_zoom(self, traced_editor):
        traced_editor.view.set_zoom(5)
        assert traced_editor.vertex_at(Point(510, 500)) is None
        assert traced_editor.vertex_at(Point(502, 500)) == 0

    def test_save_manual(self, traced_editor, target_square):
        result = traced_editor.save()

        assert result.is_manual
        assert result.confidence == 100.0
        assert result.explanation == MANUAL_EXPLANATION
        assert result.area_m2 == pytest.approx(0.0155925)
        assert result.target == target_square
        assert result.reference_outline == "M 100 100 L 400 100 L 400 400 L 100 400 Z"
        assert traced_editor.is_closed

    def test_closed_session_rejects_input(self, traced_editor):
        traced_editor.save()
        with pytest.raises(EditorStateError):
            traced_editor.add_point(Point(1, 1))
        with pytest.raises(EditorStateError):
            traced_editor.save()
        assert not traced_editor.can_save


class TestEditMode:
    def test_starts_done_with_detected_polygons(self, auto_result):
        editor = VertexEditor.start_edit(auto_result)
        assert editor.step is EditorStep.DONE
        assert editor.mode is EditorMode.EDIT
        assert editor.target == auto_result.target
        assert editor.reference_outline == auto_result.reference_outline

    def test_unchanged_save_keeps_area(self, auto_result):
        result = VertexEditor.start_edit(auto_result).save()
        assert result.area_m2 == pytest.approx(2.5)
        assert not result.is_manual
        assert result.confidence == 87.0

    def test_relative_rescale(self, auto_result, make_square):
        original = make_square(100, 100, 100)
        auto_result.target = original
        editor = VertexEditor.start_edit(auto_result)
        editor.begin_drag(2)
        editor.drag_to(Point(300, 300))
        editor.end_drag()

        moved_units = editor.target.area
        assert editor.save().area_m2 == pytest.approx(2.5 * moved_units / original.area)

    def test_edit_keeps_manual_flag(self, auto_result):
        auto_result.is_manual = True
        assert VertexEditor.start_edit(auto_result).save().is_manual

    def test_cancel_returns_baseline(self, auto_result):
        editor = VertexEditor.start_edit(auto_result)
        editor.begin_drag(0)
        editor.drag_to(Point(0, 0))
        restored = editor.cancel()

        assert restored == auto_result
        assert editor.is_closed
        with pytest.raises(EditorStateError):
            editor.cancel()

    def test_baseline_is_isolated_from_caller(self, auto_result):
        editor = VertexEditor.start_edit(auto_result)
        auto_result.area_m2 = 0.0
        assert editor.session.baseline.area_m2 == 2.5


class TestPointerEvents:
    def test_clicks_capture_points(self, manual_editor, surface):
        assert manual_editor.pointer_down(100, 50, surface)
        assert manual_editor.pointer_down(350, 250, surface)
        assert list(manual_editor.reference) == [Point(0, 0), Point(500, 500)]

    def test_drag_via_pointer(self, auto_result, surface):
        editor = VertexEditor.start_edit(auto_result)
        # vertex 0 of the detailed target sits at grid (700, 500)
        assert editor.pointer_down(450, 250, surface)
        assert editor.drag_index == 0
        assert editor.pointer_move(460, 260, surface)
        editor.pointer_up()

        assert editor.target[0] == Point(720, 525)
        assert editor.drag_index is None

    def test_miss_does_not_drag(self, auto_result, surface):
        editor = VertexEditor.start_edit(auto_result)
        assert not editor.pointer_down(350, 250, surface)
        assert not editor.pointer_move(360, 260, surface)

    def test_pan_mode_pans_instead_of_capturing(self, manual_editor, surface):
        manual_editor.view.set_zoom(2)
        manual_editor.view.toggle_pan_mode()

        assert manual_editor.pointer_down(300, 200, surface)
        assert manual_editor.pointer_move(330, 190, surface)
        manual_editor.pointer_up()

        assert len(manual_editor.reference) == 0
        assert manual_editor.view.pan == (30.0, -10.0)
        assert not manual_editor.view.is_panning

    def test_pan_does_not_move_points(self, traced_editor, surface, target_square):
        traced_editor.view.toggle_pan_mode()
        traced_editor.pointer_down(450, 250, surface)
        traced_editor.pointer_move(100, 100, surface)
        traced_editor.pointer_up()
        assert traced_editor.target == target_square
