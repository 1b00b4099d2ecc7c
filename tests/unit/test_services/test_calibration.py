"""Unit tests for scale calibration."""
import pytest

from hidemeter.core.entities import Point, Polygon, ReferencePolygon
from hidemeter.services.calibration import ScaleCalibrator, calibrate, relative_calibrate


class TestReferenceCalibration:
    def test_a4_scenario(self, reference_square, target_square):
        # 90000 unit^2 reference -> 22500 unit^2 target
        assert calibrate(reference_square, target_square) == pytest.approx(0.0155925)

    def test_formula(self, make_square):
        area = calibrate(make_square(0, 0, 200), make_square(0, 0, 400), reference_real_area_m2=1.0)
        assert area == pytest.approx(4.0)

    def test_zero_area_reference_holds_previous(self, target_square):
        flat = Polygon((Point(0, 0), Point(100, 0), Point(200, 0), Point(300, 0)))
        assert calibrate(flat, target_square, previous_area=0.42) == 0.42

    def test_incomplete_polygons_give_zero(self, reference_square, target_square):
        assert calibrate(reference_square.points[:2], target_square) == 0.0
        assert calibrate(reference_square, target_square.points[:2], previous_area=1.0) == 0.0


class TestRelativeCalibration:
    def test_ratio_applied_to_edit(self, make_square):
        original = make_square(0, 0, 100)  # 10000 unit^2 -> 2.0 m^2
        edited = make_square(0, 0, 200)
        assert relative_calibrate(original, 2.0, edited, previous_area=0.0) == pytest.approx(8.0)

    def test_unchanged_polygon_keeps_area(self, auto_result):
        area = relative_calibrate(auto_result.target, auto_result.area_m2, auto_result.target, 0.0)
        assert area == pytest.approx(auto_result.area_m2)

    def test_below_floor_holds_previous(self, make_square):
        tiny = make_square(0, 0, 0.5)
        assert relative_calibrate(tiny, 2.0, make_square(0, 0, 100), previous_area=1.5) == 1.5

    def test_empty_original_holds_previous(self, target_square):
        assert relative_calibrate([], 2.0, target_square, previous_area=0.7) == 0.7


class TestScaleCalibrator:
    def test_remembers_last_area(self, reference_square, target_square):
        calibrator = ScaleCalibrator()
        first = calibrator.from_sheet(ReferencePolygon(reference_square), target_square)
        degenerate = Polygon((Point(0, 0), Point(10, 10), Point(20, 20), Point(30, 30)))

        assert first == pytest.approx(0.0155925)
        assert calibrator.from_sheet(ReferencePolygon(degenerate), target_square) == first
        assert calibrator.last_area == first

    def test_sheet_area_used(self, reference_square, target_square):
        # Letter-size sheet instead of A4
        sheet = ReferencePolygon(reference_square, real_area_m2=0.0603)
        assert ScaleCalibrator().from_sheet(sheet, target_square) == pytest.approx(0.0603 / 4)

    def test_from_original(self, make_square):
        calibrator = ScaleCalibrator(initial_area=3.0)
        assert calibrator.from_original(make_square(0, 0, 100), 3.0, make_square(0, 0, 50)) == pytest.approx(0.75)

    def test_reset(self):
        calibrator = ScaleCalibrator(initial_area=3.0)
        calibrator.reset()
        assert calibrator.last_area == 0.0
        calibrator.reset(1.25)
        assert calibrator.last_area == 1.25
