import pytest

from lessonplay.leveling import resolve_level, total_xp_before, xp_progress, xp_requirement


class TestLevelCurve:
    @pytest.mark.parametrize(
        "level,expected", [(1, 100), (2, 115), (3, 130), (4, 150), (5, 175), (0, 100)]
    )
    def test_requirements_round_to_steps_of_five(self, level, expected):
        assert xp_requirement(level) == expected

    def test_total_before_level(self):
        assert total_xp_before(1) == 0
        assert total_xp_before(3) == 215
        assert total_xp_before(4) == 345

    @pytest.mark.parametrize(
        "xp,level", [(0, 1), (99, 1), (100, 2), (214, 2), (215, 3), (345, 4), (-20, 1)]
    )
    def test_resolve_level(self, xp, level):
        assert resolve_level(xp)[0] == level


class TestXpProgress:
    def test_mid_level(self):
        progress = xp_progress(120)
        assert progress["level"] == 2
        assert progress["requirement"] == 115
        assert progress["within_level"] == 20
        assert progress["percent"] == 17
        assert progress["to_next"] == 95

    def test_exact_level_boundary(self):
        progress = xp_progress(215)
        assert progress["level"] == 3
        assert progress["percent"] == 0
        assert progress["to_next"] == 130

    def test_fresh_user(self):
        assert xp_progress(0) == {
            "level": 1,
            "requirement": 100,
            "accumulated_before": 0,
            "within_level": 0,
            "percent": 0,
            "to_next": 100,
        }
