"""
Efficience Analytics - Mois canoniques (YYYYMMDD) et libellés
Run: cd backend && pytest tests/test_periods.py -v
"""

from datetime import date, datetime

import pytest

from services.errors import InvalidInputError
from services.periods import (
    normalize_mois,
    mois_label,
    mois_court,
    mois_formate,
    current_mois,
    is_last_day_of_month,
)


class TestNormalizeMois:
    def test_six_digits_get_day_01(self):
        assert normalize_mois("202501") == "20250101"

    def test_eight_digits_kept(self):
        assert normalize_mois("20250115") == "20250115"

    def test_whitespace_and_int(self):
        assert normalize_mois("  202412 ") == "20241201"
        assert normalize_mois(202503) == "20250301"

    @pytest.mark.parametrize("raw", ["2025-01", "2025", "2025010", "abcdef", "", None])
    def test_malformed_rejected(self, raw):
        with pytest.raises(InvalidInputError):
            normalize_mois(raw)

    def test_month_out_of_range(self):
        with pytest.raises(InvalidInputError) as exc:
            normalize_mois("202513")
        assert exc.value.status_code == 400

    def test_lexicographic_is_chronological(self):
        months = [normalize_mois(m) for m in ["202501", "202412", "202503"]]
        assert sorted(months) == ["20241201", "20250101", "20250301"]


class TestLabels:
    def test_mois_label(self):
        assert mois_label("20250101") == "Janvier 2025"
        assert mois_label("20241201") == "Décembre 2024"
        assert mois_label("") == ""

    def test_mois_court(self):
        assert mois_court("20250801") == "Aoû 25"
        assert mois_court("20250801", full_year=True) == "Aoû 2025"

    def test_mois_formate(self):
        assert mois_formate("20250301") == "2025-03"


class TestCalendar:
    def test_current_mois(self):
        assert current_mois(datetime(2025, 2, 14, 10, 30)) == "20250201"

    @pytest.mark.parametrize("day,expected", [
        (date(2025, 1, 31), True),
        (date(2025, 1, 30), False),
        (date(2024, 2, 29), True),
        (date(2025, 2, 28), True),
        (date(2024, 2, 28), False),
        (date(2025, 4, 30), True),
    ])
    def test_last_day_of_month(self, day, expected):
        assert is_last_day_of_month(day) is expected
