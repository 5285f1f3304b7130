"""price 모듈의 유닛 테스트."""

import logging

import pytest

from relister.price import normalize_price


class TestNormalizePrice:
    """normalize_price 테스트."""

    def test_eok(self):
        assert normalize_price("17억") == 170000

    def test_eok_with_remainder(self):
        assert normalize_price("16억5000") == 165000

    def test_eok_with_comma_and_space(self):
        """네이버 표기 "16억 5,000" 을 처리할 것."""
        assert normalize_price("16억 5,000") == 165000

    def test_eok_with_man_suffix(self):
        assert normalize_price("3억 2,000만원") == 32000

    def test_eok_with_won_suffix(self):
        """억 뒤에 바로 원이 붙은 표기 (17억원) 도 처리할 것."""
        assert normalize_price("17억원") == 170000
        assert normalize_price("16억 5,000원") == 165000

    def test_decimal_eok(self):
        assert normalize_price("1.5억") == 15000

    def test_man(self):
        assert normalize_price("5,000") == 5000
        assert normalize_price("5000만") == 5000
        assert normalize_price("5000만원") == 5000

    @pytest.mark.parametrize("text", ["", None, "가격문의", "5000/65", "억", "-1억"])
    def test_unparseable_returns_zero(self, text):
        """해석할 수 없는 문자열은 예외 없이 0 을 돌려줄 것."""
        assert normalize_price(text) == 0

    def test_unparseable_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="relister.price"):
            normalize_price("협의")
        assert "가격 파싱 실패" in caplog.text

    @pytest.mark.parametrize("n", [0, 1, 65, 9999, 175000])
    def test_man_round_trip(self, n):
        assert normalize_price(f"{n}만원") == n

    @pytest.mark.parametrize("eok,man", [(0, 5), (1, 0), (16, 5000), (32, 9999)])
    def test_eok_round_trip(self, eok, man):
        assert normalize_price(f"{eok}억{man}") == eok * 10000 + man
