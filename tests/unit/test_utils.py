"""Unit tests for list parsing helpers."""

import pytest

from hcloud_provisioner.errors import InvalidInputError
from hcloud_provisioner.utils import parse_ports, split_csv


class TestSplitCsv:
    """Tests for split_csv."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("22,80,443", ["22", "80", "443"]),
            (" 22 , 80 ", ["22", "80"]),
            (",22,,80,", ["22", "80"]),
            ("22,80,22,443,80", ["22", "80", "443"]),
            ("", []),
            (None, []),
            (" , ,", []),
        ],
    )
    def test_normalizes(self, value, expected):
        """Empty, padded and duplicate entries collapse to the ordered unique list."""
        assert split_csv(value) == expected


class TestParsePorts:
    """Tests for parse_ports."""

    def test_single_ports_and_ranges(self):
        assert parse_ports("22, 8000-8100") == ["22", "8000-8100"]

    @pytest.mark.parametrize("value", ["http", "0", "65536", "100-10", "22/tcp"])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidInputError):
            parse_ports(value)
