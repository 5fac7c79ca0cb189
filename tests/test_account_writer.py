import sys
import os
import io
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from account_writer import format_amount, write_accounts
from models import AccountSnapshot


class TestFormatAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (Decimal("1.5"), "1.5000"),
            (Decimal("-0.5"), "-0.5000"),
            (Decimal("0"), "0.0000"),
            (Decimal("-0.0"), "0.0000"),
            (Decimal("1.2345"), "1.2345"),
            (Decimal("1E+3"), "1000.0000"),
        ],
    )
    def test_four_decimal_places(self, value, expected):
        assert format_amount(value) == expected


class TestWriteAccounts:
    def test_header_and_rows(self):
        stream = io.StringIO()
        write_accounts(
            [
                AccountSnapshot(1, Decimal("1.5"), Decimal("0"), Decimal("1.5"), False),
                AccountSnapshot(2, Decimal("-0.5"), Decimal("0"), Decimal("-0.5"), True),
            ],
            stream,
        )

        assert stream.getvalue().splitlines() == [
            "client,available,held,total,locked",
            "1,1.5000,0.0000,1.5000,false",
            "2,-0.5000,0.0000,-0.5000,true",
        ]

    def test_no_accounts(self):
        stream = io.StringIO()
        write_accounts([], stream)
        assert stream.getvalue() == "client,available,held,total,locked\n"
