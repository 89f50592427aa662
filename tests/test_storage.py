import io

import pytest

from exceptions import RecordParseError
from models import AccountSnapshot, DepositRecord, DisputeRecord, WithdrawalRecord
from money import Money
from storage import format_accounts, read_records, write_accounts


def records_from(text: str, strict: bool = True):
    return list(read_records(io.StringIO(text), strict=strict))


class TestReadRecords:
    """Test parsing the transaction CSV."""

    def test_reads_all_record_types(self):
        records = records_from(
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "withdrawal,1,2,0.5\n"
            "dispute,1,1,\n"
            "resolve,1,1,\n"
            "chargeback,1,1,\n"
        )

        assert [record.type for record in records] == [
            "deposit", "withdrawal", "dispute", "resolve", "chargeback"
        ]
        assert records[0] == DepositRecord(client=1, tx=1, amount=Money("1"))
        assert records[1] == WithdrawalRecord(client=1, tx=2, amount=Money("0.5"))

    def test_trims_whitespace(self):
        records = records_from(
            "type, client, tx, amount\n"
            "deposit,  2 ,  5 ,  3.1415 \n"
        )
        assert records == [DepositRecord(client=2, tx=5, amount=Money("3.1415"))]

    def test_amount_column_may_be_missing_for_disputes(self):
        records = records_from("type,client,tx\ndispute,1,7\n")
        assert records == [DisputeRecord(client=1, tx=7)]

    def test_blank_lines_are_skipped(self):
        records = records_from("type,client,tx,amount\n\ndeposit,1,1,2\n\n")
        assert len(records) == 1

    def test_empty_stream(self):
        assert records_from("") == []

    def test_missing_required_column(self):
        with pytest.raises(RecordParseError) as exc_info:
            records_from("type,client,amount\ndeposit,1,1.0\n")
        assert exc_info.value.line == 1
        assert "tx" in exc_info.value.message

    @pytest.mark.parametrize("row", [
        "deposit,1,1,",            # missing amount
        "deposit,1,1,abc",         # bad amount
        "refund,1,1,1.0",          # unknown type
        "deposit,70000,1,1.0",     # client outside u16
        "deposit,1,-1,1.0",        # negative tx id
        "deposit,1,4294967296,1",  # tx outside u32
    ])
    def test_malformed_row_raises_in_strict_mode(self, row):
        with pytest.raises(RecordParseError) as exc_info:
            records_from(f"type,client,tx,amount\ndeposit,1,1,1.0\n{row}\n")
        assert exc_info.value.line == 3

    def test_malformed_rows_are_skipped_in_lenient_mode(self):
        records = records_from(
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "deposit,1,2,abc\n"
            "deposit,1,3,2.0\n",
            strict=False,
        )
        assert [record.tx for record in records] == [1, 3]

    def test_records_are_yielded_lazily(self):
        stream = read_records(io.StringIO("type,client,tx,amount\ndeposit,1,1,1\ndeposit,1,2,x\n"))
        assert next(stream).tx == 1
        with pytest.raises(RecordParseError):
            next(stream)


class TestWriteAccounts:
    """Test rendering the account report."""

    def test_formats_four_decimal_places(self):
        snapshots = [
            AccountSnapshot(client=1, available=Money("1.5"), held=Money("0"), total=Money("1.5"), locked=False),
            AccountSnapshot(client=2, available=Money("0"), held=Money("0"), total=Money("0"), locked=True),
        ]
        assert format_accounts(snapshots) == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,0.0000,0.0000,0.0000,true\n"
        )

    def test_header_only_when_no_accounts(self):
        buffer = io.StringIO()
        assert write_accounts([], buffer) == 0
        assert buffer.getvalue() == "client,available,held,total,locked\n"
