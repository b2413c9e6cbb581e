import csv
import io

import pytest

from analyzer import analyze
from exporters import export_csv, export_pdf, export_word

TEXT = ("By signing up you agree to binding arbitration and a class action waiver. "
        "We may sell your data to advertisers. We are not liable for damages.")


@pytest.fixture
def result():
    return analyze(TEXT)


def test_csv_lists_risks_and_flags(result):
    raw = export_csv(result)
    assert raw.startswith(b"\xef\xbb\xbf")
    rows = list(csv.reader(io.StringIO(raw.decode("utf-8-sig"))))
    assert ["Summary", "Overall Severity", "critical"] in rows
    categories = [row[0] for row in rows if row and row[0] in ("arbitration", "data_sharing")]
    assert categories == ["arbitration", "data_sharing"]
    assert ["binding arbitration"] in rows
    assert len(result.combination_warnings) == 1
    assert [result.combination_warnings[0]] in rows


def test_pdf_export(result):
    assert export_pdf(result).startswith(b"%PDF")


def test_word_export(result):
    # .docx files are zip archives
    assert export_word(result).startswith(b"PK")


def test_exports_handle_clean_result():
    clean = analyze("Welcome to our bakery.")
    assert export_pdf(clean).startswith(b"%PDF")
    assert export_word(clean).startswith(b"PK")
