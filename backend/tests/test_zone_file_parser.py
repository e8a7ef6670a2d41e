import io

import pytest
from openpyxl import Workbook

from zonemap.core.config import settings
from zonemap.core.errors import IngestionError
from zonemap.services.zone_file_parser import (
    ZONE_MAPPING_TEMPLATE, is_workbook, parse_rows, parse_text_rows, parse_zone_file,
    sniff_delimiter, to_vendor_config,
)

SIMPLE_CSV = b"pincode,zone\n110001,N1\n110002,N1\n400001,W1\n"


def _xlsx(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ─── Format handling ───────────────────────────────────────────────────

def test_is_workbook_by_extension_then_magic():
    assert is_workbook("zones.xlsx", b"")
    assert not is_workbook("zones.csv", b"PK\x03\x04")
    assert is_workbook("upload", b"PK\x03\x04rest")
    assert is_workbook("upload", b"\xd0\xcf\x11\xe0rest")
    assert not is_workbook("upload", b"pincode,zone")


def test_sniff_delimiter():
    assert sniff_delimiter("pincode,zone") == ","
    assert sniff_delimiter("pincode\tzone\toda") == "\t"
    assert sniff_delimiter("pincode;zone") == ";"
    assert sniff_delimiter("pincode|zone|state") == "|"
    assert sniff_delimiter("pincode") == ","


def test_parse_text_rows_strips_quotes_and_blank_lines():
    rows = parse_text_rows('"pincode";"zone"\n\n"110001";\'N1\'\n')
    assert rows == [["pincode", "zone"], ["110001", "N1"]]


def test_parse_text_rows_keeps_quoted_delimiters():
    rows = parse_text_rows('pincode,zone,city\n110001,N1,"Delhi, Central"\n')
    assert rows[1] == ["110001", "N1", "Delhi, Central"]

    rows = parse_text_rows('pincode\tzone\tcity\n110001\tN1\t"New\tDelhi"\n')
    assert rows[1] == ["110001", "N1", "New\tDelhi"]


def test_parse_text_rows_empty():
    with pytest.raises(IngestionError, match="File is empty"):
        parse_text_rows("\n  \n")


# ─── Row parsing ───────────────────────────────────────────────────────

async def test_simple_upload_groups_by_zone():
    result = await parse_zone_file(SIMPLE_CSV, "zones.csv")
    assert result.has_header
    assert [e.pincode for e in result.entries] == ["110001", "110002", "400001"]
    assert result.errors == []
    assert [(s.zone_code, s.pincode_count) for s in result.summaries] == [("N1", 2), ("W1", 1)]
    assert result.summaries[0].region == "North"


async def test_upload_is_deterministic():
    first = await parse_zone_file(SIMPLE_CSV, "zones.csv")
    second = await parse_zone_file(SIMPLE_CSV, "zones.csv")
    assert first.model_dump() == second.model_dump()


def test_pin_code_region_headers():
    result = parse_rows([["Pin Code", "Region"], ["560001", "S1"]])
    assert (result.columns.pincode_col, result.columns.zone_col) == (0, 1)
    assert result.columns.confidence["pincode"] == 0.95
    assert result.columns.confidence["zone"] == 0.95
    assert result.entries[0].zone == "S1"


def test_headerless_rows_use_value_detection():
    result = parse_rows([["110001", "N1"], ["400001", "W1"]])
    assert not result.has_header
    assert [e.source_row for e in result.entries] == [1, 2]
    assert any("No header" in w.message for w in result.warnings)


def test_row_errors_are_reported_with_row_numbers():
    rows = [["pincode", "zone"], ["110001", "N1"], ["abc", "N1"], ["110002", "Q9"]]
    result = parse_rows(rows)
    assert len(result.entries) == 1
    assert [(e.row, e.type) for e in result.errors] == [(3, "INVALID_PINCODE"), (4, "INVALID_ZONE")]


def test_empty_rows_keep_source_numbering():
    rows = [["pincode", "zone"], ["", ""], ["110001", "N1"]]
    result = parse_rows(rows)
    assert result.entries[0].source_row == 3
    assert any(w.message == "Skipped 1 empty rows" for w in result.warnings)


def test_error_list_is_capped():
    rows = [["pincode", "zone"], ["110001", "N1"]] + [["bad", "N1"]] * 60
    result = parse_rows(rows)
    assert len(result.errors) == settings.MAX_ROW_ERRORS
    assert len(result.entries) == 1


def test_duplicate_pincode_first_wins():
    result = parse_rows([["pincode", "zone"], ["110001", "N1"], ["110001", "N2"]])
    assert [(e.pincode, e.zone) for e in result.entries] == [("110001", "N1")]
    assert any(w.type == "DATA_QUALITY" for w in result.warnings)
    assert result.errors == []


def test_oda_and_location_columns():
    rows = [
        ["pincode", "zone", "isOda", "state", "city"],
        ["110001", "N1", "true", "Delhi", "New Delhi"],
        ["400001", "W1", "no", "", ""],
    ]
    result = parse_rows(rows)
    first, second = result.entries
    assert first.is_oda and not second.is_oda
    assert (first.state, first.city) == ("Delhi", "New Delhi")
    missing = [w for w in result.warnings if w.type == "MISSING_LOCATION"]
    assert missing and missing[0].count == 1


def test_enrichment_from_reference_index(index):
    result = parse_rows([["pincode", "zone"], ["110001", "N1"], ["999999", "N1"]], index=index)
    known, unknown = result.entries
    assert (known.state, known.city) == ("DELHI", "NEW DELHI")
    assert unknown.state is None and unknown.city is None
    assert result.summaries[0].cities == ["NEW DELHI||DELHI"]


def test_missing_pincode_column_aborts_with_context():
    with pytest.raises(IngestionError) as exc:
        parse_rows([["a", "b"], ["foo", "bar"], ["baz", "qux"]])
    assert "PINCODE" in str(exc.value)
    assert exc.value.context["hasHeader"] is True
    assert exc.value.context["names"] == ["a", "b"]
    assert exc.value.to_dict()["code"] == "FORMAT_ERROR"


def test_header_only_file_aborts():
    with pytest.raises(IngestionError, match="only header"):
        parse_rows([["pincode", "zone"]])


def test_no_valid_entries_lists_first_errors():
    with pytest.raises(IngestionError, match="No valid entries") as exc:
        parse_rows([["pincode", "zone"]] + [["bad", "N1"]] * 12)
    assert exc.value.context["errorCount"] == 12
    assert len(exc.value.context["errors"]) == 10
    assert "...and 2 more" in str(exc.value)


def test_template_parses_cleanly():
    result = parse_rows(parse_text_rows(ZONE_MAPPING_TEMPLATE))
    assert len(result.entries) == 8
    assert [e.pincode for e in result.entries if e.is_oda] == ["400002"]


# ─── Workbooks and limits ──────────────────────────────────────────────

async def test_xlsx_upload():
    data = _xlsx([["Pincode", "Zone"], [110001, "N1"], [560001, "S1"]])
    result = await parse_zone_file(data, "zones.xlsx")
    assert [(e.pincode, e.zone) for e in result.entries] == [("110001", "N1"), ("560001", "S1")]


async def test_xlsx_detected_by_magic_bytes():
    data = _xlsx([["Pincode", "Zone"], [400001, "W1"]])
    result = await parse_zone_file(data, "upload.bin")
    assert result.entries[0].zone == "W1"


async def test_corrupt_workbook():
    with pytest.raises(IngestionError, match="Failed to parse Excel"):
        await parse_zone_file(b"PK\x03\x04not really a zip", "zones.xlsx")


async def test_upload_size_cap(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_MB", 0)
    with pytest.raises(IngestionError, match="File too large"):
        await parse_zone_file(SIMPLE_CSV, "zones.csv")


# ─── Vendor config output ──────────────────────────────────────────────

async def test_to_vendor_config(index):
    result = await parse_zone_file(SIMPLE_CSV + b"400002,W1,\n", "zones.csv", index=index)
    config = to_vendor_config(result)
    assert [z.zone_code for z in config.zones] == ["N1", "W1"]
    assert config.zones[0].selected_cities == ["NEW DELHI||DELHI"]
    assert config.zones[1].selected_cities == ["MUMBAI||MAHARASHTRA"]
    assert all(z.is_complete for z in config.zones)
    assert config.price_matrix == {"N1": {"N1": None, "W1": None}, "W1": {"N1": None, "W1": None}}
    assert config.oda_pincodes == []


def test_to_vendor_config_keeps_city_with_first_zone(index):
    result = parse_rows([["pincode", "zone"], ["110001", "N1"], ["110002", "N2"]], index=index)
    config = to_vendor_config(result, blank_value=0.0)
    n1, n2 = config.zones
    assert n1.selected_cities == ["NEW DELHI||DELHI"]
    assert n2.selected_cities == []
    assert config.price_matrix == {"N1": {"N1": 0.0}}


def test_unmatched_pincode_zone_gets_no_matrix_row(index):
    rows = parse_text_rows("pincode,zone,isOda\n110001,N1,false\n600001,S1,false\n")
    config = to_vendor_config(parse_rows(rows, index=index))
    assert [(z.zone_code, z.selected_cities) for z in config.zones] == [
        ("N1", ["NEW DELHI||DELHI"]),
        ("S1", []),
    ]
    assert config.price_matrix == {"N1": {"N1": None}}
