import asyncio

from freight_intake.models.domain import ParseResult
from freight_intake.services.manifest import (
    detect_header,
    extract_phone,
    is_courier,
    iter_row_chunks,
    looks_like_name,
    parse_manifest,
    parse_manifest_async,
    split_cells,
)


def _manifest(*lines: str) -> str:
    return "\n".join(lines)


def test_header_rows_are_mapped_by_keyword() -> None:
    result = parse_manifest(_manifest("이름\tContact\t동네", "고관영\t070 985 209\tBKK", "명랑방콕\t092 240 030\tBKK"))

    assert result.success
    assert result.has_header
    assert result.delimiter == "TAB"
    assert result.columns == {"name": 0, "phone": 1, "region": 2}
    assert [row.raw_name for row in result.rows] == ["고관영", "명랑방콕"]
    assert result.rows[0].phone == "070 985 209"
    assert result.rows[1].phone == "092 240 030"
    assert result.rows[0].region == "BKK"
    assert [row.row_index for row in result.rows] == [2, 3]


def test_header_columns_parse_qty_weight_and_date() -> None:
    result = parse_manifest(
        _manifest(
            "수령인\t수량\t중량\t입고일\t택배\t비고",
            "김철수\t3박스\t12.5kg\t45658\tCJ\t깨짐주의",
        )
    )

    row = result.rows[0]
    assert row.qty == 3
    assert row.weight == 12.5
    assert row.arrival_date == "2025-01-01"
    assert row.courier == "CJ"
    assert row.remark == "깨짐주의"


def test_missing_quantity_defaults_to_one() -> None:
    result = parse_manifest(_manifest("name\tqty", "Lee Hanna\t"))

    assert result.rows[0].qty == 1


def test_phone_falls_back_to_remark_text() -> None:
    result = parse_manifest(_manifest("name\tremark", "Lee Hanna\tcall 010-9999-8888 after 6"))

    assert result.rows[0].phone == "010-9999-8888"


def test_region_comes_from_name_parenthetical() -> None:
    result = parse_manifest(_manifest("name\tphone", "Lee Hanna(SiemReap)\t012 345 678"))

    assert result.rows[0].region == "SiemReap"


def test_ghost_rows_are_dropped_without_renumbering() -> None:
    result = parse_manifest(_manifest("이름\t연락처", "\t\t", "고관영\t010-1234-5678", " , ,", "", "명랑\t010-2222-3333"))

    assert [row.row_index for row in result.rows] == [3, 6]
    assert not result.warnings


def test_headerless_rows_are_classified_by_content() -> None:
    result = parse_manifest(_manifest("CJ\t3\t김철수\t010-1234-5678\tfragile"))

    assert not result.has_header
    row = result.rows[0]
    assert row.courier == "CJ"
    assert row.qty == 3
    assert row.raw_name == "김철수"
    assert row.phone == "010-1234-5678"
    assert row.remark == "fragile"


def test_space_aligned_rows_are_split_on_runs_of_spaces() -> None:
    result = parse_manifest(_manifest("고관영  010-1234-5678  2", "Lee Hanna   012 345 678   5"))

    assert result.delimiter == "SPACE"
    assert [row.raw_name for row in result.rows] == ["고관영", "Lee Hanna"]
    assert [row.qty for row in result.rows] == [2, 5]


def test_rows_without_a_name_become_warnings() -> None:
    result = parse_manifest(_manifest("김철수\t010-1234-5678", "3\t12.5"))

    assert [row.raw_name for row in result.rows] == ["김철수"]
    assert result.warnings == ["Row 2: no recipient name found."]
    assert all(row.raw_name for row in result.rows)


def test_header_without_name_column_uses_heuristics() -> None:
    result = parse_manifest(_manifest("Phone\tQty", "010-1234-5678\t2\tLee Hanna"))

    assert result.has_header
    assert any("no name column" in warning for warning in result.warnings)
    assert result.rows[0].raw_name == "Lee Hanna"
    assert result.rows[0].qty == 2


def test_empty_input_is_not_an_error() -> None:
    result = parse_manifest("  \n\t\n")

    assert not result.success
    assert result.rows == []
    assert result.warnings == ["No data to parse."]


def test_iter_row_chunks_yields_in_chunks() -> None:
    text = _manifest("name", *[f"Customer {index}" for index in range(5)])
    result = ParseResult(rows=[], has_header=False)

    chunks = list(iter_row_chunks(text, result, chunk_size=2))

    assert [len(chunk) for chunk in chunks] == [2, 2, 1]
    assert len(result.rows) == 5


def test_parse_manifest_async_matches_sync() -> None:
    text = _manifest("name\tphone", "고관영\t010-1234-5678", "Lee Hanna\t012 345 678")

    result = asyncio.run(parse_manifest_async(text, chunk_size=1))

    assert [row.raw_name for row in result.rows] == [row.raw_name for row in parse_manifest(text).rows]


def test_split_cells_keeps_empty_tab_cells() -> None:
    assert split_cells("a\t\tb", "TAB") == ["a", "", "b"]
    assert split_cells("  a  b c   d ", "SPACE") == ["a", "b c", "d"]


def test_detect_header() -> None:
    assert detect_header(["받는분", "전화번호", "수량"]) == (True, {"name": 0, "phone": 1, "qty": 2})
    assert detect_header(["고관영", "010-1234-5678"]) == (False, {})


def test_extract_phone_cascade() -> None:
    assert extract_phone("tel 010-1234-5678") == "010-1234-5678"
    assert extract_phone("+855 12 345 678") == "+855 12 345 678"
    assert extract_phone("01012345678") == "01012345678"
    assert extract_phone("no number") is None
    assert extract_phone(None) is None


def test_courier_and_name_heuristics() -> None:
    assert is_courier("CJ대한통운")
    assert is_courier("로젠택배")
    assert not is_courier("한")
    assert not is_courier("Lee")
    assert looks_like_name("고관영")
    assert looks_like_name("Lee Hanna")
    assert not looks_like_name("123")
    assert not looks_like_name("CJ")


def test_first_data_row_with_weight_is_not_a_header() -> None:
    result = parse_manifest(_manifest("홍길동\t010-1234-5678\t5kg", "김철수\t010-2222-3333\t3kg"))

    assert not result.has_header
    assert [row.raw_name for row in result.rows] == ["홍길동", "김철수"]
    assert not result.warnings


def test_first_data_row_with_box_count_is_not_a_header() -> None:
    result = parse_manifest(_manifest("홍길동\t010-1234-5678\t3박스", "김철수\t010-2222-3333\t2박스"))

    assert not result.has_header
    assert [row.raw_name for row in result.rows] == ["홍길동", "김철수"]


def test_names_containing_keywords_are_not_headers() -> None:
    result = parse_manifest(_manifest("Stella\t012 345 678", "Dara\t012 999 888"))

    assert not result.has_header
    assert [row.raw_name for row in result.rows] == ["Stella", "Dara"]
    assert detect_header(["Nam", "Nat"]) == (False, {})


def test_combined_header_prefers_the_trailing_keyword() -> None:
    assert detect_header(["받는분", "받는분 전화", "수량"]) == (True, {"name": 0, "phone": 1, "qty": 2})
    assert detect_header(["받는분 전화", "Contact Name"]) == (True, {"phone": 0, "name": 1})

    result = parse_manifest(_manifest("받는분\t받는분 전화", "김철수\t010-1234-5678"))
    assert result.rows[0].phone == "010-1234-5678"
