import json
from pathlib import Path

import pytest

from freight_intake.data.customers_repository import load_customers, load_customers_from_csv, next_pod_code
from freight_intake.models.domain import CommitResult, Customer, StagingStats
from freight_intake.persistence.filesystem import FileStorage
from freight_intake.persistence.supabase_backend import customer_from_row
from freight_intake.services.staging.summary import write_commit_report


def _customer(customer_id: str, name: str, pod_code: int = 0) -> Customer:
    return Customer(customer_id=customer_id, name=name, pod_code=pod_code)


@pytest.fixture(autouse=True)
def clear_customer_cache():
    load_customers.cache_clear()
    yield
    load_customers.cache_clear()


def test_file_storage_creates_run_directory(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="commit_test")

    assert run_dir.exists()
    assert run_dir.is_dir()
    assert run_dir.parent == tmp_path / "reports"


def test_file_storage_writes_json_and_csv(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="commit_test")

    summary_path = run_dir / "summary.json"
    errors_path = run_dir / "errors.csv"

    storage.write_json(summary_path, {"고객": "고관영"})
    storage.write_csv(errors_path, "error\nA: failed\n")

    assert summary_path.read_text(encoding="utf-8") == '{\n  "고객": "고관영"\n}'
    assert errors_path.read_text(encoding="utf-8") == "error\nA: failed\n"


def test_write_commit_report_stores_summary_and_errors(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    result = CommitResult(saved_count=2, errors=["Kim: timeout"], batch_count=2, failed_batches=[2])

    run_dir = write_commit_report("abc", result, StagingStats(total=3, eligible=3), storage=storage)

    summary = json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
    assert summary["session_id"] == "abc"
    assert summary["result"]["failed_batches"] == [2]
    assert summary["stats_before_commit"]["eligible"] == 3
    assert "Kim: timeout" in (run_dir / "errors.csv").read_text(encoding="utf-8")


def test_load_customers_from_csv_reads_korean_headers(tmp_path: Path) -> None:
    csv_path = tmp_path / "customers.csv"
    csv_path.write_text(
        "customer_id,고객명,연락처,지역,pod_code,is_active\n"
        "c1,고관영,070 985 209,BKK,12,true\n"
        "c2,,010-0000-0000,BKK,13,true\n"
        "c3,Old Client,,PP,14,false\n",
        encoding="utf-8",
    )

    customers = load_customers_from_csv(csv_path)

    assert [customer.customer_id for customer in customers] == ["c1", "c3"]
    assert customers[0].name == "고관영"
    assert customers[0].phone == "070 985 209"
    assert customers[0].pod_code == 12
    assert customers[1].is_active is False


def test_load_customers_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_customers(tmp_path / "missing.csv")


def test_next_pod_code_is_one_past_the_highest() -> None:
    assert next_pod_code([]) == 1
    assert next_pod_code([_customer("a", "A", 7), _customer("b", "B", 3)]) == 8


def test_customer_from_row_defaults() -> None:
    customer = customer_from_row({"customer_id": 5, "name": " Lee ", "discount_percent": None})

    assert customer.customer_id == "5"
    assert customer.name == "Lee"
    assert customer.pod_code == 0
    assert customer.discount_percent == 0.0
    assert customer.is_active is True
