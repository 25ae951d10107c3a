import asyncio
import threading

import pytest

from freight_intake.config import settings
from freight_intake.models.domain import Customer
from freight_intake.services.staging import (
    BackendNotConfiguredError,
    CommitInProgressError,
    InvalidTransitionError,
    StagingRecordNotFound,
    StagingSession,
)


def _customer(customer_id: str, name: str, phone: str | None = None, region: str | None = None, pod_code: int = 0) -> Customer:
    return Customer(customer_id=customer_id, name=name, phone=phone, region=region, pod_code=pod_code)


def _manifest(*lines: str) -> str:
    return "\n".join(lines)


def _by_name(session: StagingSession, name: str):
    return next(record for record in session.records() if record.edited.name == name)


def test_scenario_a_header_paste_resolves_both_rows() -> None:
    customers = [
        _customer("c1", "고관영", "070 985 209", "BKK"),
        _customer("c2", "명랑방콕(BKK)", "092 240 030", "BKK"),
    ]

    session = StagingSession.from_text(
        _manifest("이름\tContact\t동네", "고관영\t070 985 209\tBKK", "명랑방콕\t092 240 030\tBKK"),
        customers,
    )

    first, second = session.records()
    assert first.match_status == "VERIFIED"
    assert first.matched_customer == customers[0]
    assert second.match_status == "VERIFIED"
    assert second.matched_customer == customers[1]
    assert session.stats().eligible == 2


def test_scenario_b_same_phone_rows_form_a_duplicate_group(backend) -> None:
    customers = [_customer("c1", "김철수", "010-1234-5678")]

    session = StagingSession.from_text(
        _manifest("이름\t연락처\t수량", "김철수\t010-1234-5678\t2", "Kim C.\t01012345678\t3"),
        customers,
        backend=backend,
    )

    assert len(session.groups) == 1
    group = next(iter(session.groups.values()))
    assert len(group.member_row_indices) == 2
    primary, member = session.records()
    assert primary.match_status == "VERIFIED"
    assert member.match_status == "DUPLICATE"
    assert member.matched_customer == customers[0]
    assert not member.is_selected
    assert session.merged_quantity(primary) == 5

    result = session.commit()

    assert result.saved_count == 1
    assert backend.shipments[0].quantity == 5
    assert session.records() == []


def test_scenario_c_use_once_keeps_master_unchanged(backend) -> None:
    customers = [_customer("c1", "Sokha", "012 345 678", "BKK")]
    session = StagingSession.from_text(_manifest("name\tregion", "Sokha\tToul Kork"), customers, backend=backend)
    record = session.records()[0]

    assert record.match_status == "CONFLICT"
    assert [(diff.field, diff.master_value, diff.imported_value) for diff in record.conflict.fields] == [
        ("region", "BKK", "Toul Kork")
    ]
    assert session.eligible() == []

    session.resolve(record.staging_id, "USE_ONCE")
    result = session.commit()

    assert result.saved_count == 1
    assert backend.master_updates == []
    assert backend.shipments[0].region == "Toul Kork"


def test_scenario_c_update_master_changes_region(backend) -> None:
    customers = [_customer("c1", "Sokha", "012 345 678", "BKK")]
    session = StagingSession.from_text(_manifest("name\tregion", "Sokha\tToul Kork"), customers, backend=backend)
    record = session.records()[0]

    session.resolve(record.staging_id, "UPDATE_MASTER")
    result = session.commit()

    assert result.master_updates == 1
    assert backend.master_updates == [("c1", {"region": "Toul Kork"})]


def test_edit_rematches_only_that_record() -> None:
    customers = [_customer("c1", "고관영", "070 985 209", "BKK")]
    session = StagingSession.from_text(_manifest("name", "고관영", "Unknown"), customers)
    untouched = _by_name(session, "고관영")
    unknown = _by_name(session, "Unknown")

    updated = session.edit(unknown.staging_id, name="고관영")

    assert updated.match_status == "VERIFIED"
    assert session.get(untouched.staging_id) == untouched


def test_select_candidate_by_customer_id() -> None:
    customers = [_customer("c1", "Lee Hanna", region="PP")]
    session = StagingSession.from_text(_manifest("name", "Lee Hana"), customers)
    record = session.records()[0]
    assert record.match_status == "SIMILAR"

    selected = session.select(record.staging_id, "c1")

    assert selected.match_status == "VERIFIED"
    with pytest.raises(InvalidTransitionError):
        session.select(record.staging_id, "missing")


def test_unknown_record_raises_not_found() -> None:
    session = StagingSession.from_text(_manifest("name", "Lee"), [])

    with pytest.raises(StagingRecordNotFound):
        session.edit("nope", name="x")
    with pytest.raises(StagingRecordNotFound):
        session.remove("nope")


def test_register_customer_links_matching_rows_and_assigns_pod_code(backend) -> None:
    customers = [_customer("c1", "고관영", pod_code=41)]
    session = StagingSession.from_text(_manifest("name", "Dara", "Dara", "Someone"), customers, backend=backend)

    customer, linked = session.register_customer("Dara", phone="012 000 111")

    assert customer.pod_code == 42
    assert backend.customers == [customer]
    assert len(linked) == 2
    assert all(record.match_status == "VERIFIED" for record in linked)
    assert _by_name(session, "Someone").match_status == "NEW_CUSTOMER"
    assert customer in session.customers


def test_register_customer_failure_leaves_session_unchanged(backend, monkeypatch) -> None:
    session = StagingSession.from_text(_manifest("name", "Dara"), [], backend=backend)

    def _fail(customer):
        raise RuntimeError("directory offline")

    monkeypatch.setattr(backend, "upsert_customer", _fail)
    with pytest.raises(RuntimeError):
        session.register_customer("Dara")

    assert session.records()[0].match_status == "NEW_CUSTOMER"
    assert session.customers == []


def test_rematch_all_suppresses_repeated_names() -> None:
    session = StagingSession.from_text(_manifest("name\tqty", "Dara\t1", "Sokha\t2", "Dara\t4"), [])

    session.rematch_all()

    first, _, repeat = session.records()
    assert first.match_status == "NEW_CUSTOMER"
    assert repeat.match_status == "DUPLICATE"
    assert "DUPLICATE_NAME" in repeat.warning_flags
    assert session.merged_quantity(first) == 5


def test_rematch_all_without_name_suppression(monkeypatch) -> None:
    monkeypatch.setattr(settings, "rematch_suppress_duplicate_names", False)
    session = StagingSession.from_text(_manifest("name", "Dara", "Dara"), [])

    session.rematch_all()

    assert [record.match_status for record in session.records()] == ["NEW_CUSTOMER", "NEW_CUSTOMER"]


def test_rematch_all_resets_conflict_resolutions() -> None:
    customers = [_customer("c1", "Sokha", None, "BKK")]
    session = StagingSession.from_text(_manifest("name\tregion", "Sokha\tToul Kork"), customers)
    record = session.records()[0]
    session.resolve(record.staging_id, "USE_ONCE")

    session.rematch_all()

    assert session.get(record.staging_id).conflict.resolution == "PENDING"


def test_remove_and_stats() -> None:
    customers = [_customer("c1", "고관영")]
    session = StagingSession.from_text(_manifest("name\tqty", "고관영\t2", "Dara\t3"), customers)

    stats = session.stats()
    assert (stats.total, stats.verified, stats.new_customer, stats.eligible, stats.unresolved, stats.total_qty) == (
        2, 1, 1, 1, 1, 5,
    )

    session.remove(_by_name(session, "Dara").staging_id)
    assert session.stats().total == 1


def test_commit_without_backend_fails_before_writing() -> None:
    session = StagingSession.from_text(_manifest("name", "고관영"), [_customer("c1", "고관영")])

    with pytest.raises(BackendNotConfiguredError):
        session.commit()
    assert len(session.records()) == 1


def test_second_commit_while_running_is_rejected(backend) -> None:
    session = StagingSession.from_text(_manifest("name", "고관영"), [_customer("c1", "고관영")], backend=backend)
    attempts = []

    def _commit_again(percent: int, message: str) -> None:
        with pytest.raises(CommitInProgressError):
            session.commit()
        attempts.append(percent)

    result = session.commit(on_progress=_commit_again)

    assert result.saved_count == 1
    assert attempts == [100]


def test_from_text_async() -> None:
    session = asyncio.run(StagingSession.from_text_async(_manifest("name", "고관영"), [_customer("c1", "고관영")]))

    assert session.records()[0].match_status == "VERIFIED"


def test_removing_a_group_primary_releases_its_duplicate(backend) -> None:
    customers = [_customer("c1", "Dara", "010-1234-5678")]
    session = StagingSession.from_text(
        _manifest("name\tphone\tqty", "Dara\t010-1234-5678\t2", "Dara K\t01012345678\t3"),
        customers,
        backend=backend,
    )
    primary, member = session.records()
    assert member.match_status == "DUPLICATE"

    session.remove(primary.staging_id)

    released = session.get(member.staging_id)
    assert released.match_status == "VERIFIED"
    assert released.duplicate_group_id is None
    assert session.groups == {}
    result = session.commit()
    assert result.saved_count == 1
    assert backend.shipments[0].quantity == 3


def test_removing_a_group_primary_promotes_the_next_row() -> None:
    session = StagingSession.from_text(
        _manifest("name\tphone\tqty", "Dara\t010-1234-5678\t2", "Dara K\t01012345678\t3", "D. Kim\t010 1234 5678\t4"),
        [],
    )
    primary, second, third = session.records()

    session.remove(primary.staging_id)

    promoted = session.get(second.staging_id)
    group = session.groups[promoted.duplicate_group_id]
    assert promoted.match_status == "NEW_CUSTOMER"
    assert group.primary_row_index == promoted.row_index
    assert group.member_row_indices == [3, 4]
    assert session.get(third.staging_id).match_status == "DUPLICATE"
    assert session.merged_quantity(promoted) == 7


def test_edits_wait_for_a_running_commit(backend) -> None:
    session = StagingSession.from_text(
        _manifest("name", "고관영", "Unknown"), [_customer("c1", "고관영")], backend=backend
    )
    verified = _by_name(session, "고관영")
    unknown = _by_name(session, "Unknown")
    progress = threading.Event()
    release = threading.Event()
    edited = []

    def _hold(percent: int, message: str) -> None:
        progress.set()
        release.wait(timeout=5)

    def _edit() -> None:
        progress.wait(timeout=5)
        edited.append(session.edit(unknown.staging_id, name="고관영"))

    editor = threading.Thread(target=_edit)
    editor.start()
    committer = threading.Thread(target=lambda: session.commit(on_progress=_hold))
    committer.start()
    progress.wait(timeout=5)
    editor.join(timeout=0.2)
    assert editor.is_alive()

    release.set()
    committer.join(timeout=5)
    editor.join(timeout=5)

    assert [shipment.staging_id for shipment in backend.shipments] == [verified.staging_id]
    assert edited[0].match_status == "VERIFIED"
    assert session.get(unknown.staging_id).match_status == "VERIFIED"
