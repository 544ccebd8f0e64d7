from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.app import models, schemas
from backend.app.services import (
    MigrationInProgressError,
    RecordNotFoundError,
    RecordPermissionError,
    RecordService,
    RecordServiceError,
    RecordValidationError,
)
from backend.app.services.cycle_migration import MIGRATION_WRITE_GATE


def _service_payload(**overrides) -> dict:
    payload = {
        "name": "Balayage",
        "customer": "Ana",
        "price": "60.00",
        "tip": "10.00",
        "date": "2025-06-10",
        "payments": [
            {"method": "card", "amount": "40.00"},
            {"method": "cash", "amount": "20.00"},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_service_persists_record_and_payments(db_session, stylist_identity, cycle_a):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload())

    record = RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)

    assert isinstance(record, models.ServiceRecord)
    assert record.user_id == stylist_identity.user_id
    assert record.cycle_id == cycle_a.id
    assert record.price == Decimal("60.00")
    assert record.tip == Decimal("10.00")
    assert record.occurred_on == "2025-06-10"
    assert sorted((p.method.value, p.amount) for p in record.payments) == [
        ("card", Decimal("40.00")),
        ("cash", Decimal("20.00")),
    ]


def test_mismatched_payments_write_nothing(db_session, stylist_identity, cycle_a):
    data = schemas.ServiceCreate(
        cycle_id=cycle_a.id,
        **_service_payload(
            price="50.00",
            payments=[{"method": "cash", "amount": "20.00"}, {"method": "card", "amount": "29.99"}],
        ),
    )

    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)

    assert excinfo.value.rule == "payment_sum_mismatch"
    assert db_session.query(models.Record).count() == 0
    assert db_session.query(models.RecordPayment).count() == 0


def test_stylist_cannot_file_outside_cycle_but_admin_can(
    db_session, stylist_identity, admin_identity, cycle_a
):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload(date="2025-06-20"))

    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)
    assert excinfo.value.rule == "date_outside_cycle"

    record = RecordService.create_record(db_session, admin_identity, data, models.RecordKind.SERVICE)
    assert record.cycle_id == cycle_a.id
    assert record.occurred_on == "2025-06-20"


def test_cycle_is_resolved_from_date_when_omitted(db_session, stylist_identity, cycle_a):
    data = schemas.ServiceCreate(**_service_payload(date="2025-06-03T15:45:00"))

    record = RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)

    assert record.cycle_id == cycle_a.id
    assert record.occurred_on == "2025-06-03T15:45:00"


def test_missing_cycle_for_date_is_reported(db_session, stylist_identity, cycle_a):
    data = schemas.ServiceCreate(**_service_payload(date="2025-09-01"))

    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)

    assert excinfo.value.rule == "cycle_required"


def test_products_cannot_carry_tips(db_session, stylist_identity, cycle_a):
    data = schemas.ProductCreate(
        cycle_id=cycle_a.id,
        name="Shampoo",
        price="25.00",
        tip="2.00",
        date="2025-06-05",
        payments=[{"method": "zelle", "amount": "25.00"}],
    )

    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.PRODUCT)

    assert excinfo.value.rule == "tip_not_allowed"


def test_stylist_cannot_log_for_another_user(db_session, stylist_identity, other_stylist, cycle_a):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, user_id=other_stylist.id, **_service_payload())

    with pytest.raises(RecordPermissionError):
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)


def test_admin_can_log_for_a_stylist(db_session, admin_identity, stylist, cycle_a):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, user_id=stylist.id, **_service_payload())

    record = RecordService.create_record(db_session, admin_identity, data, models.RecordKind.SERVICE)

    assert record.user_id == stylist.id


def test_update_revalidates_payments_against_new_price(db_session, stylist_identity, cycle_a):
    record = RecordService.create_record(
        db_session,
        stylist_identity,
        schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload()),
        models.RecordKind.SERVICE,
    )

    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.update_record(
            db_session, stylist_identity, record.id, schemas.RecordUpdate(price="70.00")
        )
    assert excinfo.value.rule == "payment_sum_mismatch"

    updated = RecordService.update_record(
        db_session,
        stylist_identity,
        record.id,
        schemas.RecordUpdate(price="70.00", payments=[{"method": "cashapp", "amount": "70.00"}]),
    )
    assert updated.price == Decimal("70.00")
    assert [(p.method, p.amount) for p in updated.payments] == [
        (models.PaymentMethod.CASHAPP, Decimal("70.00"))
    ]
    assert db_session.query(models.RecordPayment).count() == 1


def test_only_admin_reassigns_cycle(db_session, stylist_identity, admin_identity, cycle_a, make_cycle):
    cycle_b = make_cycle("June B", date(2025, 6, 15), date(2025, 6, 28))
    record = RecordService.create_record(
        db_session,
        stylist_identity,
        schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload()),
        models.RecordKind.SERVICE,
    )

    with pytest.raises(RecordPermissionError):
        RecordService.update_record(
            db_session, stylist_identity, record.id, schemas.RecordUpdate(cycle_id=cycle_b.id)
        )

    moved = RecordService.update_record(
        db_session, admin_identity, record.id, schemas.RecordUpdate(cycle_id=cycle_b.id)
    )
    assert moved.cycle_id == cycle_b.id


def test_other_stylists_records_are_invisible(db_session, stylist_identity, other_identity, cycle_a):
    record = RecordService.create_record(
        db_session,
        stylist_identity,
        schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload()),
        models.RecordKind.SERVICE,
    )

    with pytest.raises(RecordNotFoundError):
        RecordService.get_record(db_session, other_identity, record.id)
    with pytest.raises(RecordNotFoundError):
        RecordService.delete_record(db_session, other_identity, record.id)

    RecordService.delete_record(db_session, stylist_identity, record.id)
    assert db_session.query(models.Record).count() == 0
    assert db_session.query(models.RecordPayment).count() == 0


def test_list_records_by_cycle_scopes_stylists(
    db_session, stylist, other_stylist, stylist_identity, admin_identity, cycle_a, make_record
):
    make_record(stylist, cycle=cycle_a, occurred_on="2025-06-02")
    make_record(other_stylist, cycle=cycle_a, occurred_on="2025-06-03")
    make_record(stylist, cycle=cycle_a, occurred_on="2025-06-04", kind=models.RecordKind.PRODUCT)

    own, own_total = RecordService.list_records_by_cycle(db_session, stylist_identity, cycle_a.id)
    assert own_total == 2
    assert {record.user_id for record in own} == {stylist.id}

    services, services_total = RecordService.list_records_by_cycle(
        db_session, admin_identity, cycle_a.id, kind=models.RecordKind.SERVICE
    )
    assert services_total == 2
    assert {record.user_id for record in services} == {stylist.id, other_stylist.id}

    with pytest.raises(RecordPermissionError):
        RecordService.list_records_by_cycle(
            db_session, stylist_identity, cycle_a.id, user_id=other_stylist.id
        )


def test_writes_are_refused_during_migration(db_session, stylist_identity, cycle_a):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload())

    MIGRATION_WRITE_GATE.acquire()
    try:
        with pytest.raises(MigrationInProgressError):
            RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)
    finally:
        MIGRATION_WRITE_GATE.release()

    assert db_session.query(models.Record).count() == 0


def test_commit_failure_rolls_back(db_session, stylist_identity, cycle_a, monkeypatch):
    data = schemas.ServiceCreate(cycle_id=cycle_a.id, **_service_payload())

    def failing_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(RecordServiceError):
        RecordService.create_record(db_session, stylist_identity, data, models.RecordKind.SERVICE)

    monkeypatch.undo()
    assert db_session.query(models.Record).count() == 0


def test_service_scenario_through_api(client, stylist_headers, admin_headers, cycle_a):
    response = client.post(
        "/services",
        json={**_service_payload(tip=None), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["kind"] == "service"
    assert body["date"] == "2025-06-10"
    assert Decimal(str(body["price"])) == Decimal("60.00")
    assert len(body["payments"]) == 2

    stats = client.get(f"/cycles/{cycle_a.id}/stats", headers=stylist_headers)
    assert stats.status_code == 200
    items = stats.json()["items"]
    assert len(items) == 1
    assert Decimal(str(items[0]["total_service_price"])) == Decimal("60.00")
    assert items[0]["service_count"] == 1

    outside = client.post(
        "/services",
        json={**_service_payload(date="2025-06-20"), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )
    assert outside.status_code == 400
    assert outside.json()["detail"]["rule"] == "date_outside_cycle"

    as_admin = client.post(
        "/services",
        json={**_service_payload(date="2025-06-20"), "cycle_id": cycle_a.id},
        headers=admin_headers,
    )
    assert as_admin.status_code == 201, as_admin.text


def test_record_api_rejects_mismatch_and_hides_other_kind(client, stylist_headers, cycle_a):
    mismatch = client.post(
        "/products",
        json={
            "cycle_id": cycle_a.id,
            "name": "Conditioner",
            "price": "50.00",
            "date": "2025-06-05",
            "payments": [{"method": "cash", "amount": "20.00"}, {"method": "card", "amount": "29.99"}],
        },
        headers=stylist_headers,
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"]["rule"] == "payment_sum_mismatch"

    created = client.post(
        "/products",
        json={
            "cycle_id": cycle_a.id,
            "name": "Conditioner",
            "price": "50.00",
            "date": "2025-06-05",
            "payments": [{"method": "other", "amount": "50.00", "label": "Gift card"}],
        },
        headers=stylist_headers,
    )
    assert created.status_code == 201, created.text
    product_id = created.json()["id"]

    assert client.get(f"/products/{product_id}", headers=stylist_headers).status_code == 200
    assert client.get(f"/services/{product_id}", headers=stylist_headers).status_code == 404

    listing = client.get("/products", params={"cycle_id": cycle_a.id}, headers=stylist_headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1

    deleted = client.delete(f"/products/{product_id}", headers=stylist_headers)
    assert deleted.status_code == 204


def test_record_listing_requires_cycle(client, stylist_headers):
    response = client.get("/services", headers=stylist_headers)

    assert response.status_code == 422


def test_blank_date_is_rejected_by_schema(client, stylist_headers, cycle_a):
    response = client.post(
        "/services",
        json={**_service_payload(date="   "), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )

    assert response.status_code == 422


def test_date_with_trailing_text_is_rejected(db_session, stylist_identity, cycle_a):
    with pytest.raises(RecordValidationError) as excinfo:
        RecordService.create_record(
            db_session,
            stylist_identity,
            schemas.ServiceCreate(**_service_payload(date="2025-06-10 not a time"), cycle_id=cycle_a.id),
            models.RecordKind.SERVICE,
        )

    assert excinfo.value.rule == "invalid_date"
    assert db_session.query(models.Record).count() == 0


def test_rule_violation_body_through_api(client, stylist_headers, cycle_a):
    response = client.post(
        "/services",
        json={**_service_payload(date="2025-06-10Tjunk"), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert set(detail) == {"rule", "message", "field"}
    assert detail["rule"] == "invalid_date"
    assert detail["message"]


def test_overlong_date_is_rejected_by_schema(client, stylist_headers, cycle_a):
    response = client.post(
        "/services",
        json={**_service_payload(date="2025-06-10" + "x" * 40), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )

    assert response.status_code == 422


def test_names_are_stripped_before_validation(client, stylist_headers, cycle_a):
    blank = client.post(
        "/services",
        json={**_service_payload(name="   "), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )
    assert blank.status_code == 422

    created = client.post(
        "/services",
        json={**_service_payload(name="  Balayage  "), "cycle_id": cycle_a.id},
        headers=stylist_headers,
    )
    assert created.status_code == 201, created.text
    record_id = created.json()["id"]
    assert created.json()["name"] == "Balayage"

    renamed = client.patch(f"/services/{record_id}", json={"name": " \t "}, headers=stylist_headers)
    assert renamed.status_code == 422
    assert client.get(f"/services/{record_id}", headers=stylist_headers).json()["name"] == "Balayage"
