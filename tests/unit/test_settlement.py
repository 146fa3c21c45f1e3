"""Unit tests for transfer execution and settlement events"""

import pytest
from vedi_payments.domain.exceptions import ExternalServiceError, IntentStateError, ValidationError
from vedi_payments.domain.models import (
    INTENT_COMPLETED,
    INTENT_CREATED,
    ROLE_RESTAURANT,
    ROLE_VENUE,
    TRANSFER_FAILED,
    TRANSFER_PENDING,
    TRANSFER_SUCCEEDED,
    PaymentSplit,
    Transfer,
)
from vedi_payments.infrastructure.database.models import PaymentRecordRow
from vedi_payments.infrastructure.database.repositories import PaymentIntentRepository
from vedi_payments.services.settlement import SettlementService


SPLIT = PaymentSplit(
    gross_cents=10000,
    processor_fee_cents=320,
    platform_fee_cents=339,
    venue_fee_cents=97,
    restaurant_cents=9244,
    net_cents=9680,
    venue_enabled=True,
)


def _create_intent(db, venue_destination="acct_venue_1", processor_intent_id="pi_test_1"):
    intents = PaymentIntentRepository(db)
    intent_id = intents.create(
        split=SPLIT,
        transfers=[
            Transfer(destination_account_id="acct_rest_2", amount_cents=9244, role=ROLE_RESTAURANT),
            Transfer(destination_account_id=venue_destination, amount_cents=97, role=ROLE_VENUE),
        ],
        restaurant_id="rest_2",
        currency="usd",
        venue_id="venue_1",
    )
    if processor_intent_id:
        intents.attach_processor_intent(intent_id, processor_intent_id)
    db.commit()
    return intent_id


async def test_all_transfers_succeed(db, processor):
    intent_id = _create_intent(db)

    outcome = await SettlementService(db, processor).confirm_success(intent_id)
    db.commit()

    assert outcome.success is True
    assert outcome.attempted == 2
    assert outcome.succeeded == 2
    assert all(t.processor_transfer_id for t in outcome.transfers)
    assert PaymentIntentRepository(db).get(intent_id).state == INTENT_COMPLETED
    assert db.query(PaymentRecordRow).count() == 1


async def test_intent_success_requires_every_transfer(db, processor):
    """Test a rejected venue payout fails the settlement but not its sibling"""
    intent_id = _create_intent(db, venue_destination="acct_reject_1")

    outcome = await SettlementService(db, processor).confirm_success(intent_id)
    db.commit()

    by_role = {t.role: t for t in outcome.transfers}
    assert outcome.success is False
    assert outcome.attempted == 2
    assert outcome.succeeded == 1
    assert by_role[ROLE_RESTAURANT].status == TRANSFER_SUCCEEDED
    assert by_role[ROLE_VENUE].status == TRANSFER_FAILED
    assert by_role[ROLE_VENUE].failure_reason

    stored = PaymentIntentRepository(db).get(intent_id)
    assert stored.state == INTENT_COMPLETED
    assert [t.status for t in stored.transfers] == [TRANSFER_SUCCEEDED, TRANSFER_FAILED]


async def test_redelivered_success_pays_once(db, processor):
    """Test a repeated success event neither pays out nor records again"""
    intent_id = _create_intent(db, venue_destination="acct_reject_1")
    service = SettlementService(db, processor)

    first = await service.confirm_success(intent_id)
    db.commit()
    second = await service.confirm_success(intent_id)
    db.commit()

    assert processor.create_transfer.await_count == 2
    assert processor.retrieve_payment_intent.await_count == 1
    assert db.query(PaymentRecordRow).count() == 1
    assert second.replayed is True
    assert [t.to_dict() for t in second.transfers] == [t.to_dict() for t in first.transfers]


async def test_transfers_keyed_by_intent_and_destination(db, processor):
    intent_id = _create_intent(db)

    await SettlementService(db, processor).confirm_success(intent_id)

    destinations = sorted(
        (call.kwargs["intent_id"], call.kwargs["destination_account_id"])
        for call in processor.create_transfer.await_args_list
    )
    assert destinations == [(intent_id, "acct_rest_2"), (intent_id, "acct_venue_1")]


async def test_success_refused_until_processor_confirms(db, processor):
    processor.retrieve_payment_intent.return_value = {"id": "pi_test_1", "status": "requires_payment_method"}
    intent_id = _create_intent(db)

    with pytest.raises(ValidationError):
        await SettlementService(db, processor).confirm_success(intent_id)

    processor.create_transfer.assert_not_awaited()


async def test_success_without_processor_charge(db, processor):
    intent_id = _create_intent(db, processor_intent_id=None)

    with pytest.raises(IntentStateError):
        await SettlementService(db, processor).confirm_success(intent_id)


async def test_failed_intent_cannot_settle(db, processor):
    intent_id = _create_intent(db)
    service = SettlementService(db, processor)
    service.confirm_failure(intent_id, "card_declined")
    db.commit()

    with pytest.raises(IntentStateError):
        await service.confirm_success(intent_id)

    processor.create_transfer.assert_not_awaited()
    assert db.query(PaymentRecordRow).count() == 0


async def test_failure_after_completion_rejected(db, processor):
    intent_id = _create_intent(db)
    service = SettlementService(db, processor)
    await service.confirm_success(intent_id)
    db.commit()

    with pytest.raises(IntentStateError):
        service.confirm_failure(intent_id, "late decline")


def test_repeated_failure_is_noop(db, processor):
    intent_id = _create_intent(db)
    service = SettlementService(db, processor)

    first = service.confirm_failure(intent_id, "card_declined")
    second = service.confirm_failure(intent_id, "something else")

    assert first.state == second.state == "failed"
    assert second.failure_reason == "card_declined"


def _unreachable_for(processor, destination, times=None):
    """Make payouts to one destination time out, ``times`` times or for good"""
    real_transfer = processor.create_transfer.side_effect
    calls = {"n": 0}

    async def create_transfer(intent_id, destination_account_id, amount_cents, currency):
        if destination_account_id == destination and (times is None or calls["n"] < times):
            calls["n"] += 1
            raise ExternalServiceError("Processor timeout", operation="create_transfer")
        return await real_transfer(intent_id, destination_account_id, amount_cents, currency)

    processor.create_transfer.side_effect = create_transfer
    return real_transfer


def _destinations_called(processor):
    return [call.kwargs["destination_account_id"] for call in processor.create_transfer.await_args_list]


async def test_unknown_payout_outcome_retried_once(db, processor):
    intent_id = _create_intent(db)
    _unreachable_for(processor, "acct_venue_1", times=1)

    outcome = await SettlementService(db, processor).confirm_success(intent_id)
    db.commit()

    assert outcome.success is True
    assert _destinations_called(processor).count("acct_venue_1") == 2
    assert PaymentIntentRepository(db).get(intent_id).state == INTENT_COMPLETED


async def test_unresolved_payout_left_pending_for_redelivery(db, processor):
    """Test a payout that keeps timing out leaves the intent open until a later delivery"""
    intent_id = _create_intent(db)
    real_transfer = _unreachable_for(processor, "acct_venue_1")
    service = SettlementService(db, processor)

    with pytest.raises(ExternalServiceError) as exc_info:
        await service.confirm_success(intent_id)
    db.commit()

    assert exc_info.value.context["pending_destinations"] == ["acct_venue_1"]
    stored = PaymentIntentRepository(db).get(intent_id)
    assert stored.state == INTENT_CREATED
    by_role = {t.role: t for t in stored.transfers}
    assert by_role[ROLE_RESTAURANT].status == TRANSFER_SUCCEEDED
    assert by_role[ROLE_VENUE].status == TRANSFER_PENDING
    assert by_role[ROLE_VENUE].failure_reason
    assert db.query(PaymentRecordRow).count() == 0

    processor.create_transfer.side_effect = real_transfer
    outcome = await service.confirm_success(intent_id)
    db.commit()

    assert outcome.success is True
    assert all(t.failure_reason is None for t in outcome.transfers)
    assert _destinations_called(processor).count("acct_rest_2") == 1
    assert PaymentIntentRepository(db).get(intent_id).state == INTENT_COMPLETED
    assert db.query(PaymentRecordRow).count() == 1
