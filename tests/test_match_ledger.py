"""
Match ledger tests: request validation, the accept/reject state machine, and cycle-windowed listings.
"""

from datetime import datetime

import pytest

from core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from models import MatchRequest, MatchStatus, Notification, NotificationType
from routers.matching import service as matching_service
from utils.encryption import decrypt_contact_handle


@pytest.fixture
def wednesday(freeze_clock):
    # Wednesday 2023-01-04 15:00 KST, REGISTRATION
    return freeze_clock(2023, 1, 4, 15, 0)


@pytest.fixture
def pair(make_member, wednesday):
    sender = make_member(gender="male")
    receiver = make_member(gender="female")
    return sender, receiver


@pytest.mark.asyncio
async def test_create_request_notifies_receiver(test_db, pair):
    sender, receiver = pair

    response = await matching_service.create_match_request(
        test_db, sender=sender, receiver_id=receiver.id, letter="I loved your pick!"
    )

    assert response.status == MatchStatus.PENDING
    assert response.is_unlocked is False
    notification = test_db.query(Notification).filter(Notification.recipient_id == receiver.id).one()
    assert notification.type == NotificationType.MATCH_REQUEST
    assert notification.match_id == response.id
    assert notification.sender_id == sender.id
    assert notification.meta["push"]["status"] == "disabled"


@pytest.mark.asyncio
@pytest.mark.parametrize("letter", ["", "   \n\t"])
async def test_create_request_rejects_empty_letter(test_db, pair, letter):
    sender, receiver = pair

    with pytest.raises(ValidationError):
        await matching_service.create_match_request(
            test_db, sender=sender, receiver_id=receiver.id, letter=letter
        )
    assert test_db.query(MatchRequest).count() == 0


@pytest.mark.asyncio
async def test_create_request_letter_length_bound(test_db, pair):
    sender, receiver = pair

    with pytest.raises(ValidationError):
        await matching_service.create_match_request(
            test_db, sender=sender, receiver_id=receiver.id, letter="a" * 501
        )

    response = await matching_service.create_match_request(
        test_db, sender=sender, receiver_id=receiver.id, letter="a" * 500
    )
    assert len(response.letter) == 500


@pytest.mark.asyncio
async def test_create_request_to_self_or_missing_member(test_db, pair):
    sender, _ = pair

    with pytest.raises(ValidationError):
        await matching_service.create_match_request(
            test_db, sender=sender, receiver_id=sender.id, letter="hi"
        )
    with pytest.raises(NotFoundError):
        await matching_service.create_match_request(
            test_db, sender=sender, receiver_id=9999, letter="hi"
        )
    with pytest.raises(NotFoundError):
        await matching_service.create_match_request(
            test_db, sender=None, receiver_id=sender.id, letter="hi"
        )


@pytest.mark.asyncio
async def test_receiver_accepts_and_contacts_are_snapshotted(test_db, pair, make_match):
    sender, receiver = pair
    match_request = make_match(sender, receiver)

    response = await matching_service.accept_match_request(
        test_db, request_id=match_request.id, member=receiver
    )

    assert response.status == MatchStatus.ACCEPTED
    assert response.responded_at is not None
    stored = test_db.query(MatchRequest).filter(MatchRequest.id == match_request.id).one()
    assert stored.sender_contact_snapshot == sender.contact_handle
    assert stored.receiver_contact_snapshot == receiver.contact_handle
    assert stored.is_unlocked is False

    notification = test_db.query(Notification).filter(Notification.recipient_id == sender.id).one()
    assert notification.type == NotificationType.MATCH_ACCEPTED
    assert notification.sender_id == receiver.id


@pytest.mark.asyncio
async def test_only_receiver_can_accept(test_db, pair, make_member, make_match):
    sender, receiver = pair
    outsider = make_member(gender="female")
    match_request = make_match(sender, receiver)

    with pytest.raises(AuthorizationError):
        await matching_service.accept_match_request(
            test_db, request_id=match_request.id, member=outsider
        )
    with pytest.raises(AuthorizationError):
        await matching_service.accept_match_request(
            test_db, request_id=match_request.id, member=sender
        )

    test_db.refresh(match_request)
    assert match_request.status == MatchStatus.PENDING


@pytest.mark.asyncio
async def test_accept_missing_request(test_db, pair):
    _, receiver = pair

    with pytest.raises(NotFoundError):
        await matching_service.accept_match_request(test_db, request_id=12345, member=receiver)


@pytest.mark.asyncio
async def test_terminal_states_cannot_change(test_db, pair, make_match):
    sender, receiver = pair
    match_request = make_match(sender, receiver)

    matching_service.reject_match_request(test_db, request_id=match_request.id, member=receiver)

    with pytest.raises(InvalidStateError):
        await matching_service.accept_match_request(
            test_db, request_id=match_request.id, member=receiver
        )
    with pytest.raises(InvalidStateError):
        matching_service.reject_match_request(test_db, request_id=match_request.id, member=receiver)

    test_db.refresh(match_request)
    assert match_request.status == MatchStatus.REJECTED
    assert test_db.query(Notification).count() == 0


@pytest.mark.asyncio
async def test_concurrent_accept_yields_exactly_one_acceptance(
    test_db, session_factory, pair, make_match
):
    sender, receiver = pair
    match_request = make_match(sender, receiver)

    # The second session reads the request while it is still pending
    other_db = session_factory()
    try:
        stale_receiver = other_db.merge(receiver)
        stale_request = other_db.query(MatchRequest).filter(MatchRequest.id == match_request.id).one()
        assert stale_request.status == MatchStatus.PENDING

        await matching_service.accept_match_request(
            test_db, request_id=match_request.id, member=receiver
        )

        with pytest.raises(InvalidStateError):
            await matching_service.accept_match_request(
                other_db, request_id=match_request.id, member=stale_receiver
            )
    finally:
        other_db.close()

    accepted = test_db.query(Notification).filter(
        Notification.type == NotificationType.MATCH_ACCEPTED
    ).count()
    assert accepted == 1


def test_listings_are_windowed_to_the_interaction_cycle(test_db, pair, make_match):
    sender, receiver = pair
    # Thursday of the previous week, before the cycle started on Friday 2022-12-30
    old = make_match(sender, receiver, created_at=datetime(2022, 12, 28, 3, 0))
    current = make_match(sender, receiver)

    sent = matching_service.list_sent_requests(test_db, member=sender)
    received = matching_service.list_received_requests(test_db, member=receiver)

    assert [item.id for item in sent.items] == [current.id]
    assert [item.id for item in received.items] == [current.id]
    assert sent.items[0].counterpart_nickname == receiver.nickname
    assert old.id not in [item.id for item in received.items]


def test_listings_hide_withdrawn_counterparts(test_db, pair, make_match):
    sender, receiver = pair
    make_match(sender, receiver)

    receiver.external_id = None
    test_db.commit()

    assert matching_service.list_sent_requests(test_db, member=sender).items == []


def test_matched_listing_reveals_contact_only_when_unlocked(test_db, pair, make_member, make_match):
    sender, receiver = pair
    other = make_member(gender="female")
    locked = make_match(sender, other, status=MatchStatus.ACCEPTED)
    unlocked = make_match(sender, receiver, status=MatchStatus.ACCEPTED)
    unlocked.is_unlocked = True
    test_db.commit()

    items = {item.id: item for item in matching_service.list_matches(test_db, member=sender).items}

    assert items[locked.id].partner_contact is None
    assert items[unlocked.id].partner_contact == decrypt_contact_handle(receiver.contact_handle)

    receiver_view = matching_service.list_matches(test_db, member=receiver).items
    assert receiver_view[0].partner_contact == decrypt_contact_handle(sender.contact_handle)


def test_get_request_visible_only_to_parties(test_db, pair, make_member, make_match):
    sender, receiver = pair
    outsider = make_member()
    match_request = make_match(sender, receiver)

    assert matching_service.get_match_request(
        test_db, request_id=match_request.id, member=receiver
    ).counterpart_id == sender.id
    with pytest.raises(AuthorizationError):
        matching_service.get_match_request(test_db, request_id=match_request.id, member=outsider)
    with pytest.raises(NotFoundError):
        matching_service.get_match_request(test_db, request_id=999, member=sender)


def test_other_party_resolution(pair, make_match):
    sender, receiver = pair
    match_request = make_match(sender, receiver)

    assert match_request.other_party(sender.id) == receiver.id
    assert match_request.other_party(receiver.id) == sender.id
    with pytest.raises(ValueError):
        match_request.other_party(receiver.id + 100)
