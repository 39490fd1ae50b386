"""Notification inbox permissions and the post-commit hook runner."""

import pytest

from app.core.side_effects import PostCommitHooks
from app.features.auth.models import Role
from app.features.notifications.models import Notification, NotificationType
from app.features.notifications.schemas import CreateNotificationRequest
from app.features.notifications.service import NotificationService
from app.shared.exceptions import ForbiddenException, NotFoundException


async def test_only_recipient_or_admin_can_touch(make_user):
    recipient = await make_user(Role.PATIENT)
    other = await make_user(Role.DOCTOR)
    admin = await make_user(Role.ADMIN)

    notification = await NotificationService.notify(
        str(recipient.id), NotificationType.SYSTEM, "Welcome", "Hello there"
    )

    with pytest.raises(ForbiddenException):
        await NotificationService.get(str(notification.id), other)
    with pytest.raises(ForbiddenException):
        await NotificationService.mark_read(str(notification.id), True, other)
    with pytest.raises(ForbiddenException):
        await NotificationService.delete(str(notification.id), other)

    assert (await NotificationService.get(str(notification.id), admin)).id == notification.id
    updated = await NotificationService.mark_read(str(notification.id), True, recipient)
    assert updated.is_read


async def test_unread_count_and_mark_all_read(make_user):
    user = await make_user(Role.PATIENT)
    for index in range(3):
        await NotificationService.notify(str(user.id), NotificationType.SYSTEM, f"N{index}", "body")

    assert await NotificationService.unread_count(str(user.id)) == 3
    assert await NotificationService.mark_all_read(str(user.id)) == 3
    assert await NotificationService.unread_count(str(user.id)) == 0


async def test_delete_all_only_touches_one_inbox(make_user):
    user = await make_user(Role.PATIENT)
    other = await make_user(Role.PATIENT)
    await NotificationService.notify(str(user.id), NotificationType.SYSTEM, "Mine", "body")
    await NotificationService.notify(str(other.id), NotificationType.SYSTEM, "Theirs", "body")

    assert await NotificationService.delete_all(str(user.id)) == 1
    assert await Notification.find_all().count() == 1


async def test_bulk_create_checks_every_recipient_first(make_user):
    user = await make_user(Role.PATIENT)
    requests = [
        CreateNotificationRequest(user_id=str(user.id), title="A", message="a", type=NotificationType.SYSTEM),
        CreateNotificationRequest(
            user_id="665f1c2e8b3e4a0012345999", title="B", message="b", type=NotificationType.SYSTEM
        ),
    ]
    with pytest.raises(NotFoundException):
        await NotificationService.create_bulk(requests)
    assert await Notification.find_all().count() == 0

    assert await NotificationService.create_bulk(requests[:1]) == 1


async def test_failing_hook_is_recorded_and_others_still_run():
    calls = []

    async def ok(tag):
        calls.append(tag)

    async def broken():
        raise RuntimeError("smtp unreachable")

    hooks = PostCommitHooks()
    hooks.add(ok, "first")
    hooks.add(broken)
    hooks.add(ok, "last")
    assert len(hooks) == 3

    failures = await hooks.run()

    assert calls == ["first", "last"]
    assert len(failures) == 1
    assert failures[0].error == "smtp unreachable"
    assert len(hooks) == 0
