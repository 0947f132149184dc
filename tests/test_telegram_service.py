import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.error import TelegramError

from lesson_tracker.services.telegram_service import NullNotifier, TelegramNotifier, build_notifier


@pytest.fixture
def bot():
    bot = AsyncMock()
    bot.get_chat_member.return_value = SimpleNamespace(status="member")
    return bot


def test_build_notifier_without_token():
    notifier = build_notifier("", admin_ids=[1])
    assert type(notifier) is NullNotifier
    assert asyncio.run(notifier.check_channel_membership(1)) is None
    assert asyncio.run(notifier.notify_lesson_completion(1, "Урок")) is False


def test_completion_message(bot):
    notifier = TelegramNotifier(bot, channel_id="@academy")

    assert asyncio.run(notifier.notify_lesson_completion(42, "Свечной анализ")) is True

    bot.initialize.assert_awaited_once()
    kwargs = bot.send_message.await_args.kwargs
    assert kwargs["chat_id"] == 42
    assert "Свечной анализ" in kwargs["text"]


def test_send_failure_is_reported_not_raised(bot):
    bot.send_message.side_effect = TelegramError("blocked")
    notifier = TelegramNotifier(bot)

    assert asyncio.run(notifier.send_message(42, "hi")) is False


def test_admin_upload_notice_counts_deliveries(bot):
    bot.send_message.side_effect = [None, TelegramError("blocked"), None]
    notifier = TelegramNotifier(bot, admin_ids=[1, 2, 3])

    assert asyncio.run(notifier.notify_admins_lesson_uploaded("Урок 5", "1")) == 2


@pytest.mark.parametrize("status,is_member,expected", [
    ("creator", False, True),
    ("administrator", False, True),
    ("member", False, True),
    ("restricted", True, True),
    ("restricted", False, False),
    ("left", False, False),
    ("kicked", False, False),
])
def test_channel_membership(bot, status, is_member, expected):
    bot.get_chat_member.return_value = SimpleNamespace(status=status, is_member=is_member)
    notifier = TelegramNotifier(bot, channel_id="@academy")

    assert asyncio.run(notifier.check_channel_membership(42)) is expected


def test_membership_unknown_on_error_or_missing_channel(bot):
    bot.get_chat_member.side_effect = TelegramError("chat not found")
    assert asyncio.run(TelegramNotifier(bot, channel_id="@academy").check_channel_membership(42)) is None
    assert asyncio.run(TelegramNotifier(bot).check_channel_membership(42)) is None


def test_status_reports_configuration(bot):
    assert NullNotifier().status() == {"configured": False, "message": "Bot token not configured"}
    assert TelegramNotifier(bot, channel_id="@academy").status()["configured"] is True


def test_channel_broadcast_needs_channel(bot):
    assert asyncio.run(TelegramNotifier(bot).send_channel_message("hi")) is False
    bot.send_message.assert_not_awaited()

    assert asyncio.run(TelegramNotifier(bot, channel_id="@academy").send_channel_message("hi")) is True
    assert bot.send_message.await_args.kwargs["chat_id"] == "@academy"


def test_new_lesson_announcement_names_file_and_folder(bot):
    notifier = TelegramNotifier(bot, channel_id="@academy")

    assert asyncio.run(notifier.notify_channel_new_lesson("Свечной анализ", "Основы/Урок 1")) is True

    text = bot.send_message.await_args.kwargs["text"]
    assert "`Основы/Урок 1`" in text
    assert "Папка: `Основы`" in text


def test_welcome_message_default_name(bot):
    notifier = TelegramNotifier(bot)

    asyncio.run(notifier.send_welcome_message(5, "Анна"))
    assert "Добро пожаловать, Анна!" in bot.send_message.await_args.kwargs["text"]

    asyncio.run(notifier.send_welcome_message(5))
    assert "Добро пожаловать, трейдер!" in bot.send_message.await_args.kwargs["text"]


def test_admin_message_targets(bot):
    notifier = TelegramNotifier(bot, channel_id="@academy")

    assert asyncio.run(notifier.send_admin_message("hi", "channel")) is True
    assert bot.send_message.await_args.kwargs["chat_id"] == "@academy"

    assert asyncio.run(notifier.send_admin_message("hi", "42")) is True
    assert bot.send_message.await_args.kwargs["chat_id"] == 42

    with pytest.raises(ValueError):
        asyncio.run(notifier.send_admin_message("hi", "everyone"))
