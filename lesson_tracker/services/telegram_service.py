"""
Telegram notifier: messages to users/admins and channel membership checks
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from lesson_tracker.config import settings

logger = logging.getLogger(__name__)

MEMBER_STATUSES = {"creator", "administrator", "member"}


class NullNotifier:
    """
    Notifier used when no bot token is configured.

    Message helpers are shared with TelegramNotifier; only the two transport
    calls differ.
    """

    enabled = False

    def __init__(self, channel_id: str = "", admin_ids: Iterable[int] = ()):
        self.channel_id = channel_id
        self.admin_ids: List[int] = list(admin_ids)

    async def send_message(self, chat_id: Union[int, str], text: str, parse_mode: Optional[str] = None) -> bool:
        logger.debug(f"Telegram disabled, dropping message to {chat_id}")
        return False

    async def check_channel_membership(self, telegram_id: int) -> Optional[bool]:
        """Returns None when membership cannot be determined"""
        return None

    def status(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"configured": False, "message": "Bot token not configured"}
        return {
            "configured": True,
            "channel": f"Channel: {self.channel_id or 'not set'} | Bot configured: {self.enabled}"
        }

    async def send_channel_message(self, text: str, parse_mode: Optional[str] = None) -> bool:
        """Broadcast to the configured channel"""
        if not self.channel_id:
            logger.warning("Telegram channel not configured, broadcast dropped")
            return False
        return await self.send_message(self.channel_id, text, parse_mode)

    async def notify_channel_new_lesson(self, lesson_title: str, lesson_path: str) -> bool:
        folder, _, _ = lesson_path.rpartition("/")
        message = (
            "📝 *Новый урок загружен!*\n\n"
            f"📖 {lesson_title}\n"
            f"Файл: `{lesson_path}`\n"
            f"Папка: `{folder or '/'}`"
        )
        return await self.send_channel_message(message, ParseMode.MARKDOWN)

    async def send_welcome_message(self, telegram_id: int, first_name: Optional[str] = None) -> bool:
        name = first_name or "трейдер"
        message = (
            f"👋 Добро пожаловать, {name}!\n\n"
            "Спасибо за подписку на канал!\n\n"
            "🎓 Начните изучение торговых стратегий в нашей академии.\n"
            "📈 Получайте ежедневные аналитические обзоры.\n"
            "💡 Присоединяйтесь к сообществу профессиональных трейдеров.\n\n"
            "Удачных торгов! 🚀"
        )
        return await self.send_message(telegram_id, message)

    async def send_admin_message(self, message: str, target: str) -> bool:
        """
        Deliver an admin-authored message

        Args:
            message: Message text
            target: "channel" or a numeric Telegram user id

        Raises:
            ValueError: If the target is neither
        """
        if target == "channel":
            return await self.send_channel_message(message)
        try:
            user_id = int(target)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid target: {target}")
        return await self.send_message(user_id, message)

    async def notify_lesson_completion(self, telegram_id: int, lesson_title: str) -> bool:
        message = (
            "🎉 Поздравляем!\n\n"
            "Вы успешно завершили урок:\n"
            f"📖 *{lesson_title}*\n\n"
            "Продолжайте обучение!"
        )
        return await self.send_message(telegram_id, message, ParseMode.MARKDOWN)

    async def notify_admins_lesson_uploaded(self, lesson_title: str, uploader: str) -> int:
        """Send an upload notice to every admin; returns how many were delivered"""
        message = (
            "📋 *Администрирование*\n\n"
            "✅ Загружен новый урок:\n"
            f"📖 {lesson_title}\n\n"
            f"👤 Загрузил: {uploader}\n"
            f"🕐 Время: {datetime.now().strftime('%d.%m.%Y %H:%M')}"
        )
        delivered = 0
        for admin_id in self.admin_ids:
            if await self.send_message(admin_id, message, ParseMode.MARKDOWN):
                delivered += 1
        return delivered


class TelegramNotifier(NullNotifier):
    """Bot API backed notifier; failures are logged and never raised"""

    enabled = True

    def __init__(self, bot: Bot, channel_id: str = "", admin_ids: Iterable[int] = ()):
        super().__init__(channel_id, admin_ids)
        self.bot = bot
        self._initialized = False

    async def _ensure_initialized(self):
        if not self._initialized:
            await self.bot.initialize()
            self._initialized = True

    async def send_message(self, chat_id: Union[int, str], text: str, parse_mode: Optional[str] = None) -> bool:
        try:
            await self._ensure_initialized()
            await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
            logger.info(f"Telegram message sent to {chat_id}")
            return True
        except TelegramError as e:
            logger.error(f"Error sending Telegram message to {chat_id}: {str(e)}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending Telegram message to {chat_id}: {str(e)}")
            return False

    async def check_channel_membership(self, telegram_id: int) -> Optional[bool]:
        if not self.channel_id:
            logger.warning("Telegram channel not configured, membership unknown")
            return None

        try:
            await self._ensure_initialized()
            member = await self.bot.get_chat_member(chat_id=self.channel_id, user_id=telegram_id)
        except TelegramError as e:
            logger.warning(f"Failed to check subscription for user {telegram_id}: {str(e)}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected error checking subscription for user {telegram_id}: {str(e)}")
            return None

        status = str(member.status)
        if status in MEMBER_STATUSES:
            return True
        # Restricted members are still in the channel
        if status == "restricted":
            return bool(getattr(member, "is_member", False))
        return False


def build_notifier(token: str, channel_id: str = "", admin_ids: Iterable[int] = ()):
    """Create a TelegramNotifier when a bot token is configured"""
    if not token:
        logger.info("Telegram bot token not configured. Notifications disabled.")
        return NullNotifier(channel_id, admin_ids)
    return TelegramNotifier(Bot(token=token), channel_id=channel_id, admin_ids=admin_ids)


# Global instance
notifier = build_notifier(
    settings.TELEGRAM_BOT_TOKEN,
    channel_id=settings.TELEGRAM_CHANNEL_ID,
    admin_ids=settings.ADMIN_IDS
)
