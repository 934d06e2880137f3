"""Telegram bot front-end for Eden using aiogram v3 with webhook and polling support."""

import asyncio
import logging
from typing import Dict, List, Optional

from aiogram import Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import BotCommand, Message, WebhookInfo
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application
from aiohttp import web

from ..config import Settings
from ..deps import get_settings
from ..exceptions import EdenError, TaskFailedError, ValidationError
from ..models.creation import CreationFilters
from ..models.task import MediaType
from ..services.chat_service import ChatSession
from ..services.eden_client import EdenClient
from ..services.task_poller import TaskPoller
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Generations take minutes; chat replies usually seconds.
TASK_TIMEOUT = 600.0
REPLY_TIMEOUT = 180.0

TELEGRAM_MESSAGE_LIMIT = 4096


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> List[str]:
    """Split ``text`` into chunks Telegram accepts, preferring line breaks."""
    chunks: List[str] = []
    remaining = text
    while len(remaining) > limit:
        split_idx = remaining.rfind("\n", 0, limit)
        if split_idx <= limit // 4:
            split_idx = limit
        chunks.append(remaining[:split_idx])
        remaining = remaining[split_idx:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


class TelegramBot:
    """Telegram bot with aiogram v3 supporting both webhook and polling modes.

    Each chat gets its own :class:`ChatSession`, so a conversation with an
    Eden agent carries over between messages until ``/new`` is sent.
    """

    def __init__(self, settings: Settings, client: Optional[EdenClient] = None):
        """Initialize the Telegram bot.

        Args:
            settings: Application settings
            client: Eden client, a new one is created when omitted
        """
        self.settings = settings
        self.client = client or EdenClient(settings)
        self.bot = Bot(
            token=settings.telegram_bot_token,
            default=DefaultBotProperties(parse_mode=ParseMode.MARKDOWN)
        )
        self.dp = Dispatcher()
        self.chats: Dict[int, ChatSession] = {}

        self._setup_handlers()

        logger.info("Telegram bot initialized")

    def chat_for(self, chat_id: int) -> ChatSession:
        """Return the conversation bound to ``chat_id``, creating it on first use."""
        chat = self.chats.get(chat_id)
        if chat is None:
            chat = ChatSession(self.client)
            self.chats[chat_id] = chat
        return chat

    def _setup_handlers(self):
        """Setup message handlers for the bot."""

        @self.dp.message(CommandStart())
        async def start_handler(message: Message):
            """Handle /start command."""
            await message.answer(
                "🎨 *Welcome to the Eden Bot!*\n\n"
                "I can help you:\n"
                "• 🖼 Generate images and videos from a prompt\n"
                "• 💬 Chat with Eden agents\n"
                "• 📚 Browse recent creations\n\n"
                "Send /help to see every command."
            )

        @self.dp.message(Command("help"))
        async def help_handler(message: Message):
            """Handle /help command."""
            await message.answer(
                "🔧 *Eden Bot Help*\n\n"
                "*Generation:*\n"
                "• /image <prompt> - generate an image\n"
                "• /video <prompt> - generate a video\n\n"
                "*Chat:*\n"
                "• Send any text to talk to the selected agent\n"
                "• /agents - list available agents\n"
                "• /agent <id> - talk to another agent\n"
                "• /new - start a new conversation\n\n"
                "*Feed:*\n"
                "• /creations - show the latest creations"
            )

        @self.dp.message(Command("agents"))
        async def agents_handler(message: Message):
            """Handle /agents command."""
            agents = await self.client.list_agents()
            if not agents:
                await message.answer("No agents available right now.")
                return

            lines = [f"• {agent.name or 'Unnamed'} - `{agent.id}`" for agent in agents[:20]]
            await message.answer("🤖 *Agents:*\n\n" + "\n".join(lines))

        @self.dp.message(Command("agent"))
        async def agent_handler(message: Message, command: CommandObject):
            """Handle /agent <id>: select the agent and start a fresh conversation."""
            agent_id = (command.args or "").strip()
            if not agent_id:
                await message.answer("Usage: /agent <id>")
                return

            try:
                agent = await self.client.get_agent(agent_id)
            except EdenError as e:
                logger.error(f"Error fetching agent {agent_id}: {str(e)}")
                await message.answer("❌ Could not reach Eden. Please try again later.")
                return

            if agent is None:
                await message.answer("❌ Agent not found")
                return

            chat = self.chat_for(message.chat.id)
            chat.start_new_chat()
            chat.select_agent(agent.id)
            greeting = f"\n\n{agent.greeting}" if agent.greeting else ""
            await message.answer(f"✅ Now talking to {agent.name or agent.id}{greeting}", parse_mode=None)

        @self.dp.message(Command("new"))
        async def new_handler(message: Message):
            """Handle /new command."""
            self.chat_for(message.chat.id).start_new_chat()
            await message.answer("🆕 Started a new conversation.")

        @self.dp.message(Command("image"))
        async def image_handler(message: Message, command: CommandObject):
            await self._generate(message, command.args, MediaType.IMAGE)

        @self.dp.message(Command("video"))
        async def video_handler(message: Message, command: CommandObject):
            await self._generate(message, command.args, MediaType.VIDEO)

        @self.dp.message(Command("creations"))
        async def creations_handler(message: Message):
            """Handle /creations command."""
            try:
                page = await self.client.get_creations(
                    CreationFilters(limit=min(self.settings.creations_page_size, 10))
                )
            except EdenError as e:
                logger.error(f"Error fetching creations: {str(e)}")
                await message.answer("❌ Could not load creations. Please try again later.")
                return

            urls = [creation.display_url for creation in page.items if creation.display_url]
            if not urls:
                await message.answer("No creations yet.")
                return

            await message.answer("\n".join(urls), parse_mode=None)

        # Anything else is a chat message for the selected agent
        @self.dp.message(F.text)
        async def text_handler(message: Message):
            """Handle text messages (send to the Eden session)."""
            await self._chat(message, message.text)

    async def _generate(self, message: Message, prompt: Optional[str], media_type: MediaType):
        """Submit a generation task and reply with the result once it lands."""
        if not prompt or not prompt.strip():
            await message.answer(f"Usage: /{media_type.value} <prompt>")
            return

        status_msg = await message.answer(
            f"🎨 *Creating your {media_type.value}...*\n\n"
            "⏳ This may take a few minutes."
        )

        poller = TaskPoller(self.client)
        try:
            uri = await asyncio.wait_for(poller.submit(prompt, media_type), TASK_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Task {poller.task_id} still running after {TASK_TIMEOUT}s")
            await status_msg.edit_text("⌛ *Still working on it.* Check /creations later.")
            return
        except TaskFailedError as e:
            await status_msg.edit_text(f"❌ *Generation failed*\n\nTask `{e.task_id}`")
            return
        except EdenError as e:
            logger.error(f"Error generating {media_type.value}: {str(e)}")
            await status_msg.edit_text("❌ *Error creating your request*\n\nPlease try again later.")
            return

        if media_type == MediaType.VIDEO:
            await message.answer_video(uri, caption=prompt[:1000], parse_mode=None)
        else:
            await message.answer_photo(uri, caption=prompt[:1000], parse_mode=None)
        await status_msg.delete()

    async def _chat(self, message: Message, text: str):
        """Send ``text`` to the chat's session and relay the assistant reply."""
        chat = self.chat_for(message.chat.id)

        response_msg = await message.answer("🤖 *Thinking...*")

        try:
            await chat.send_message(text)
        except ValidationError as e:
            await response_msg.edit_text(f"❌ {str(e)}", parse_mode=None)
            return
        except EdenError as e:
            logger.error(f"Error sending chat message: {str(e)}")
            await response_msg.edit_text(
                "❌ *Error Processing Message*\n\n"
                "An unexpected error occurred. Please try again."
            )
            return

        reply = await chat.wait_for_reply(REPLY_TIMEOUT)
        if reply is None:
            await response_msg.edit_text("❌ *No reply received.* Please try again.")
            return

        chunks = split_message(reply.content)
        if chunks:
            await response_msg.edit_text(chunks[0], parse_mode=None)
            for chunk in chunks[1:]:
                await message.answer(chunk, parse_mode=None)
        else:
            await response_msg.delete()

        for location in reply.media_locations():
            await message.answer(location, parse_mode=None)

    async def set_webhook(self) -> bool:
        """Set webhook for the bot.

        Returns:
            True if webhook was set successfully
        """
        try:
            webhook_url = f"{self.settings.telegram_webhook_url}/webhook"

            await self.bot.set_webhook(
                url=webhook_url,
                secret_token=self.settings.telegram_webhook_secret
            )

            logger.info(f"Webhook set to: {webhook_url}")
            return True

        except Exception as e:
            logger.error(f"Error setting webhook: {str(e)}")
            return False

    async def delete_webhook(self) -> bool:
        """Delete webhook for the bot.

        Returns:
            True if webhook was deleted successfully
        """
        try:
            await self.bot.delete_webhook()
            logger.info("Webhook deleted")
            return True

        except Exception as e:
            logger.error(f"Error deleting webhook: {str(e)}")
            return False

    async def get_webhook_info(self) -> Optional[WebhookInfo]:
        try:
            return await self.bot.get_webhook_info()
        except Exception as e:
            logger.error(f"Error getting webhook info: {str(e)}")
            return None

    async def set_commands(self):
        """Set bot commands for the menu."""
        commands = [
            BotCommand(command="start", description="Start the bot"),
            BotCommand(command="help", description="Show help message"),
            BotCommand(command="image", description="Generate an image"),
            BotCommand(command="video", description="Generate a video"),
            BotCommand(command="agents", description="List agents"),
            BotCommand(command="agent", description="Talk to an agent"),
            BotCommand(command="new", description="Start a new conversation"),
            BotCommand(command="creations", description="Latest creations"),
        ]

        await self.bot.set_my_commands(commands)
        logger.info("Bot commands set")

    async def shutdown(self):
        """Stop every chat poll and release the HTTP sessions."""
        for chat in self.chats.values():
            chat.poller.stop()
        await self.client.close()
        await self.bot.session.close()

    async def start_polling(self):
        """Start the bot in polling mode."""
        try:
            logger.info("Starting bot in polling mode...")

            await self.delete_webhook()
            await self.set_commands()

            await self.dp.start_polling(self.bot)

        except Exception as e:
            logger.error(f"Error in polling mode: {str(e)}")
            raise
        finally:
            await self.shutdown()

    async def start_webhook(self, host: str = "0.0.0.0", port: int = 8001):
        """Start the bot in webhook mode.

        Args:
            host: Host to bind to
            port: Port to bind to
        """
        runner: Optional[web.AppRunner] = None
        try:
            logger.info(f"Starting bot in webhook mode on {host}:{port}...")

            if not await self.set_webhook():
                raise RuntimeError("Failed to set webhook")

            await self.set_commands()

            app = web.Application()

            webhook_requests_handler = SimpleRequestHandler(
                dispatcher=self.dp,
                bot=self.bot,
                secret_token=self.settings.telegram_webhook_secret
            )
            webhook_requests_handler.register(app, path="/webhook")

            setup_application(app, self.dp, bot=self.bot)

            runner = web.AppRunner(app)
            await runner.setup()

            site = web.TCPSite(runner, host, port)
            await site.start()

            logger.info(f"Webhook server started on {host}:{port}")

            # Run until cancelled
            await asyncio.Future()

        except Exception as e:
            logger.error(f"Error in webhook mode: {str(e)}")
            raise
        finally:
            if runner is not None:
                await runner.cleanup()
            await self.shutdown()


async def main():
    """Main function to run the bot."""
    settings = get_settings()
    setup_logging(settings)

    if not settings.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is not set")
        raise SystemExit(1)

    bot = TelegramBot(settings)

    if settings.telegram_webhook_url:
        logger.info("Starting in webhook mode")
        await bot.start_webhook()
    else:
        logger.info("Starting in polling mode")
        await bot.start_polling()


def run():
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")


if __name__ == "__main__":
    run()
