from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from budgetroom.config import get_settings
from budgetroom.db.repo import BudgetRoomRepository, Database, set_global_repository
from budgetroom.handlers import basic_router, personal_router, rooms_router
from budgetroom.logging import configure_logging, get_logger
from budgetroom.scheduler import setup_scheduler


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_sql)
    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = Dispatcher()
    db = Database(settings.database_url)
    await db.connect()
    repo = BudgetRoomRepository(db)

    dp.include_router(basic_router)
    dp.include_router(personal_router)
    # rooms_router holds the free-text prompt handler, keep it last
    dp.include_router(rooms_router)

    set_global_repository(repo)

    scheduler = await setup_scheduler(bot, repo)

    log = get_logger(__name__)
    log.info("bot.start")
    try:
        await dp.start_polling(bot)
    finally:
        scheduler.shutdown(wait=False)
        await db.close()
        await bot.session.close()
        log.info("bot.stop")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
