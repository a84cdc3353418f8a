from __future__ import annotations

from datetime import datetime

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from budgetroom.config import get_settings
from budgetroom.db.repo import BudgetRoomRepository
from budgetroom.logging import get_logger
from budgetroom.services.budgets import BudgetAlert, collect_budget_status, format_alert, period_of


async def setup_scheduler(bot: Bot, repo: BudgetRoomRepository) -> AsyncIOScheduler:
    settings = get_settings()

    scheduler = AsyncIOScheduler(timezone=settings.tz)
    scheduler.add_job(
        budget_alert_job,
        IntervalTrigger(minutes=settings.alert_check_minutes),
        kwargs={"bot": bot, "repo": repo},
    )
    scheduler.start()
    return scheduler


async def budget_alert_job(bot: Bot, repo: BudgetRoomRepository) -> None:
    log = get_logger(__name__)
    settings = get_settings()
    period = period_of(datetime.now(settings.zoneinfo).date())

    for owner in await repo.list_budget_owners():
        _, alerts = await collect_budget_status(repo, owner["id"], period)
        if not alerts:
            continue
        # one message per budget, for the highest threshold it crossed
        latest: dict[int, BudgetAlert] = {}
        for alert in alerts:
            latest.setdefault(alert.budget_id, alert)
        try:
            for alert in latest.values():
                await bot.send_message(owner["tg_id"], format_alert(alert, settings.currency))
        except TelegramAPIError:
            log.exception("alerts.failed", user_id=owner["id"], tg_id=owner["tg_id"])
            continue
        await repo.acknowledge_alerts(
            owner["id"],
            [(alert.budget_id, alert.threshold) for alert in alerts],
            period,
        )
        log.info("alerts.sent", user_id=owner["id"], budgets=len(latest), alerts=len(alerts))
