"""
app/services/sweeper.py

Purpose: Background completion sweeper

- Periodically finds fully onboarded users not yet congratulated
- Sends the congratulation sequence (details, funding intro, funding options)
- Marks the user congratulated only after the whole sequence was sent
- Overlapping cycles collapse into a no-op
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from app.core.exceptions import TransportSendFailure
from app.core.logging import get_logger, LogContext
from app.flow.states import Intent
from app.models.profile import UserProfile
from app.schemas.outbound import OutboundMessage
from app.services.profile_cache import ProfileCache
from app.services.profile_repository import ProfileRepository
from utils import constants as c

logger = get_logger(__name__)


@dataclass
class SweepResult:
    skipped: bool = False
    scanned: int = 0
    notified: int = 0
    failed: int = 0


def congratulation_messages(profile: UserProfile) -> List[OutboundMessage]:
    full_name = profile.full_name or " ".join(
        part for part in (profile.first_name, profile.last_name) if part
    )
    return [
        OutboundMessage.text_message(c.CONGRATS_MESSAGE.format(
            first_name=profile.first_name or profile.display_name,
            full_name=full_name or c.NOT_AVAILABLE,
            email=profile.email or c.NOT_AVAILABLE,
            dob=profile.dob or c.NOT_AVAILABLE,
        )),
        OutboundMessage.text_message(c.CONGRATS_FUNDING_INTRO_MESSAGE),
        OutboundMessage.buttons(c.CONGRATS_FUNDING_OPTIONS_MESSAGE, Intent.CRYPTO_FUND, Intent.FIAT_FUND),
    ]


class CompletionSweeper:
    """Timer-driven job; one cycle runs at a time."""

    def __init__(
        self,
        repository: ProfileRepository,
        channel,
        cache: Optional[ProfileCache] = None,
        interval: float = 60,
        start_delay: float = 10,
        message_delay: float = 1.0,
        send_attempts: int = 2,
        batch_size: int = 100,
    ):
        self.repository = repository
        self.channel = channel
        self.cache = cache
        self.interval = interval
        self.start_delay = start_delay
        self.message_delay = message_delay
        self.send_attempts = send_attempts
        self.batch_size = batch_size
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"⏰ Completion sweeper started (every {self.interval}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Completion sweeper stopped")

    async def _loop(self):
        await asyncio.sleep(self.start_delay)
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    async def run_once(self) -> SweepResult:
        """
        Runs one sweep cycle.

        Returns:
            SweepResult; skipped=True if another cycle was still running
        """
        if self._lock.locked():
            logger.info("Previous sweep still running, skipping cycle")
            return SweepResult(skipped=True)

        async with self._lock:
            result = SweepResult()
            pending = await self.repository.find_pending_congratulations(limit=self.batch_size)
            result.scanned = len(pending)

            for profile in pending:
                with LogContext(user_id=profile.phone):
                    try:
                        await self._congratulate(profile)
                        result.notified += 1
                    except Exception as e:
                        # Left unmarked, so the next cycle retries this user
                        result.failed += 1
                        logger.error(f"Congratulation failed: {e}")

            if result.scanned:
                logger.info(
                    f"Sweep done: {result.notified} notified, {result.failed} failed of {result.scanned}"
                )
            return result

    async def _congratulate(self, profile: UserProfile):
        messages = congratulation_messages(profile)
        for index, message in enumerate(messages):
            if index and self.message_delay:
                await asyncio.sleep(self.message_delay)
            await self._send_with_retry(profile.phone, message)

        await self.repository.mark_congratulated(profile.phone)
        if self.cache is not None:
            self.cache.invalidate(profile.phone)
        logger.info("🎉 Congratulation sequence sent")

    async def _send_with_retry(self, phone: str, message: OutboundMessage):
        for attempt in range(1, self.send_attempts + 1):
            try:
                await self.channel.send(phone, message)
                return
            except TransportSendFailure as e:
                logger.warning(f"Send attempt {attempt}/{self.send_attempts} failed: {e.message}")
                if attempt == self.send_attempts:
                    raise


_sweeper: Optional[CompletionSweeper] = None


def get_sweeper() -> CompletionSweeper:
    """Get or create the global completion sweeper."""
    global _sweeper
    if _sweeper is None:
        from app.core.config import settings
        from app.services.profile_cache import get_profile_cache
        from app.services.profile_repository import get_profile_repository
        from app.services.whatsapp_service import get_whatsapp_service

        _sweeper = CompletionSweeper(
            repository=get_profile_repository(),
            channel=get_whatsapp_service(),
            cache=get_profile_cache(),
            interval=settings.SWEEP_INTERVAL_SECONDS,
            start_delay=settings.SWEEP_START_DELAY_SECONDS,
            message_delay=settings.SWEEP_MESSAGE_DELAY_SECONDS,
        )
    return _sweeper
