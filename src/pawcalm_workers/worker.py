import asyncio
import logging
import signal
from typing import Any

import psycopg
from psycopg.rows import dict_row

from .config import Config
from .logging import log_context
from .metrics import record_job_completed, record_job_dead, record_job_failed
from .registry import get_handler
from .scheduler import ensure_recurring_jobs

logger = logging.getLogger(__name__)


def retry_backoff_seconds(attempt: int) -> int:
    return 2**attempt


class Worker:
    def __init__(self, config: Config) -> None:
        self.config = config
        self._shutdown = asyncio.Event()

    async def run(self) -> None:
        """Main entry point: run listen + poll loops until shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._request_shutdown)

        logger.info(
            "Worker starting (poll_interval=%.1fs, batch_size=%d, timezone=%s)",
            self.config.poll_interval_seconds,
            self.config.batch_size,
            self.config.reference_timezone,
        )

        async with asyncio.TaskGroup() as tg:
            tg.create_task(self._listen_loop())
            tg.create_task(self._poll_loop())

    def _request_shutdown(self) -> None:
        logger.info("Shutdown requested")
        self._shutdown.set()

    async def _listen_loop(self) -> None:
        """LISTEN on pawcalm_jobs for instant wake-up on new jobs."""
        while not self._shutdown.is_set():
            try:
                async with await psycopg.AsyncConnection.connect(
                    self.config.database_url, autocommit=True
                ) as conn:
                    await conn.execute("LISTEN pawcalm_jobs")
                    logger.info("Listening on pawcalm_jobs channel")

                    while not self._shutdown.is_set():
                        async for notify in conn.notifies(
                            timeout=self.config.poll_interval_seconds
                        ):
                            logger.debug("NOTIFY received: %s", notify.payload)
                            await self._process_batch()
                            if self._shutdown.is_set():
                                break
            except psycopg.OperationalError:
                if self._shutdown.is_set():
                    break
                logger.warning("LISTEN connection lost, reconnecting in 5s")
                await asyncio.sleep(5)

        logger.info("Listen loop stopped")

    async def _poll_loop(self) -> None:
        """Fallback polling loop; also drives recurring scheduling."""
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown.wait(),
                    timeout=self.config.poll_interval_seconds,
                )
                break
            except TimeoutError:
                pass

            await self._process_batch()

        logger.info("Poll loop stopped")

    async def _process_batch(self) -> None:
        """Schedule due recurring jobs, then claim and process a batch."""
        try:
            async with await psycopg.AsyncConnection.connect(
                self.config.database_url
            ) as conn:
                try:
                    await ensure_recurring_jobs(conn, self.config.reference_timezone)
                    await conn.commit()
                except psycopg.Error as exc:
                    await conn.rollback()
                    logger.warning("Recurring scheduler tick skipped: %s", exc)

                jobs = await self._claim_jobs(conn)
                await conn.commit()  # claims survive a crash mid-batch

                for job in jobs:
                    await self._process_job(conn, job)
        except Exception:
            logger.exception("Error in process_batch")

    async def _claim_jobs(
        self, conn: psycopg.AsyncConnection[Any]
    ) -> list[dict[str, Any]]:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                UPDATE background_jobs
                SET status = 'processing', started_at = NOW(), attempt = attempt + 1
                WHERE id IN (
                    SELECT id FROM background_jobs
                    WHERE status = 'pending' AND scheduled_for <= NOW()
                    ORDER BY scheduled_for, priority DESC, id
                    LIMIT %s
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING id, dog_id, job_type, payload, attempt, max_retries
                """,
                (self.config.batch_size,),
            )
            return await cur.fetchall()

    async def _process_job(
        self, conn: psycopg.AsyncConnection[Any], job: dict[str, Any]
    ) -> None:
        """Run one job; the handler and the completion update share a transaction."""
        payload = {"reference_timezone": self.config.reference_timezone, **(job["payload"] or {})}
        subject_id = job.get("dog_id") or payload.get("dog_id")
        with log_context(
            job_id=job["id"],
            job_type=job["job_type"],
            subject_id=str(subject_id) if subject_id is not None else None,
        ):
            await self._run_job(conn, job, payload)

    async def _run_job(
        self,
        conn: psycopg.AsyncConnection[Any],
        job: dict[str, Any],
        payload: dict[str, Any],
    ) -> None:
        job_id = job["id"]
        job_type = job["job_type"]

        handler = get_handler(job_type)
        if handler is None:
            logger.warning("No handler for job_type=%s (job_id=%d)", job_type, job_id)
            await self._mark_dead(conn, job_id, f"No handler for job_type={job_type}")
            return

        try:
            async with conn.transaction():
                await handler(conn, payload)
                await conn.execute(
                    """
                    UPDATE background_jobs
                    SET status = 'completed', completed_at = NOW()
                    WHERE id = %s
                    """,
                    (job_id,),
                )
            record_job_completed()
            logger.info("Job %d completed (type=%s)", job_id, job_type)

        except Exception as exc:
            logger.exception("Job %d failed (type=%s)", job_id, job_type)

            attempt = job["attempt"]
            max_retries = job["max_retries"]
            if attempt >= max_retries:
                record_job_dead()
                logger.error("Job %d is dead after max retries: %s", job_id, exc)
                await self._mark_dead(conn, job_id, str(exc))
            else:
                record_job_failed()
                await self._retry_job(conn, job_id, attempt, str(exc))

    async def _mark_dead(
        self, conn: psycopg.AsyncConnection[Any], job_id: int, error: str
    ) -> None:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE background_jobs
                SET status = 'dead', error_message = %s, completed_at = NOW()
                WHERE id = %s
                """,
                (error, job_id),
            )
        await conn.commit()

    async def _retry_job(
        self,
        conn: psycopg.AsyncConnection[Any],
        job_id: int,
        attempt: int,
        error: str,
    ) -> None:
        backoff_seconds = retry_backoff_seconds(attempt)
        logger.info("Job %d retrying in %ds (attempt=%d)", job_id, backoff_seconds, attempt)
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE background_jobs
                SET status = 'pending',
                    error_message = %s,
                    scheduled_for = NOW() + make_interval(secs => %s)
                WHERE id = %s
                """,
                (error, float(backoff_seconds), job_id),
            )
        await conn.commit()
