"""Promotion orchestrator driving a single promotion attempt.

An attempt holds the shared status lock from start to finish, optionally
runs the 'Push to Nexus' user plugin, then promotes the build in two
stages: a dry run that changes nothing on the server, followed by the real
promotion only when the dry run succeeded.

Progress and failures are written both to the process log and to the
shared status log, which is the only channel back to the operator. No
exception escapes an attempt; the client is shut down and the status is
marked done on every path.
"""

import asyncio
import logging
import time
import traceback
from typing import Optional, Set

import httpx

from artifact_promotion.client.artifactory import (
    PromotionClient,
    read_text,
    scoped_response,
    status_line,
)
from artifact_promotion.config import PromotionSettings
from artifact_promotion.evaluation import evaluate_promotion_response
from artifact_promotion.metrics import (
    RESULT_ERROR,
    RESULT_FAILURE,
    RESULT_SUCCESS,
    STAGE_COMMIT,
    STAGE_DRY_RUN,
    STAGE_PLUGIN,
    PromotionMetrics,
)
from artifact_promotion.models import (
    PromotionContext,
    PromotionMode,
    PromotionRequest,
    PushPluginRequest,
)
from artifact_promotion.status import SharedPromotionStatus

logger = logging.getLogger(__name__)

DEFAULT_PUSH_PLUGIN_NAME = "nexusPush"
DEFAULT_PUSH_PROPERTY_PREFIX = "nexusPush."


class PromotionOrchestrator:
    """Runs promotion attempts against a shared promotion status.

    Attributes:
        status: Shared status written during each attempt.
        push_plugin_name: Execution name of the 'Push to Nexus' plugin.
        push_property_prefix: Prefix selecting build variables for the plugin.
        metrics: Optional Prometheus metrics sink.
    """

    def __init__(
        self,
        status: SharedPromotionStatus,
        settings: Optional[PromotionSettings] = None,
        metrics: Optional[PromotionMetrics] = None,
    ):
        self.status = status
        self.push_plugin_name = (
            settings.push_plugin_name if settings else DEFAULT_PUSH_PLUGIN_NAME
        )
        self.push_property_prefix = (
            settings.push_property_prefix if settings else DEFAULT_PUSH_PROPERTY_PREFIX
        )
        self.metrics = metrics
        self._tasks: Set[asyncio.Task] = set()
        self._result = RESULT_FAILURE

    def start(
        self,
        context: PromotionContext,
        client: PromotionClient,
        ci_user: str,
    ) -> "asyncio.Task[None]":
        """Run an attempt in the background and return without waiting.

        Completion is observed by polling the shared status. The returned
        task is only useful to tests and shutdown handling.
        """
        task = asyncio.create_task(
            self.run(context, client, ci_user),
            name=f"promotion-{context.build_key}-{context.build_number}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(
        self,
        context: PromotionContext,
        client: PromotionClient,
        ci_user: str,
    ) -> None:
        """Execute one promotion attempt.

        Waits for any attempt already holding the status lock. The client
        is owned by this attempt and shut down exactly once at the end.

        Args:
            context: Build and promotion options chosen by the operator.
            client: Repository server client for this attempt.
            ci_user: CI user recorded on the promotion.
        """
        async with self.status.lock:
            self.status.reset(context.build_key, context.build_number)
            self._result = RESULT_FAILURE
            started = time.monotonic()
            try:
                plugin_succeeded = (
                    context.promotion_mode != PromotionMode.PUSH_TO_NEXUS
                    or await self.execute_push_plugin(client, context)
                )
                if plugin_succeeded:
                    await self.promote(client, context, ci_user)
            except Exception as exc:
                self._result = RESULT_ERROR
                self._log_error(f"An error occurred: {exc}", exc)
            finally:
                try:
                    await client.shutdown()
                except Exception:
                    logger.exception(
                        "Failed to shut down repository client",
                        extra={"build_key": context.build_key},
                    )
                if self.metrics is not None:
                    self.metrics.record_attempt(
                        self._result, time.monotonic() - started
                    )
                self.status.finish()

    async def execute_push_plugin(
        self,
        client: PromotionClient,
        context: PromotionContext,
    ) -> bool:
        """Execute the 'Push to Nexus' user plugin for the build.

        Returns:
            True when the server answered 200, False otherwise.
        """
        self._log_info("Executing 'Push to Nexus' plugin ...")
        plugin_request = PushPluginRequest.from_context(
            context, self.push_property_prefix
        )

        async with scoped_response(
            client.execute_user_plugin(
                self.push_plugin_name, plugin_request.to_params()
            )
        ) as response:
            if response.status_code == httpx.codes.OK:
                self._log_info("Plugin successfully executed!")
                return True

            content = await read_text(response)
            self._log_error(
                f"Plugin execution failed: {status_line(response)}\n{content}"
            )
            self._record_stage_failure(STAGE_PLUGIN)
            return False

    async def promote(
        self,
        client: PromotionClient,
        context: PromotionContext,
        ci_user: str,
    ) -> None:
        """Promote the build: dry run first, then the real promotion.

        The outcome is reported through the shared log only.
        """
        self._log_info("Promoting build ...")
        request = PromotionRequest.from_context(context, ci_user, dry_run=True)
        build_name = context.build_name
        build_number = str(context.build_number)

        self._log_info(
            "Performing dry run promotion (no changes are made during dry run) ..."
        )
        async with scoped_response(
            client.stage_build(build_name, build_number, request)
        ) as dry_response:
            if not await self.check_success(dry_response, dry_run=True):
                self._record_stage_failure(STAGE_DRY_RUN)
                return

        self._log_info("Dry run finished successfully. Performing promotion ...")
        async with scoped_response(
            client.stage_build(build_name, build_number, request.with_dry_run(False))
        ) as commit_response:
            if not await self.check_success(commit_response, dry_run=False):
                self._record_stage_failure(STAGE_COMMIT)
                return

        self._result = RESULT_SUCCESS
        self._log_info("Promotion completed successfully!")

    async def check_success(self, response: httpx.Response, dry_run: bool) -> bool:
        """Evaluate a stage-build response and log why it failed.

        Raises:
            pydantic.ValidationError: If a 200 body is malformed.
        """
        content = await read_text(response)
        outcome = evaluate_promotion_response(
            response.status_code,
            status_line(response),
            content,
            dry_run,
        )
        if not outcome.success:
            self._log_error(outcome.failure_message or "Promotion failed")
        return outcome.success

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record_stage_failure(self, stage: str) -> None:
        if self.metrics is not None:
            self.metrics.record_stage_failure(stage)

    def _log_info(self, message: str) -> None:
        logger.info(
            message,
            extra={
                "build_key": self.status.build_key,
                "build_number": self.status.build_number,
            },
        )
        self.status.append(message)

    def _log_error(self, message: str, exc: Optional[BaseException] = None) -> None:
        if exc is not None:
            stack = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
            self.status.append(f"{message}\n{stack}")
        else:
            self.status.append(message)
        logger.error(
            message,
            exc_info=exc,
            extra={
                "build_key": self.status.build_key,
                "build_number": self.status.build_number,
            },
        )
