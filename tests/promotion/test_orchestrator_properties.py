"""Property-based tests for the PromotionOrchestrator.

Verifies that the commit stage is requested only after a successful dry
run and that every attempt finalizes the shared status exactly once,
whatever the server answers.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import httpx
from hypothesis import given, settings as hyp_settings, strategies as st

from artifact_promotion.evaluation import is_disqualifying
from artifact_promotion.models import PromotionContext, PromotionMessage
from artifact_promotion.orchestrator import PromotionOrchestrator
from artifact_promotion.status import SharedPromotionStatus


def run_async(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

levels = st.sampled_from(["INFO", "WARNING", "ERROR", "DEBUG"])

message_texts = st.one_of(
    st.text(min_size=0, max_size=40),
    st.text(min_size=0, max_size=20).map(lambda s: "No items were " + s),
)

messages = st.lists(
    st.fixed_dictionaries({"level": levels, "message": message_texts}),
    max_size=6,
)

status_codes = st.sampled_from([200, 200, 200, 400, 401, 403, 404, 409, 500, 503])


def _context() -> PromotionContext:
    return PromotionContext(
        build_name="widgets",
        build_key="PROJ-PLAN-JOB1",
        build_number=3,
    )


def _dry_run_succeeds(status_code: int, body: list) -> bool:
    if status_code != 200:
        return False
    return not any(is_disqualifying(PromotionMessage(**m)) for m in body)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestCommitRequiresSuccessfulDryRun:
    """The commit request is made if and only if the dry run succeeded."""

    @given(dry_status=status_codes, dry_messages=messages)
    @hyp_settings(max_examples=100)
    def test_commit_only_after_successful_dry_run(self, dry_status, dry_messages):
        status = SharedPromotionStatus()
        orchestrator = PromotionOrchestrator(status=status)
        client = AsyncMock()
        client.stage_build.side_effect = [
            httpx.Response(dry_status, json={"messages": dry_messages}),
            httpx.Response(200, json={"messages": []}),
        ]

        run_async(orchestrator.run(_context(), client, "ci-bot"))

        expected_calls = 2 if _dry_run_succeeds(dry_status, dry_messages) else 1
        assert client.stage_build.await_count == expected_calls
        commit_requests = [
            call.args[2]
            for call in client.stage_build.await_args_list
            if not call.args[2].dry_run
        ]
        assert len(commit_requests) == expected_calls - 1


class TestStatusFinalization:
    """Every attempt ends with done=True and the lock released."""

    @given(
        dry_status=status_codes,
        dry_messages=messages,
        commit_status=status_codes,
        raise_on_shutdown=st.booleans(),
    )
    @hyp_settings(max_examples=100)
    def test_done_after_any_outcome(
        self, dry_status, dry_messages, commit_status, raise_on_shutdown
    ):
        status = SharedPromotionStatus()
        orchestrator = PromotionOrchestrator(status=status)
        client = AsyncMock()
        client.stage_build.side_effect = [
            httpx.Response(dry_status, json={"messages": dry_messages}),
            httpx.Response(commit_status, json={"messages": []}),
        ]
        if raise_on_shutdown:
            client.shutdown.side_effect = RuntimeError("close failed")

        run_async(orchestrator.run(_context(), client, "ci-bot"))

        assert status.done is True
        assert not status.lock.locked()
        client.shutdown.assert_awaited_once()
        assert status.log, "an attempt always reports progress"
