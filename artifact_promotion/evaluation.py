"""Success evaluation for promotion responses.

A stage-build response is successful when the server answered 200 and no
message in the body has level WARNING or ERROR. Messages starting with
"No items were" are ignored: the server reports them as warnings when a
build has nothing to move, which does not make the promotion fail.
"""

from artifact_promotion.models import (
    MessageLevel,
    PromotionMessage,
    PromotionOutcome,
    PromotionResponse,
)

IGNORED_MESSAGE_PREFIX = "No items were"

FAILING_LEVELS = frozenset({MessageLevel.WARNING.value, MessageLevel.ERROR.value})

DRY_RUN_FAILURE = "Promotion failed during dry run (no change was made)"
COMMIT_FAILURE = (
    "Promotion failed. View the repository server logs for more details"
)


def is_disqualifying(message: PromotionMessage) -> bool:
    """Whether a response message makes the promotion stage fail."""
    return (
        message.level in FAILING_LEVELS
        and not message.message.startswith(IGNORED_MESSAGE_PREFIX)
    )


def evaluate_promotion_response(
    status_code: int,
    status_line: str,
    content: str,
    dry_run: bool,
) -> PromotionOutcome:
    """Decide whether a stage-build response is a success.

    Args:
        status_code: HTTP status code of the response.
        status_line: Status line used in the failure message.
        content: Full response body.
        dry_run: Whether the response belongs to the dry run stage.

    Returns:
        PromotionOutcome with ``failure_message`` set when unsuccessful.
        The first disqualifying message in body order decides the failure.

    Raises:
        pydantic.ValidationError: If a 200 body is not valid JSON or lacks
            the ``messages``, ``level`` or ``message`` fields.
    """
    if status_code != 200:
        prefix = DRY_RUN_FAILURE if dry_run else COMMIT_FAILURE
        return PromotionOutcome(
            success=False,
            http_status=status_code,
            status_line=status_line,
            failure_message=f"{prefix}: {status_line}\n{content}",
        )

    response = PromotionResponse.model_validate_json(content)
    for message in response.messages:
        if is_disqualifying(message):
            return PromotionOutcome(
                success=False,
                http_status=status_code,
                status_line=status_line,
                messages=response.messages,
                failure_message=f"Received {message.level}: {message.message}",
            )

    return PromotionOutcome(
        success=True,
        http_status=status_code,
        status_line=status_line,
        messages=response.messages,
    )
