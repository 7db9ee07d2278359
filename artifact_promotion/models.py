"""Promotion data models.

This module defines the data models exchanged by the promotion workflow:
- PromotionMode: Whether the user plugin runs before promoting
- PromotionContext: Everything the operator supplied for one attempt
- PromotionRequest: Immutable request body for the stage-build endpoint
- PromotionMessage / PromotionResponse: Server response body shape
- PromotionOutcome: Evaluated result of one stage-build call
- PushPluginRequest: Parameters for the 'Push to Nexus' user plugin

The models use Pydantic for validation, consistent with the service's
configuration approach in config.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

BUILD_NAME_PARAM = "build.name"
BUILD_NUMBER_PARAM = "build.number"


class PromotionMode(str, Enum):
    """How a promotion attempt is carried out.

    Attributes:
        PROMOTION: Dry run followed by the real promotion.
        PUSH_TO_NEXUS: Execute the 'Push to Nexus' user plugin first and
                       promote only when it succeeds.
    """

    PROMOTION = "promotion"
    PUSH_TO_NEXUS = "pushToNexus"


class MessageLevel(str, Enum):
    """Severity levels reported in promotion response messages."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class PromotionContext(BaseModel):
    """Operator-supplied context for a single promotion attempt.

    Attributes:
        build_name: Name of the build as published to the server.
        build_key: CI plan result key the build belongs to.
        build_number: Build number to promote.
        promotion_mode: Plain promotion or plugin-then-promotion.
        target_status: Release status to attach to the build.
        comment: Free text comment recorded with the promotion.
        promotion_repo: Target repository for the promoted artifacts.
        include_dependencies: Whether dependencies are promoted too.
        use_copy: Copy artifacts instead of moving them.
        variables: Variables visible to the build, used by the plugin step.
    """

    build_name: str = Field(..., min_length=1)
    build_key: str = Field(..., min_length=1)
    build_number: int = Field(..., gt=0)
    promotion_mode: PromotionMode = PromotionMode.PROMOTION
    target_status: str = Field(default="released")
    comment: str = Field(default="")
    promotion_repo: Optional[str] = None
    include_dependencies: bool = False
    use_copy: bool = False
    variables: Dict[str, str] = Field(default_factory=dict)


class PromotionRequest(BaseModel):
    """Immutable promotion request for one stage-build call.

    The dry run and the commit request are built from the same base
    request; only ``dry_run`` differs between them.
    """

    model_config = ConfigDict(frozen=True)

    build_name: str
    build_number: str
    target_status: str
    comment: str = ""
    ci_user: str
    target_repository: Optional[str] = None
    include_dependencies: bool = False
    use_copy: bool = False
    dry_run: bool = True
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def from_context(
        cls,
        context: PromotionContext,
        ci_user: str,
        dry_run: bool = True,
    ) -> "PromotionRequest":
        return cls(
            build_name=context.build_name,
            build_number=str(context.build_number),
            target_status=context.target_status,
            comment=context.comment,
            ci_user=ci_user,
            target_repository=context.promotion_repo,
            include_dependencies=context.include_dependencies,
            use_copy=context.use_copy,
            dry_run=dry_run,
        )

    def with_dry_run(self, dry_run: bool) -> "PromotionRequest":
        """Return a copy of this request with only the dry run flag changed."""
        return self.model_copy(update={"dry_run": dry_run})

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON body expected by the build promotion endpoint.

        Null values are omitted from the payload.

        Returns:
            Dictionary ready to be serialized as the request body.
        """
        # Server expects e.g. 2024-01-31T10:15:00.000+0000
        timestamp = self.timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
        timestamp += self.timestamp.strftime("%z") or "+0000"
        payload = {
            "status": self.target_status,
            "comment": self.comment,
            "ciUser": self.ci_user,
            "timestamp": timestamp,
            "dryRun": self.dry_run,
            "targetRepo": self.target_repository,
            "copy": self.use_copy,
            "artifacts": True,
            "dependencies": self.include_dependencies,
        }
        return {key: value for key, value in payload.items() if value is not None}


class PromotionMessage(BaseModel):
    """A single message from a promotion response body."""

    level: str
    message: str


class PromotionResponse(BaseModel):
    """Body returned by the build promotion endpoint.

    ``messages`` is required; a body without it is a malformed response.
    """

    messages: List[PromotionMessage]


class PromotionOutcome(BaseModel):
    """Evaluated result of a stage-build call.

    Attributes:
        success: True when the stage may be considered successful.
        http_status: HTTP status code returned by the server.
        status_line: Human-readable status line of the response.
        messages: Messages parsed from the body (empty for non-200).
        failure_message: Operator-facing description of the failure.
    """

    success: bool
    http_status: int
    status_line: str = ""
    messages: List[PromotionMessage] = Field(default_factory=list)
    failure_message: Optional[str] = None


class PushPluginRequest(BaseModel):
    """Parameters for the 'Push to Nexus' user plugin.

    Attributes:
        build_name: Name of the build to push.
        build_number: Build number to push.
        filtered_variables: Build variables with the plugin prefix removed.
    """

    build_name: str
    build_number: str
    filtered_variables: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_context(
        cls,
        context: PromotionContext,
        prefix: str,
    ) -> "PushPluginRequest":
        return cls(
            build_name=context.build_name,
            build_number=str(context.build_number),
            filtered_variables=filter_push_variables(context.variables, prefix),
        )

    def to_params(self) -> Dict[str, str]:
        """Merge build name and number with the filtered variables."""
        params = {
            BUILD_NAME_PARAM: self.build_name,
            BUILD_NUMBER_PARAM: self.build_number,
        }
        params.update(self.filtered_variables)
        return params


def filter_push_variables(
    variables: Mapping[str, str],
    prefix: str,
) -> Dict[str, str]:
    """Keep variables whose key starts with ``prefix`` and strip the prefix.

    Args:
        variables: All variables visible to the build.
        prefix: Key prefix marking plugin variables (e.g. "nexusPush.").

    Returns:
        Mapping of stripped key to value.
    """
    return {
        key[len(prefix):]: value
        for key, value in variables.items()
        if key and key.strip() and key.startswith(prefix)
    }
