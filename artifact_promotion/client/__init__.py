"""Repository server client for plugin execution and build promotion.

Every response returned by the client is a scoped resource: callers
acquire it through scoped_response() so that it is released even when
reading or evaluating it fails.
"""

from artifact_promotion.client.artifactory import (
    ArtifactoryAPIError,
    ArtifactoryClient,
    PromotionClient,
    encode_plugin_params,
    read_text,
    scoped_response,
    status_line,
)

__all__ = [
    "ArtifactoryAPIError",
    "ArtifactoryClient",
    "PromotionClient",
    "encode_plugin_params",
    "read_text",
    "scoped_response",
    "status_line",
]
