"""Ledger of created resources and best-effort teardown.

Streams, muxings and DRM attachments belong to their encoding and go away
with it, so only top-level resources are recorded.
"""

from typing import Any, Callable

from aws_lambda_powertools import Logger

from ..shared.exceptions import EncodingPipelineError
from ..shared.models import CreatedResource, ResourceKind

logger = Logger(service="teardown")


class ResourceLedger:
    """Records top-level resources in creation order."""

    def __init__(self) -> None:
        self._resources: list[CreatedResource] = []

    def record(self, kind: ResourceKind, resource_id: str, name: str | None = None) -> None:
        self._resources.append(CreatedResource(kind=kind, resource_id=resource_id, name=name))

    @property
    def resources(self) -> list[CreatedResource]:
        return list(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def teardown(self, client: Any) -> list[CreatedResource]:
        """Delete recorded resources, newest first.

        Failures are logged and skipped so that one stuck resource does not
        keep the others alive.

        Args:
            client: EncodingServiceClient used for the delete calls

        Returns:
            Resources that could not be deleted
        """
        deleters: dict[ResourceKind, Callable[[str], Any]] = {
            ResourceKind.ENCODING: client.delete_encoding,
            ResourceKind.INPUT: client.delete_input,
            ResourceKind.OUTPUT: client.delete_output,
            ResourceKind.VIDEO_CONFIG: client.delete_video_config,
            ResourceKind.AUDIO_CONFIG: client.delete_audio_config,
            ResourceKind.DASH_MANIFEST: client.delete_dash_manifest,
            ResourceKind.HLS_MANIFEST: client.delete_hls_manifest,
        }

        leftovers: list[CreatedResource] = []
        for resource in reversed(self._resources):
            try:
                deleters[resource.kind](resource.resource_id)
            except EncodingPipelineError as e:
                leftovers.append(resource)
                logger.warning(
                    "Failed to delete resource",
                    extra={
                        "kind": resource.kind.value,
                        "resource_id": resource.resource_id,
                        **e.to_dict(),
                    },
                )
            else:
                logger.info(
                    "Deleted resource",
                    extra={"kind": resource.kind.value, "resource_id": resource.resource_id},
                )

        self._resources = list(reversed(leftovers))
        return leftovers
