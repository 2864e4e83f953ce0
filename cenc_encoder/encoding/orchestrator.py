"""Encoding orchestration.

Creates the remote resources of a CENC-protected encoding in dependency
order, starts it and waits for the result.

Flow:
1. Resolve the content key (static settings or key-delivery service)
2. Create encoding, input, output
3. Create codec configurations (H.264 ladder, AAC)
4. Create one stream per codec configuration
5. Create one fMP4 muxing per stream
6. Attach CENC DRM to every muxing
7. Create default DASH and HLS manifests
8. Start the encoding and poll until Finished or Failed
9. Optionally verify that the manifests reached the output bucket

Any failure stops the sequence: no later call is issued. With
CLEANUP_ON_FAILURE, resources created before the failure are deleted.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from ..shared.aws_clients import get_s3_client
from ..shared.config import Settings
from ..shared.exceptions import ConfigurationError, EncodingPipelineError
from ..shared.models import ContentKey, EncodingRunResult, EncodingStatus, ResourceKind
from ..output_validator.verifier import verify_outputs
from .client import EncodingServiceClient
from .polling import EncodingStatusPoller
from .teardown import ResourceLedger

logger = Logger(service="orchestrator")
metrics = Metrics(service="orchestrator", namespace="CencEncoder")

DASH_MANIFEST_NAME = "stream.mpd"
HLS_MANIFEST_NAME = "stream.m3u8"


@dataclass
class EncodingPlan:
    """Everything needed to start a fully configured encoding."""

    encoding_id: str
    dash_manifest_id: str
    hls_manifest_id: str
    start_request: Any
    stream_ids: list[str] = field(default_factory=list)
    muxing_ids: list[str] = field(default_factory=list)
    drm_ids: list[str] = field(default_factory=list)

    @property
    def manifest_ids(self) -> list[str]:
        return [self.dash_manifest_id, self.hls_manifest_id]


class EncodingOrchestrator:
    """Runs the creation sequence against the encoding service."""

    def __init__(
        self,
        client: EncodingServiceClient,
        settings: Settings,
        key_fetcher: Any = None,
        tracker: Any = None,
        s3_client_factory: Callable[[], Any] = get_s3_client,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Encoding service client
            settings: Validated settings
            key_fetcher: KeyDeliveryClient, required when settings use key delivery
            tracker: Optional RunStatusTracker updated as the run progresses
            s3_client_factory: Returns the S3 client used for output verification
            sleep: Sleep function for polling (injectable for tests)
            clock: Monotonic clock for the polling deadline
        """
        self.client = client
        self.settings = settings
        self.key_fetcher = key_fetcher
        self.tracker = tracker
        self.ledger = ResourceLedger()
        self._s3_client_factory = s3_client_factory
        self._sleep = sleep
        self._clock = clock

    def resolve_content_key(self) -> ContentKey:
        """Get key material from the key-delivery service or the settings.

        Raises:
            KeyDeliveryError: If the key service fails
        """
        if self.settings.uses_key_delivery:
            if self.key_fetcher is None:
                raise ConfigurationError("Key delivery is configured but no key fetcher was provided")
            return self.key_fetcher.fetch_content_key(self.settings.content_id)

        content_key = self.settings.static_content_key()
        if content_key is None:
            raise ConfigurationError("No static content key configured")
        return content_key

    def build(self, content_key: ContentKey) -> EncodingPlan:
        """Create every resource of the encoding, in dependency order.

        Args:
            content_key: Key material for the DRM attachments

        Returns:
            EncodingPlan referencing the encoding and its manifests
        """
        settings = self.settings
        client = self.client

        encoding = client.create_encoding(
            name=settings.example_name,
            description=settings.encoding_description,
            cloud_region=settings.cloud_region,
        )
        self._record(ResourceKind.ENCODING, encoding.id, settings.example_name)
        if self.tracker is not None:
            self.tracker.set_encoding(encoding.id)

        s3_input = client.create_s3_input(
            name=settings.s3_input_name,
            bucket_name=settings.s3_bucket_name,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
        )
        self._record(ResourceKind.INPUT, s3_input.id, settings.s3_input_name)

        output = client.create_s3_output(
            name=settings.s3_output_name,
            bucket_name=settings.s3_bucket_name,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
        )
        self._record(ResourceKind.OUTPUT, output.id, settings.s3_output_name)

        renditions = settings.video_renditions
        video_configs = []
        for rendition in renditions:
            config = client.create_h264_video_config(rendition)
            self._record(ResourceKind.VIDEO_CONFIG, config.id, rendition.name)
            video_configs.append(config)

        audio_rendition = settings.audio_rendition
        audio_config = client.create_aac_audio_config(audio_rendition)
        self._record(ResourceKind.AUDIO_CONFIG, audio_config.id, audio_rendition.name)

        # Streams: video ladder first, then audio
        codec_configs = [*video_configs, audio_config]
        streams = [
            client.create_stream(
                encoding_id=encoding.id,
                input_id=s3_input.id,
                input_path=settings.s3_input_path,
                codec_config_id=config.id,
            )
            for config in codec_configs
        ]

        muxings = [
            client.create_fmp4_muxing(
                encoding_id=encoding.id,
                stream_id=stream.id,
                segment_length=settings.segment_length,
            )
            for stream in streams
        ]

        output_paths = [_video_output_path(r, len(renditions)) for r in renditions] + ["audio"]
        drms = [
            client.create_cenc_drm(
                encoding_id=encoding.id,
                muxing_id=muxing.id,
                output_id=output.id,
                output_path=settings.build_absolute_path(relative_path),
                content_key=content_key,
                widevine_pssh=settings.cenc_widevine_pssh,
                playready_la_url=settings.cenc_playready_la_url,
            )
            for muxing, relative_path in zip(muxings, output_paths)
        ]

        manifest_path = settings.build_absolute_path("/")
        dash_manifest = client.create_dash_manifest(
            encoding_id=encoding.id,
            output_id=output.id,
            output_path=manifest_path,
            manifest_name=DASH_MANIFEST_NAME,
        )
        self._record(ResourceKind.DASH_MANIFEST, dash_manifest.id, DASH_MANIFEST_NAME)

        hls_manifest = client.create_hls_manifest(
            encoding_id=encoding.id,
            output_id=output.id,
            output_path=manifest_path,
            manifest_name=HLS_MANIFEST_NAME,
        )
        self._record(ResourceKind.HLS_MANIFEST, hls_manifest.id, HLS_MANIFEST_NAME)

        start_request = client.build_start_request(
            dash_manifest_ids=[dash_manifest.id],
            hls_manifest_ids=[hls_manifest.id],
        )

        logger.info(
            "Encoding configured",
            extra={
                "encoding_id": encoding.id,
                "stream_count": len(streams),
                "muxing_count": len(muxings),
                "drm_count": len(drms),
                "fairplay": content_key.has_fairplay,
            },
        )

        return EncodingPlan(
            encoding_id=encoding.id,
            dash_manifest_id=dash_manifest.id,
            hls_manifest_id=hls_manifest.id,
            start_request=start_request,
            stream_ids=[s.id for s in streams],
            muxing_ids=[m.id for m in muxings],
            drm_ids=[d.id for d in drms],
        )

    def run(self) -> EncodingRunResult:
        """Execute the whole run.

        Returns:
            EncodingRunResult; status FINISHED after a successful start,
            CREATED when START_ENCODING is off

        Raises:
            EncodingPipelineError: Any failure, after optional teardown
        """
        started_at = datetime.now(timezone.utc)
        if self.tracker is not None:
            self.tracker.begin()

        try:
            result = self._run(started_at)
        except Exception as e:
            metrics.add_metric(name="EncodingRunsFailed", unit=MetricUnit.Count, value=1)
            if self.tracker is not None:
                self.tracker.fail(e)
            raise
        else:
            metrics.add_metric(name="EncodingRunsSucceeded", unit=MetricUnit.Count, value=1)
            if self.tracker is not None:
                self.tracker.finish(result)
            return result
        finally:
            metrics.flush_metrics()

    def _run(self, started_at: datetime) -> EncodingRunResult:
        content_key = self.resolve_content_key()

        try:
            plan = self.build(content_key)
            if self.settings.start_encoding:
                self.client.start_encoding(plan.encoding_id, plan.start_request)
                logger.info("Encoding started", extra={"encoding_id": plan.encoding_id})
        except EncodingPipelineError:
            if self.settings.cleanup_on_failure and len(self.ledger):
                logger.warning(
                    "Run failed, deleting created resources",
                    extra={"resource_count": len(self.ledger)},
                )
                self.ledger.teardown(self.client)
            raise

        if not self.settings.start_encoding:
            logger.info("Encoding built but not started", extra={"encoding_id": plan.encoding_id})
            return EncodingRunResult(
                encoding_id=plan.encoding_id,
                status=EncodingStatus.CREATED,
                started=False,
                manifest_ids=plan.manifest_ids,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )

        poller = EncodingStatusPoller(
            get_status=self.client.get_status,
            interval=self.settings.poll_interval_seconds,
            max_wait=self.settings.max_wait,
            sleep=self._sleep,
            clock=self._clock,
            on_status=self.tracker.observe if self.tracker is not None else None,
        )
        poller.wait(plan.encoding_id)
        logger.info("Encoding finished successfully", extra={"encoding_id": plan.encoding_id})

        if self.settings.verify_outputs:
            verify_outputs(
                s3_client=self._s3_client_factory(),
                bucket=self.settings.s3_bucket_name,
                output_path=self.settings.build_absolute_path("/"),
                manifest_names=[DASH_MANIFEST_NAME, HLS_MANIFEST_NAME],
            )

        return EncodingRunResult(
            encoding_id=plan.encoding_id,
            status=EncodingStatus.FINISHED,
            manifest_ids=plan.manifest_ids,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

    def _record(self, kind: ResourceKind, resource_id: str, name: str) -> None:
        self.ledger.record(kind, resource_id, name)
        metrics.add_metric(name="ResourcesCreated", unit=MetricUnit.Count, value=1)
        logger.info(
            "Created resource",
            extra={"kind": kind.value, "resource_id": resource_id, "resource_name": name},
        )


def _video_output_path(rendition: Any, rendition_count: int) -> str:
    """Output folder for a video rung; one rung keeps the plain 'video' folder."""
    if rendition_count == 1:
        return "video"
    return f"video/{rendition.width}_{rendition.bitrate}"
