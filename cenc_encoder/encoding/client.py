"""Encoding service client.

Thin wrapper over the Bitmovin API SDK. Each method builds one SDK model,
issues one create call and returns the created resource. All calls go
through ``call_with_retry`` so transient failures are retried with backoff
and every other SDK error surfaces as ``RemoteCallError``.
"""

import time
from typing import Any, Callable

import requests
from aws_lambda_powertools import Logger
from bitmovin_api_sdk import (
    AacAudioConfiguration,
    AclEntry,
    AclPermission,
    BitmovinApi,
    BitmovinApiLogger,
    BitmovinError,
    CencDrm,
    CencFairPlay,
    CencPlayReady,
    CencWidevine,
    CloudRegion,
    DashManifestDefault,
    DashManifestDefaultVersion,
    Encoding,
    EncodingOutput,
    Fmp4Muxing,
    H264VideoConfiguration,
    HlsManifestDefault,
    HlsManifestDefaultVersion,
    ManifestGenerator,
    ManifestResource,
    MuxingStream,
    PresetConfiguration,
    S3Input,
    S3Output,
    StartEncodingRequest,
    Stream,
    StreamInput,
    StreamSelectionMode,
)

from ..shared.config import Settings
from ..shared.exceptions import RemoteCallError, RetryableError
from ..shared.models import AudioRendition, ContentKey, VideoRendition
from ..shared.retry import retry_with_backoff

logger = Logger(service="encoding-client")

# HTTP status codes that indicate transient failures
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Transport failures the SDK wraps in BitmovinError.cause
TRANSIENT_TRANSPORT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


def is_retryable_error(error: Exception) -> bool:
    """Check if an encoding service error is transient.

    The SDK raises ``BitmovinError`` for every failure. HTTP errors carry a
    status code; connection failures and timeouts carry no status code and
    keep the underlying ``requests`` exception in ``cause``.

    Args:
        error: Exception raised by the SDK

    Returns:
        True for throttling, 5xx responses, connection failures and timeouts
    """
    if isinstance(error, BitmovinError):
        if isinstance(error.cause, TRANSIENT_TRANSPORT_ERRORS):
            return True
        return error.http_status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, (ConnectionError, TimeoutError))


def describe_sdk_error(error: Exception) -> str:
    """Summarize an SDK error without the request body.

    ``str(BitmovinError)`` includes the request payload, which carries
    storage credentials and DRM keys.
    """
    if isinstance(error, BitmovinError):
        return error.short_message or type(error.cause).__name__
    return str(error)


def build_encoding_output(output_id: str, output_path: str) -> EncodingOutput:
    """Build an output reference with public read permission.

    Args:
        output_id: ID of the created output resource
        output_path: Absolute path inside the output bucket
    """
    acl_entry = AclEntry(permission=AclPermission.PUBLIC_READ)
    return EncodingOutput(
        output_path=output_path,
        output_id=output_id,
        acl=[acl_entry],
    )


def build_manifest_resource(manifest_id: str) -> ManifestResource:
    return ManifestResource(manifest_id=manifest_id)


class EncodingServiceClient:
    """Creates and controls resources on the remote encoding service."""

    def __init__(
        self,
        api: Any,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            api: BitmovinApi instance (or a stand-in with the same shape)
            max_retries: Retry attempts for transient failures
            retry_delay: Initial backoff delay in seconds
            sleep: Sleep function used between retries
        """
        self.api = api
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def call_with_retry(self, operation: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Invoke an SDK call, retrying transient failures.

        Args:
            operation: Operation name for logs and errors
            func: SDK method to call
            **kwargs: Keyword arguments for the SDK method

        Returns:
            Whatever the SDK call returns

        Raises:
            RetryableError: If a transient failure persisted through all retries
            RemoteCallError: For any other SDK error
        """
        logger.debug("Calling encoding service", extra={"operation": operation})
        try:
            return retry_with_backoff(
                lambda: func(**kwargs),
                is_retryable=is_retryable_error,
                operation=operation,
                max_retries=self.max_retries,
                base_delay=self.retry_delay,
                sleep=self._sleep,
            )
        except RetryableError as e:
            if e.original_error is not None:
                e.details["original_error"] = describe_sdk_error(e.original_error)
            raise
        except BitmovinError as e:
            raise RemoteCallError(
                f"{operation} failed: {describe_sdk_error(e)}",
                operation=operation,
                details={
                    "http_status_code": e.http_status_code,
                    "error_type": type(e).__name__,
                },
            ) from e

    # =========================================================================
    # Resource creation
    # =========================================================================

    def create_encoding(self, name: str, description: str, cloud_region: str = "AUTO") -> Encoding:
        encoding = Encoding(
            name=name,
            description=description,
            cloud_region=CloudRegion(cloud_region),
        )
        return self.call_with_retry(
            "create_encoding", self.api.encoding.encodings.create, encoding=encoding
        )

    def create_s3_input(
        self, name: str, bucket_name: str, access_key: str, secret_key: str
    ) -> S3Input:
        s3_input = S3Input(
            name=name,
            bucket_name=bucket_name,
            access_key=access_key,
            secret_key=secret_key,
        )
        return self.call_with_retry(
            "create_s3_input", self.api.encoding.inputs.s3.create, s3_input=s3_input
        )

    def create_s3_output(
        self, name: str, bucket_name: str, access_key: str, secret_key: str
    ) -> S3Output:
        s3_output = S3Output(
            name=name,
            bucket_name=bucket_name,
            access_key=access_key,
            secret_key=secret_key,
        )
        return self.call_with_retry(
            "create_s3_output", self.api.encoding.outputs.s3.create, s3_output=s3_output
        )

    def create_h264_video_config(self, rendition: VideoRendition) -> H264VideoConfiguration:
        """Create an H.264 configuration with the VoD standard preset.

        Height is left unset so the service keeps the input aspect ratio.
        """
        config = H264VideoConfiguration(
            name=rendition.name,
            bitrate=rendition.bitrate,
            width=rendition.width,
            preset_configuration=PresetConfiguration.VOD_STANDARD,
        )
        return self.call_with_retry(
            "create_h264_video_config",
            self.api.encoding.configurations.video.h264.create,
            h264_video_configuration=config,
        )

    def create_aac_audio_config(self, rendition: AudioRendition) -> AacAudioConfiguration:
        config = AacAudioConfiguration(name=rendition.name, bitrate=rendition.bitrate)
        return self.call_with_retry(
            "create_aac_audio_config",
            self.api.encoding.configurations.audio.aac.create,
            aac_audio_configuration=config,
        )

    def create_stream(
        self, encoding_id: str, input_id: str, input_path: str, codec_config_id: str
    ) -> Stream:
        """Bind an input file to a codec configuration within an encoding."""
        stream_input = StreamInput(
            input_id=input_id,
            input_path=input_path,
            selection_mode=StreamSelectionMode.AUTO,
        )
        stream = Stream(input_streams=[stream_input], codec_config_id=codec_config_id)
        return self.call_with_retry(
            "create_stream",
            self.api.encoding.encodings.streams.create,
            encoding_id=encoding_id,
            stream=stream,
        )

    def create_fmp4_muxing(
        self, encoding_id: str, stream_id: str, segment_length: float
    ) -> Fmp4Muxing:
        """Create an fMP4 muxing without outputs.

        Unencrypted segments are never written; the DRM attachment carries
        the output instead.
        """
        muxing = Fmp4Muxing(
            streams=[MuxingStream(stream_id=stream_id)],
            segment_length=segment_length,
        )
        return self.call_with_retry(
            "create_fmp4_muxing",
            self.api.encoding.encodings.muxings.fmp4.create,
            encoding_id=encoding_id,
            fmp4_muxing=muxing,
        )

    def create_cenc_drm(
        self,
        encoding_id: str,
        muxing_id: str,
        output_id: str,
        output_path: str,
        content_key: ContentKey,
        widevine_pssh: str | None = None,
        playready_la_url: str | None = None,
    ) -> CencDrm:
        """Attach CENC encryption to a muxing.

        Widevine, PlayReady and FairPlay sections are included when the
        corresponding key-system data is available.
        """
        drm = CencDrm(
            outputs=[build_encoding_output(output_id, output_path)],
            key=content_key.key,
            kid=content_key.kid,
        )
        if widevine_pssh:
            drm.widevine = CencWidevine(pssh=widevine_pssh)
        if playready_la_url:
            drm.play_ready = CencPlayReady(la_url=playready_la_url)
        if content_key.has_fairplay:
            drm.fair_play = CencFairPlay(iv=content_key.iv, uri=content_key.uri)

        return self.call_with_retry(
            "create_cenc_drm",
            self.api.encoding.encodings.muxings.fmp4.drm.cenc.create,
            encoding_id=encoding_id,
            muxing_id=muxing_id,
            cenc_drm=drm,
        )

    def create_dash_manifest(
        self, encoding_id: str, output_id: str, output_path: str, manifest_name: str
    ) -> DashManifestDefault:
        manifest = DashManifestDefault(
            encoding_id=encoding_id,
            manifest_name=manifest_name,
            version=DashManifestDefaultVersion.V1,
            outputs=[build_encoding_output(output_id, output_path)],
        )
        return self.call_with_retry(
            "create_dash_manifest",
            self.api.encoding.manifests.dash.default.create,
            dash_manifest_default=manifest,
        )

    def create_hls_manifest(
        self, encoding_id: str, output_id: str, output_path: str, manifest_name: str
    ) -> HlsManifestDefault:
        manifest = HlsManifestDefault(
            encoding_id=encoding_id,
            outputs=[build_encoding_output(output_id, output_path)],
            name=manifest_name,
            manifest_name=manifest_name,
            version=HlsManifestDefaultVersion.V1,
        )
        return self.call_with_retry(
            "create_hls_manifest",
            self.api.encoding.manifests.hls.default.create,
            hls_manifest_default=manifest,
        )

    # =========================================================================
    # Job control
    # =========================================================================

    @staticmethod
    def build_start_request(
        dash_manifest_ids: list[str], hls_manifest_ids: list[str]
    ) -> StartEncodingRequest:
        return StartEncodingRequest(
            manifest_generator=ManifestGenerator.V2,
            vod_dash_manifests=[build_manifest_resource(m) for m in dash_manifest_ids],
            vod_hls_manifests=[build_manifest_resource(m) for m in hls_manifest_ids],
        )

    def start_encoding(self, encoding_id: str, start_request: StartEncodingRequest) -> Any:
        return self.call_with_retry(
            "start_encoding",
            self.api.encoding.encodings.start,
            encoding_id=encoding_id,
            start_encoding_request=start_request,
        )

    def get_status(self, encoding_id: str) -> Any:
        """Get the status task (status, progress, messages) of an encoding."""
        return self.call_with_retry(
            "get_status", self.api.encoding.encodings.status, encoding_id=encoding_id
        )

    # =========================================================================
    # Teardown
    # =========================================================================

    def delete_encoding(self, encoding_id: str) -> Any:
        """Delete an encoding together with its streams, muxings and DRM."""
        return self.call_with_retry(
            "delete_encoding", self.api.encoding.encodings.delete, encoding_id=encoding_id
        )

    def delete_input(self, input_id: str) -> Any:
        return self.call_with_retry(
            "delete_input", self.api.encoding.inputs.s3.delete, input_id=input_id
        )

    def delete_output(self, output_id: str) -> Any:
        return self.call_with_retry(
            "delete_output", self.api.encoding.outputs.s3.delete, output_id=output_id
        )

    def delete_video_config(self, configuration_id: str) -> Any:
        return self.call_with_retry(
            "delete_video_config",
            self.api.encoding.configurations.video.h264.delete,
            configuration_id=configuration_id,
        )

    def delete_audio_config(self, configuration_id: str) -> Any:
        return self.call_with_retry(
            "delete_audio_config",
            self.api.encoding.configurations.audio.aac.delete,
            configuration_id=configuration_id,
        )

    def delete_dash_manifest(self, manifest_id: str) -> Any:
        return self.call_with_retry(
            "delete_dash_manifest", self.api.encoding.manifests.dash.delete, manifest_id=manifest_id
        )

    def delete_hls_manifest(self, manifest_id: str) -> Any:
        return self.call_with_retry(
            "delete_hls_manifest", self.api.encoding.manifests.hls.delete, manifest_id=manifest_id
        )


def create_encoding_client(settings: Settings) -> EncodingServiceClient:
    """Build a client authenticated with the configured API key."""
    api_kwargs: dict[str, Any] = {"api_key": settings.bitmovin_api_key}
    # The SDK logger prints request bodies, which include storage and DRM keys
    if settings.log_level == "DEBUG" and not settings.is_production:
        api_kwargs["logger"] = BitmovinApiLogger()
    if settings.bitmovin_tenant_org_id:
        api_kwargs["tenant_org_id"] = settings.bitmovin_tenant_org_id

    return EncodingServiceClient(
        api=BitmovinApi(**api_kwargs),
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
    )
