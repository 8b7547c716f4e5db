from reelforge.schemas.video import (
    ComposeRequest,
    ConvertResponse,
    ErrorResponse,
    ExtractAudioRequest,
    ExtractFramesRequest,
    FramesResponse,
    MergeAudioRequest,
    MergeAudioResponse,
    MergeRequest,
    MergeResponse,
    OverlayRequest,
    ToMp4Request,
    VideoUrlResponse,
)

__all__ = [
    "ToMp4Request",
    "ExtractAudioRequest",
    "ExtractFramesRequest",
    "ComposeRequest",
    "OverlayRequest",
    "MergeRequest",
    "MergeAudioRequest",
    "VideoUrlResponse",
    "ConvertResponse",
    "FramesResponse",
    "MergeResponse",
    "MergeAudioResponse",
    "ErrorResponse",
]
