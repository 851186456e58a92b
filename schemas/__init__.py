"""
ClipScript Data Models (Pydantic Schemas)
"""

from .models import (
    FieldError,
    ValidationOutcome,
    SourceClip,
    EditorialProfile,
    TranscriptEffect,
    CaptionConfig,
    GenerationPayload,
    VideoAsset,
    Scene,
    ScenePlan,
    DurationViolation,
    VideoElement,
    AudioElement,
    TextElement,
    CompositionElement,
    RenderTemplate,
    RequestStatus,
    RenderStatus,
    ACTIVE_STATUSES,
    GenerationResultData,
    GenerationRequest,
    GenerationAck,
    RenderMetadata,
    RenderCallback,
    ChatMessage,
    ScriptChatRequest,
    ScriptDraft,
    ScriptChatResponse,
    GuardVerdict,
    PromptEnhancement,
    AuthUser,
)

__all__ = [
    "FieldError",
    "ValidationOutcome",
    "SourceClip",
    "EditorialProfile",
    "TranscriptEffect",
    "CaptionConfig",
    "GenerationPayload",
    "VideoAsset",
    "Scene",
    "ScenePlan",
    "DurationViolation",
    "VideoElement",
    "AudioElement",
    "TextElement",
    "CompositionElement",
    "RenderTemplate",
    "RequestStatus",
    "RenderStatus",
    "ACTIVE_STATUSES",
    "GenerationResultData",
    "GenerationRequest",
    "GenerationAck",
    "RenderMetadata",
    "RenderCallback",
    "ChatMessage",
    "ScriptChatRequest",
    "ScriptDraft",
    "ScriptChatResponse",
    "GuardVerdict",
    "PromptEnhancement",
    "AuthUser",
]
