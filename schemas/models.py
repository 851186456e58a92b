"""
ClipScript Data Models

공통 데이터 모델 정의 (Pydantic 기반)
- GenerationPayload: 영상 생성 요청 본문 (클립, 에디토리얼 프로필, 자막 설정)
- ScenePlan / Scene: LLM 씬 플랜
- RenderTemplate: Creatomate 렌더 템플릿
- GenerationRequest: 영상 생성 요청 레코드 (status + render_status)
- RenderCallback: Creatomate 웹훅 본문
- ScriptDraft: 채팅 기반 스크립트 초안
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal, Union, Annotated

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Validation results
# ============================================================================

class FieldError(BaseModel):
    """요청 필드 단위 검증 오류"""
    field: str
    code: str
    message: str
    value: Any = None


class ValidationOutcome(BaseModel):
    """검증 결과: 성공이면 payload, 실패면 전체 오류 목록 + 첫 번째 오류"""
    is_valid: bool
    errors: List[FieldError] = Field(default_factory=list)
    first_error: Optional[FieldError] = None
    payload: Optional["GenerationPayload"] = None


# ============================================================================
# Generation payload
# ============================================================================

class SourceClip(BaseModel):
    """사용자가 업로드한 원본 클립"""
    model_config = {"populate_by_name": True}

    id: str
    title: str
    description: str = ""
    upload_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None
    duration_seconds: Optional[float] = None
    analysis_data: Optional[Dict[str, Any]] = None


class EditorialProfile(BaseModel):
    """브랜드 톤/페르소나"""
    persona_description: str
    tone_of_voice: str
    audience: str
    style_notes: str
    examples: Optional[str] = None


class TranscriptEffect(str, Enum):
    KARAOKE = "karaoke"
    HIGHLIGHT = "highlight"
    FADE = "fade"
    BOUNCE = "bounce"
    SLIDE = "slide"
    ENLARGE = "enlarge"


class CaptionConfig(BaseModel):
    """자막 설정"""
    model_config = {"populate_by_name": True}

    enabled: bool = True
    placement: Literal["top", "center", "bottom"] = "bottom"
    preset_id: Optional[str] = Field(default=None, alias="presetId")
    transcript_color: Optional[str] = Field(
        default=None, alias="transcriptColor", pattern=r"^#[0-9A-Fa-f]{6}$"
    )
    transcript_effect: Optional[TranscriptEffect] = Field(default=None, alias="transcriptEffect")


class GenerationPayload(BaseModel):
    """검증을 통과한 영상 생성 요청"""
    model_config = {"populate_by_name": True}

    prompt: str
    system_prompt: str = Field(default="", alias="systemPrompt")
    selected_videos: List[SourceClip] = Field(alias="selectedVideos")
    editorial_profile: Optional[EditorialProfile] = Field(default=None, alias="editorialProfile")
    voice_id: Optional[str] = Field(default=None, alias="voiceId")
    caption_config: Optional[CaptionConfig] = Field(default=None, alias="captionConfig")
    output_language: str = Field(alias="outputLanguage")


# ============================================================================
# Scene plan
# ============================================================================

class VideoAsset(BaseModel):
    """씬에 배정된 클립 참조"""
    id: str
    url: str
    title: str = ""
    trim_start: Optional[str] = None
    trim_duration: Optional[str] = None

    @field_validator("trim_start", "trim_duration", mode="before")
    @classmethod
    def _numbers_to_str(cls, v):
        # LLM이 숫자로 반환하는 경우가 있음
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class Scene(BaseModel):
    scene_number: int
    script_text: str
    video_asset: VideoAsset
    reasoning: str = ""


class ScenePlan(BaseModel):
    scenes: List[Scene] = Field(min_length=1)


class DurationViolation(BaseModel):
    """나레이션 예상 길이가 클립 길이를 초과한 씬"""
    scene_index: int
    estimated_duration: float
    clip_duration: float
    overage_seconds: float


# ============================================================================
# Render template (Creatomate)
# ============================================================================

class _ElementBase(BaseModel):
    # 자막 프리셋 등 렌더러 고유 속성을 그대로 통과시킴
    model_config = {"extra": "allow"}

    id: Optional[str] = None
    name: Optional[str] = None
    track: Optional[int] = None
    time: Optional[float] = None
    duration: Optional[float] = None


class VideoElement(_ElementBase):
    type: Literal["video"] = "video"
    source: str
    fit: str = "cover"
    volume: str = "0%"
    trim_start: Optional[float] = None
    trim_duration: Optional[float] = None


class AudioElement(_ElementBase):
    type: Literal["audio"] = "audio"
    source: str
    provider: Optional[str] = None


class TextElement(_ElementBase):
    type: Literal["text"] = "text"
    text: Optional[str] = None
    transcript_source: Optional[str] = None


class CompositionElement(_ElementBase):
    type: Literal["composition"] = "composition"
    elements: List["TemplateElement"] = Field(default_factory=list)


TemplateElement = Annotated[
    Union[VideoElement, AudioElement, TextElement, CompositionElement],
    Field(discriminator="type"),
]

CompositionElement.model_rebuild()


class RenderTemplate(BaseModel):
    output_format: str = "mp4"
    width: int = 1080
    height: int = 1920
    elements: List[TemplateElement] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        """Creatomate에 전송할 dict 형태"""
        return self.model_dump(exclude_none=True)


# ============================================================================
# Generation request records
# ============================================================================

class RequestStatus(str, Enum):
    """요청 처리 상태. COMPLETED는 렌더 제출 완료를 의미"""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RenderStatus(str, Enum):
    """렌더러 측 상태 (status=completed 이후에만 의미 있음)"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ACTIVE_STATUSES = (RequestStatus.QUEUED, RequestStatus.PROCESSING)


class GenerationResultData(BaseModel):
    script_id: str
    render_id: str
    script: str
    template: Dict[str, Any]


class GenerationRequest(BaseModel):
    """video_requests 테이블의 한 행"""
    id: str
    user_id: str
    status: RequestStatus
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    processing_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    render_id: Optional[str] = None
    render_status: Optional[RenderStatus] = None
    render_url: Optional[str] = None
    render_error: Optional[str] = None
    duration_seconds: Optional[float] = None


class GenerationAck(BaseModel):
    """생성 요청 접수 응답"""
    model_config = {"populate_by_name": True}

    request_id: str = Field(alias="requestId")
    status: RequestStatus = RequestStatus.QUEUED
    estimated_completion_time: datetime = Field(alias="estimatedCompletionTime")


# ============================================================================
# Webhook
# ============================================================================

class RenderMetadata(BaseModel):
    """렌더 제출 시 첨부하는 상관관계 메타데이터"""
    model_config = {"populate_by_name": True}

    request_id: str = Field(alias="requestId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    script_id: Optional[str] = Field(default=None, alias="scriptId")
    prompt: Optional[str] = None
    timestamp: Optional[str] = None


class RenderCallback(BaseModel):
    """Creatomate 웹훅 본문"""
    id: str
    status: str
    url: Optional[str] = None
    error: Optional[str] = None
    duration: Optional[float] = None
    metadata: Optional[Union[str, Dict[str, Any]]] = None


# ============================================================================
# Chat / script drafts
# ============================================================================

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: Optional[str] = None


class ScriptChatRequest(BaseModel):
    model_config = {"populate_by_name": True}

    message: str = Field(min_length=1)
    script_id: Optional[str] = Field(default=None, alias="scriptId")
    current_script: Optional[str] = Field(default=None, alias="currentScript")
    output_language: str = Field(default="en", alias="outputLanguage")
    editorial_profile_id: Optional[str] = Field(default=None, alias="editorialProfileId")


class ScriptDraft(BaseModel):
    id: str
    user_id: str
    title: str = "Untitled Script"
    current_script: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    status: Literal["draft", "validated", "used"] = "draft"
    output_language: str = "en"
    editorial_profile_id: Optional[str] = None
    word_count: int = 0
    estimated_duration: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScriptChatResponse(BaseModel):
    script_id: str
    message: str
    current_script: str
    script_draft: ScriptDraft


class GuardVerdict(BaseModel):
    is_safe: bool
    is_on_topic: bool
    reason: str = ""
    rephrased_query: Optional[str] = None


class PromptEnhancement(BaseModel):
    enhanced_prompt: str


class AuthUser(BaseModel):
    """Clerk 인증 후 조회한 DB 사용자"""
    id: str
    clerk_user_id: str
    email: Optional[str] = None


ValidationOutcome.model_rebuild()
