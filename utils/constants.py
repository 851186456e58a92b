"""
ClipScript 공통 상수 모듈

프로젝트 전체에서 반복 사용되는 상수를 단일 소스로 관리합니다.
"""
import os

# ─── Backend URL ───────────────────────────────────────────
BACKEND_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
if BACKEND_BASE_URL and not BACKEND_BASE_URL.startswith("http"):
    BACKEND_BASE_URL = f"https://{BACKEND_BASE_URL}"

# ─── 렌더 출력 ─────────────────────────────────────────────
OUTPUT_FORMAT = "mp4"
OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920

# ─── 음성 ─────────────────────────────────────────────────
DEFAULT_VOICE_ID = os.getenv("DEFAULT_VOICE_ID", "NFcw9p0jKu3zbmXieNPE")
VOICE_MODEL_ID = "eleven_multilingual_v2"

# ─── 스크립트 길이 ─────────────────────────────────────────
SCRIPT_MIN_SECONDS = 30
SCRIPT_MAX_SECONDS = 60
# 채팅 초안의 예상 길이 계산용 (단어당 초)
DRAFT_SECONDS_PER_WORD = 0.9
DRAFT_TITLE_WORDS = 6
CHAT_MESSAGE_MAX_LENGTH = 2000

# ─── 언어 ─────────────────────────────────────────────────
LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
}

# ─── 활동 로그 액션 ────────────────────────────────────────
ACTION_RENDER_CALLBACK = "creatomate_webhook"
ACTION_GENERATION_CLEANUP = "video_generation_cleanup"
ACTION_STUCK_REQUEST = "video_request_interrupted"
