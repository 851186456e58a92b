"""
ClipScript Agents Package

에이전트 기반 아키텍처:
- ScriptAgent: 스크립트 생성 / 리뷰 / 프롬프트 보강
- ScenePlanner: 스크립트 → 씬 플랜 (클립 배정)
- SceneRepairLoop: 씬 길이 교정 + 클립 URL 정규화
- TemplateBuilder: 씬 플랜 → Creatomate 템플릿
- GuardAgent: 채팅 메시지 안전성 검사
- ScriptChatService: 대화형 스크립트 초안 작성
"""

from .script_agent import ScriptAgent
from .scene_planner import ScenePlanner
from .scene_repair import SceneRepairLoop, RepairState
from .template_builder import TemplateBuilder
from .guard_agent import GuardAgent
from .chat_agent import ScriptChatService

__all__ = [
    "ScriptAgent",
    "ScenePlanner",
    "SceneRepairLoop",
    "RepairState",
    "TemplateBuilder",
    "GuardAgent",
    "ScriptChatService",
]
