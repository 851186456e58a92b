"""
Clip reference repair.

LLM output sometimes returns a clip id with a stale URL, a URL with a made-up
id, or only a title. UrlRepairer reconciles every reference against the
user's known clips and rewrites it to the canonical id/url/title.
"""

import os
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from rapidfuzz import fuzz

from schemas import ScenePlan, SourceClip, VideoAsset
from utils.errors import UrlRepairError
from utils.logger import get_logger

logger = get_logger("url_repair")

# 제목 유사도 최소값 (rapidfuzz ratio, 0-100)
TITLE_MATCH_THRESHOLD = 60


def _file_name(url: str) -> str:
    try:
        return os.path.basename(urlparse(url).path).lower()
    except ValueError:
        return ""


def _normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


class UrlRepairer:
    """
    Reconcile clip references against the known clip list.

    Resolution order for one reference: exact id, exact URL, file name of the
    URL, exact title, then the closest fuzzy title/id match above
    TITLE_MATCH_THRESHOLD.
    """

    def __init__(self, clips: Iterable[SourceClip]):
        self.clips: List[SourceClip] = list(clips)
        self._by_id = {c.id: c for c in self.clips}
        self._by_url = {c.upload_url: c for c in self.clips if c.upload_url}
        self._by_file = {_file_name(c.upload_url): c for c in self.clips if c.upload_url}
        self._by_title = {_normalize(c.title): c for c in self.clips}
        self.repairs = 0

    def resolve(
        self, clip_id: Optional[str] = None, url: Optional[str] = None, title: Optional[str] = None
    ) -> Optional[SourceClip]:
        if clip_id and clip_id in self._by_id:
            return self._by_id[clip_id]
        if url:
            if url in self._by_url:
                return self._by_url[url]
            name = _file_name(url)
            if name and name in self._by_file:
                return self._by_file[name]
        if title and _normalize(title) in self._by_title:
            return self._by_title[_normalize(title)]
        return self._fuzzy_match(clip_id, title)

    def _fuzzy_match(self, clip_id: Optional[str], title: Optional[str]) -> Optional[SourceClip]:
        best, best_score = None, 0.0
        for clip in self.clips:
            score = 0.0
            if title:
                score = fuzz.ratio(_normalize(title), _normalize(clip.title))
            if clip_id:
                score = max(score, fuzz.ratio(clip_id, clip.id))
            if score > best_score:
                best, best_score = clip, score
        if best_score >= TITLE_MATCH_THRESHOLD:
            return best
        return None

    def repair_asset(self, asset: VideoAsset, scene_number: int) -> VideoAsset:
        clip = self.resolve(asset.id, asset.url, asset.title)
        if clip is None:
            raise UrlRepairError(
                f"Scene {scene_number}: video '{asset.title or asset.id}' does not match any selected video",
                context={"scene_number": scene_number, "video_id": asset.id},
            )
        if (asset.id, asset.url, asset.title) != (clip.id, clip.upload_url, clip.title):
            logger.info(
                f"Scene {scene_number}: repaired video reference {asset.id} -> {clip.id}"
            )
            self.repairs += 1
        return asset.model_copy(update={"id": clip.id, "url": clip.upload_url, "title": clip.title})

    def repair_plan(self, plan: ScenePlan) -> ScenePlan:
        """씬 플랜의 모든 클립 참조를 정규화한 새 플랜 반환"""
        scenes = []
        for scene in plan.scenes:
            _check_trim(scene.video_asset, scene.scene_number)
            asset = self.repair_asset(scene.video_asset, scene.scene_number)
            scenes.append(scene.model_copy(update={"video_asset": asset}))
        return ScenePlan(scenes=scenes)

    def repair_template(self, template: Dict[str, Any]) -> Dict[str, Any]:
        """
        템플릿의 video 요소 source 를 알려진 클립 URL 로 교정.

        Returns:
            교정된 새 템플릿 dict (입력은 변경하지 않음)
        """
        repaired = dict(template)
        repaired["elements"] = [self._repair_element(e) for e in template.get("elements", [])]
        return repaired

    def _repair_element(self, element: Dict[str, Any]) -> Dict[str, Any]:
        element = dict(element)
        if element.get("type") == "composition":
            element["elements"] = [self._repair_element(e) for e in element.get("elements", [])]
        elif element.get("type") == "video":
            source = element.get("source", "")
            if source not in self._by_url:
                clip = self.resolve(url=source, title=element.get("name"))
                if clip is None:
                    raise UrlRepairError(
                        f"Template video source '{source}' does not match any selected video",
                        context={"source": source},
                    )
                logger.info(f"Template video source repaired: {source} -> {clip.upload_url}")
                element["source"] = clip.upload_url
                self.repairs += 1
        return element


def _check_trim(asset: VideoAsset, scene_number: int):
    # trim 값은 둘 다 있을 때만 검증
    if asset.trim_start is None or asset.trim_duration is None:
        return
    try:
        start = float(asset.trim_start or 0)
        duration = float(asset.trim_duration or 0)
    except ValueError:
        start, duration = -1.0, 0.0
    if start < 0 or duration <= 0:
        raise UrlRepairError(
            f"Scene {scene_number}: invalid trim values ({asset.trim_start}, {asset.trim_duration})",
            context={"scene_number": scene_number},
        )
