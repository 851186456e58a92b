"""
ClipScript CLI - 오프라인 검증 도구

- validate <payload.json>: 영상 생성 요청 본문 검증
- plan-check <plan.json> <clips.json>: 씬 길이 위반 + 클립 참조 검사
- prompts [--tag TAG]: 프롬프트 뱅크 목록
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from pydantic import ValidationError

from config import get_duration_policy
from schemas import ScenePlan, SourceClip
from utils.errors import UrlRepairError
from utils.logger import set_log_level
from utils.prompt_bank import get_all_prompts, get_prompts_by_tag
from validators import UrlRepairer, find_duration_violations, format_violation_feedback, validate_request


def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def cmd_validate(args) -> int:
    outcome = validate_request(_load_json(args.payload))
    if outcome.is_valid:
        payload = outcome.payload
        print("[OK] Payload is valid")
        print(f"  - Language: {payload.output_language}")
        print(f"  - Videos: {len(payload.selected_videos)}")
        print(f"  - Captions: {'OFF' if payload.caption_config and not payload.caption_config.enabled else 'ON'}")
        return 0

    print(f"[INVALID] {len(outcome.errors)} error(s)")
    for error in outcome.errors:
        print(f"  - {error.field}: {error.code} ({error.message})")
    return 1


def cmd_plan_check(args) -> int:
    try:
        plan = ScenePlan.model_validate(_load_json(args.plan))
        clips = [SourceClip.model_validate(c) for c in _load_json(args.clips)]
    except ValidationError as e:
        print(f"[ERROR] Invalid input: {e.error_count()} schema errors")
        return 2

    policy = get_duration_policy()
    violations = find_duration_violations(
        plan, clips, policy["words_to_seconds"], policy["safety_margin"]
    )
    status = 0
    if violations:
        print(f"[VIOLATION] {len(violations)} scene(s) exceed video duration")
        print(format_violation_feedback(violations))
        status = 1
    else:
        print(f"[OK] {len(plan.scenes)} scenes fit their clips")

    repairer = UrlRepairer(clips)
    try:
        repairer.repair_plan(plan)
    except UrlRepairError as e:
        print(f"[ERROR] {e}")
        return 1
    if repairer.repairs:
        print(f"[INFO] {repairer.repairs} video reference(s) would be repaired")
    return status


def cmd_prompts(args) -> int:
    prompts = get_prompts_by_tag(args.tag) if args.tag else get_all_prompts()
    for prompt in prompts:
        print(f"{prompt['id']:<28} v{prompt.get('version', '?'):<6} {prompt.get('status', '')}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clipscript", description="ClipScript offline tools")
    parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate a video generation payload")
    p.add_argument("payload", help="Path to payload JSON")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("plan-check", help="Check a scene plan against its clips")
    p.add_argument("plan", help="Path to scene plan JSON")
    p.add_argument("clips", help="Path to clip list JSON")
    p.set_defaults(func=cmd_plan_check)

    p = sub.add_parser("prompts", help="List prompt bank entries")
    p.add_argument("--tag", default=None)
    p.set_defaults(func=cmd_prompts)
    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    set_log_level("DEBUG" if args.verbose else "WARNING")
    try:
        return args.func(args)
    except (OSError, json.JSONDecodeError) as e:
        print(f"[ERROR] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
