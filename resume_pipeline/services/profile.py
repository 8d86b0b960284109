"""
Candidate profile extraction through the completion model.

The model's reply is decoded into either a ``ParsedProfile`` or a
``MalformedResponse``. Callers always receive a ``CandidateProfile``; any
failure degrades to the empty profile instead of raising.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Union

from resume_pipeline.helpers.prompts import PROFILE_PROMPT, SKILLS_PROMPT
from resume_pipeline.models.schemas import CandidateProfile
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)

PROFILE_TEXT_LIMIT = 4000
PROFILE_TEMPERATURE = 0.1
SKILLS_TEMPERATURE = 0.2

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


class Completer(Protocol):
    async def complete(self, prompt: str, temperature: float = None) -> str: ...


@dataclass
class ParsedProfile:
    data: Dict[str, Any]


@dataclass
class MalformedResponse:
    raw: str
    reason: str = ""


ProfileDecode = Union[ParsedProfile, MalformedResponse]


def strip_code_fences(s: str) -> str:
    s = _FENCE_OPEN.sub("", s or "")
    return _FENCE_CLOSE.sub("", s).strip()


def _load_json(s: str) -> Any:
    """json.loads, retrying on the outermost brace/bracket span when the model adds chatter."""
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        for open_ch, close_ch in (("{", "}"), ("[", "]")):
            start, end = s.find(open_ch), s.rfind(close_ch)
            if 0 <= start < end:
                try:
                    return json.loads(s[start:end + 1])
                except json.JSONDecodeError:
                    continue
        raise


def decode_profile_response(raw: str) -> ProfileDecode:
    try:
        data = _load_json(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        return MalformedResponse(raw=raw or "", reason=str(e))
    if not isinstance(data, dict):
        return MalformedResponse(raw=raw or "", reason=f"expected object, got {type(data).__name__}")
    return ParsedProfile(data=data)


def _as_text(x: Any) -> str:
    if x is None or isinstance(x, (dict, list)):
        return ""
    return str(x).strip()


def _as_skills(x: Any) -> List[str]:
    if not isinstance(x, list):
        return []
    return [s.strip() for s in x if isinstance(s, str) and s.strip()]


def profile_from_parsed(parsed: ParsedProfile) -> CandidateProfile:
    data = parsed.data
    return CandidateProfile(
        name=_as_text(data.get("name")),
        email=_as_text(data.get("email")),
        phone=_as_text(data.get("phone")),
        experience=_as_text(data.get("experience")),
        skills=_as_skills(data.get("skills")),
        summary=_as_text(data.get("summary")),
    )


async def extract_profile(
    text: str,
    completer: Completer,
    text_limit: int = PROFILE_TEXT_LIMIT,
    temperature: float = PROFILE_TEMPERATURE,
) -> CandidateProfile:
    """Ask the model for a structured profile. Never raises."""
    prompt = PROFILE_PROMPT.format(resume=(text or "")[:text_limit])
    try:
        raw = await completer.complete(prompt, temperature)
    except Exception as e:
        logger.warning(f"Profile extraction call failed, using empty profile: {e}")
        return CandidateProfile()

    decoded = decode_profile_response(raw)
    if isinstance(decoded, MalformedResponse):
        logger.warning(f"Model returned malformed profile JSON: {decoded.reason}")
        return CandidateProfile()
    return profile_from_parsed(decoded)


async def extract_skills(
    text: str,
    completer: Completer,
    text_limit: int = PROFILE_TEXT_LIMIT,
    temperature: float = SKILLS_TEMPERATURE,
) -> List[str]:
    """Skills-only extraction, used when a stored profile has none. Never raises."""
    prompt = SKILLS_PROMPT.format(resume=(text or "")[:text_limit])
    try:
        raw = await completer.complete(prompt, temperature)
        data = _load_json(strip_code_fences(raw))
    except Exception as e:
        logger.warning(f"Skill extraction failed: {e}")
        return []

    if isinstance(data, dict):
        data = data.get("skills")
    return _as_skills(data)
