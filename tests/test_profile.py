import json

import pytest

from resume_pipeline.models.schemas import CandidateProfile
from resume_pipeline.services.profile import (
    MalformedResponse,
    ParsedProfile,
    decode_profile_response,
    extract_profile,
    extract_skills,
    strip_code_fences,
)


class StubCompleter:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, prompt, temperature=None):
        self.calls.append((prompt, temperature))
        if self.error:
            raise self.error
        return self.reply


class TestDecodeProfileResponse:

    def test_strip_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_parsed_variant(self):
        decoded = decode_profile_response('```json\n{"name": "Jane"}\n```')
        assert isinstance(decoded, ParsedProfile)
        assert decoded.data == {"name": "Jane"}

    def test_object_wrapped_in_chatter(self):
        decoded = decode_profile_response('Here you go: {"name": "Jane"} Hope this helps')
        assert isinstance(decoded, ParsedProfile)

    def test_non_json_is_malformed(self):
        assert isinstance(decode_profile_response("I could not find a resume."), MalformedResponse)

    def test_json_array_is_malformed(self):
        assert isinstance(decode_profile_response('["python"]'), MalformedResponse)


class TestExtractProfile:
    """Test cases for candidate profile extraction"""

    @pytest.mark.asyncio
    async def test_full_profile(self):
        reply = "```json\n" + json.dumps({
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": 5550100,
            "experience": "6 years",
            "skills": ["Python", "", 42, " React "],
            "summary": "Engineer.",
        }) + "\n```"
        completer = StubCompleter(reply)

        profile = await extract_profile("resume text", completer)

        assert profile.name == "Jane Doe"
        assert profile.phone == "5550100"
        assert profile.skills == ["Python", "React"]
        assert completer.calls[0][1] == 0.1

    @pytest.mark.asyncio
    async def test_malformed_reply_degrades_to_empty_profile(self):
        profile = await extract_profile("resume text", StubCompleter("Sorry, no JSON today"))

        assert profile == CandidateProfile()
        assert profile.model_dump() == {
            "name": "", "email": "", "phone": "", "experience": "", "skills": [], "summary": "",
        }

    @pytest.mark.asyncio
    async def test_service_error_degrades_to_empty_profile(self):
        profile = await extract_profile("resume text", StubCompleter(error=RuntimeError("connection refused")))
        assert profile.is_empty()

    @pytest.mark.asyncio
    async def test_skills_not_a_list_dropped(self):
        reply = json.dumps({"name": "Jane", "skills": "python, react", "summary": None})

        profile = await extract_profile("text", StubCompleter(reply))

        assert profile.skills == []
        assert profile.summary == ""
        assert profile.name == "Jane"

    @pytest.mark.asyncio
    async def test_text_truncated_in_prompt(self):
        completer = StubCompleter("{}")
        text = "a" * 5000 + "TAIL"

        await extract_profile(text, completer, text_limit=4000)

        prompt = completer.calls[0][0]
        assert "a" * 4000 in prompt
        assert "TAIL" not in prompt


class TestExtractSkills:

    @pytest.mark.asyncio
    async def test_array_reply(self):
        completer = StubCompleter('```json\n["python", "docker"]\n```')

        assert await extract_skills("text", completer) == ["python", "docker"]
        assert completer.calls[0][1] == 0.2

    @pytest.mark.asyncio
    async def test_object_reply(self):
        assert await extract_skills("text", StubCompleter('{"skills": ["go"]}')) == ["go"]

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self):
        assert await extract_skills("text", StubCompleter("nothing useful")) == []
        assert await extract_skills("text", StubCompleter(error=TimeoutError())) == []
