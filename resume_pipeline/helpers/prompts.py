PROFILE_PROMPT = """You are a resume parser. Extract the candidate information from the resume below.
Return ONLY valid JSON with exactly these keys:
{{
  "name": "full name of the candidate",
  "email": "email address",
  "phone": "phone number",
  "experience": "total years of experience, e.g. \\"5 years\\"",
  "skills": ["technical skills only, most relevant first"],
  "summary": "2-3 sentence professional summary"
}}

- Use an empty string or empty list when a value is not present.
- Do not add commentary before or after the JSON.

RESUME:
{resume}
"""

SKILLS_PROMPT = """List the technical skills found in the resume below, ordered from most to least important.
Return ONLY a JSON array of short strings, for example ["python", "docker", "postgresql"].

RESUME:
{resume}
"""
