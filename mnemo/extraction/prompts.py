"""Prompt templates for transcript analysis."""

EXTRACT_NAMES_PROMPT = """Analyze this conversation transcript and extract ONLY names from SELF-INTRODUCTIONS.

Transcript:
{transcript}

Return ONLY a JSON array of objects with this format:
[
  {{
    "name": "John Smith",
    "speaker": "unknown",
    "confidence": "high"
  }}
]

Rules:
- ONLY extract names when someone introduces THEMSELVES in the first person: "I'm X", "I am X", "My name is X", "Call me X"
- DO NOT extract names mentioned in the third person: "I met John", "John told me", "This is for Sarah"
- DO NOT extract names from questions: "Are you John?"
- Use "high" confidence ONLY for clear first-person self-introductions
- Use "medium" for uncertain cases
- Use "low" for very ambiguous cases
- If no self-introductions are found, return an empty array []
- Return ONLY valid JSON, no explanation or markdown"""


SUMMARIZE_PROMPT = """Summarize this conversation into key topics and points.

Transcript:
{transcript}

Return ONLY a JSON object with this format:
{{
  "mainTopics": ["topic1", "topic2"],
  "keyPoints": ["point1", "point2"],
  "summary": "Brief 1-2 sentence summary"
}}

Write ALL content in the PAST TENSE, as if recalling what was discussed.
- Good: "Discussed project timeline", "Talked about weekend plans"
- Bad: "Discussing project timeline", "Talks about weekend plans"

Focus on what would help someone remember this conversation later.
Return ONLY valid JSON, no explanation."""


MATCH_SPEAKER_PROMPT = """Based on this conversation snippet, determine if the speaker matches any of these known people:

{people}

Conversation:
{transcript}

Return ONLY the exact name if you find a match with high confidence, or "null" if there is no match.
Consider topic continuity and context. Return ONLY the name or null, no explanation."""


def format_known_people(known_people: list[dict]) -> str:
    lines = []
    for person in known_people:
        line = f"- {person['name']}"
        topics = person.get("last_topics") or []
        if topics:
            line += f" (previously talked about: {', '.join(topics)})"
        lines.append(line)
    return "\n".join(lines)
