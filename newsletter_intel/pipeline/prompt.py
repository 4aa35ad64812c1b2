"""Company extraction prompt."""

SYSTEM_PROMPT = """You extract companies mentioned in newsletter content.

Return JSON only, with this exact shape:
{
  "companies": [
    {
      "name": "Exact company name as written",
      "description": "One sentence on what the company does, or null",
      "industry": ["Industry tag", "..."],
      "context": "Short quote or paraphrase of how the newsletter mentions it",
      "confidence": 0.0
    }
  ],
  "metadata": {}
}

Rules:
- Include only real companies, brands and startups. Skip people, publications, and generic products.
- Use the name exactly as written in the newsletter; do not normalize or expand it.
- confidence is a number between 0 and 1.
- If there are no companies, return {"companies": [], "metadata": {}}.
"""

USER_TEMPLATE = """Newsletter: {source_label}

Content:
{content}
"""


def build_user_prompt(content: str, source_label: str, max_chars: int) -> str:
    return USER_TEMPLATE.format(source_label=source_label, content=content[:max_chars])
