"""
Warisin
Program Description Assistant.

Pipeline:
    1. Accept the artisan's rough notes plus program details
    2. Build a heritage-program prompt
    3. Call LLM through the gateway
    4. On provider failure or empty output, return a templated description
"""

import logging

from warisin.ai.gateway import LLMError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant for cultural heritage artisans. You help them write "
    "engaging, professional descriptions for apprenticeship programs."
)

PROMPT_TEMPLATE = """Help me create an engaging program description for a cultural heritage training.

Program Details:
Program title: {title}
Category: {category}
Duration: {duration}
Location: {location}
Artisan input: {prompt}

Your tasks:
1. Write an engaging, easy-to-understand program description
2. Reply in the same language as the artisan input
3. Include the benefits participants will gain
4. Briefly explain the learning process
5. Keep it between 150 and 300 words
6. Use a friendly and inviting tone

Focus on cultural heritage learning and practical skill development."""

FALLBACK_TEMPLATE = """This {category} program offers participants the opportunity to learn traditional skills and techniques.

Program Overview:
{prompt}

Duration: {duration}
Location: {location}

Participants will gain hands-on experience and learn from experienced artisans in a supportive learning environment. This program aims to preserve and pass on valuable cultural knowledge to the next generation.

Benefits:
- Learn traditional techniques
- Hands-on practical experience
- Cultural knowledge preservation
- Skill development
- Certificate of completion

Join us in this enriching journey to connect with our cultural heritage and develop valuable traditional skills."""

TBD = "To be determined"


class DescriptionAssistant:
    """Drafts program descriptions for artisans."""

    TEMPERATURE = 0.7
    MAX_TOKENS = 1024

    def __init__(self, gateway=None):
        self.gateway = gateway

    @staticmethod
    def build_messages(prompt, title=None, category=None, duration=None, location=None):
        user_prompt = PROMPT_TEMPLATE.format(
            title=title or "Cultural Heritage Program",
            category=category or "Cultural Heritage",
            duration=duration or TBD,
            location=location or TBD,
            prompt=prompt.strip(),
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    @staticmethod
    def fallback_description(prompt, category=None, duration=None, location=None):
        return FALLBACK_TEMPLATE.format(
            category=category or "cultural heritage",
            prompt=prompt.strip(),
            duration=duration or TBD,
            location=location or TBD,
        )

    def generate(
        self,
        prompt: str,
        *,
        title: str | None = None,
        category: str | None = None,
        duration: str | None = None,
        location: str | None = None,
        user: str = "system",
    ) -> dict:
        """
        Draft a description.

        Returns:
            dict with keys: description, fallback, provider
        """
        if self.gateway is not None:
            messages = self.build_messages(prompt, title, category, duration, location)
            try:
                response = self.gateway.chat(
                    messages=messages,
                    purpose="program_description",
                    user=user,
                    temperature=self.TEMPERATURE,
                    max_tokens=self.MAX_TOKENS,
                )
                text = (response.get("content") or "").strip()
                if text:
                    return {
                        "description": text,
                        "fallback": False,
                        "provider": response.get("provider"),
                    }
                logger.warning("Description assistant: empty LLM output, using template")
            except LLMError as e:
                logger.warning("Description assistant: LLM failed (%s), using template", e)

        return {
            "description": self.fallback_description(prompt, category, duration, location),
            "fallback": True,
            "provider": None,
        }
