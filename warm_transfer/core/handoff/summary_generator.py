"""
Briefing Summary Generator.
Produces the call summary, the spoken handoff script and the receiving
handler's opening response with an LLM.
"""

import re

import structlog

from warm_transfer.core.exceptions import GenerationError
from warm_transfer.core.handoff.collaborators import Summarizer
from warm_transfer.models import CallContext, TransferSummary
from warm_transfer.services.groq import GroqLLMService

logger = structlog.get_logger(__name__)

_BULLET = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s+(.*)$")


class LLMSummarizer(Summarizer):
    """
    Generates the warm transfer briefing.
    Every call goes to the LLM; failures surface as GenerationError.
    """

    SUMMARY_PROMPT = """You are a support agent preparing to hand a live call over to a colleague.
Generate a call summary based on the following context.

CALL DETAILS:
- Caller: {caller_name}
- Duration: {call_duration} minutes
- Issue: {customer_issue}
- Urgency: {urgency_level}
- Customer sentiment: {customer_sentiment}
- Key topics discussed: {key_topics}
- Resolution attempts: {resolution_attempts}

Write a clear, professional summary the receiving agent can use to continue the conversation seamlessly.
Include a "Key points:" section and a "Recommended actions:" section, each as a bulleted list."""

    SCRIPT_PROMPT = """You are a support agent speaking to a colleague during a warm call transfer.
Convert this call summary into a natural, conversational script that you would speak aloud.

Summary: {summary}
Key points: {key_points}
Recommended actions: {recommended_actions}
Customer context: {customer_context}

Keep it brief (30-45 seconds when spoken) and professional. Use natural speech and include only
the most critical information for a smooth handoff. Return only the words to speak."""

    OPENING_PROMPT = """You are a support agent receiving a transferred call.
Based on this summary, write your opening response to the customer.

Summary: {summary}
Key points: {key_points}
Customer context: {customer_context}

Create a warm, professional greeting that acknowledges the transfer and shows you understand
their situation. Make the customer feel heard and confident that you can help them.
Return only the words to say."""

    MAX_KEY_POINTS = 5
    MAX_RECOMMENDED_ACTIONS = 3

    def __init__(self, llm: GroqLLMService | None = None) -> None:
        self.llm = llm or GroqLLMService()

    async def generate_summary(self, context: CallContext) -> TransferSummary:
        """
        Generate the structured call summary.

        Args:
            context: Call snapshot captured when the transfer started

        Returns:
            TransferSummary with key points and recommended actions

        Raises:
            GenerationError: the LLM call failed or returned nothing
        """
        prompt = self.SUMMARY_PROMPT.format(
            caller_name=context.caller_name,
            call_duration=context.call_duration,
            customer_issue=context.customer_issue or "Not specified",
            urgency_level=context.urgency_level.value,
            customer_sentiment=context.customer_sentiment.value,
            key_topics=self._join(context.key_topics),
            resolution_attempts=self._join(context.resolution_attempts),
        )

        text = await self._generate(
            prompt,
            temperature=0.3,
            max_tokens=500,
            failure="Failed to generate call summary",
            call_id=context.call_id,
        )

        return TransferSummary(
            summary=text,
            key_points=self._extract_section(
                text, r"key\s+points?", self.MAX_KEY_POINTS
            ),
            recommended_actions=self._extract_section(
                text, r"recommended\s+(?:next\s+)?actions?", self.MAX_RECOMMENDED_ACTIONS
            ),
            customer_context=self.build_customer_context(context),
        )

    async def generate_script(self, summary: TransferSummary) -> str:
        """Generate the script spoken to the receiving handler."""
        prompt = self.SCRIPT_PROMPT.format(
            summary=summary.summary,
            key_points=self._join(summary.key_points),
            recommended_actions=self._join(summary.recommended_actions),
            customer_context=summary.customer_context,
        )
        return await self._generate(
            prompt,
            temperature=0.4,
            max_tokens=200,
            failure="Failed to generate transfer script",
        )

    async def generate_opening(self, summary: TransferSummary) -> str:
        """Generate the receiving handler's opening line."""
        prompt = self.OPENING_PROMPT.format(
            summary=summary.summary,
            key_points=self._join(summary.key_points),
            customer_context=summary.customer_context,
        )
        return await self._generate(
            prompt,
            temperature=0.5,
            max_tokens=150,
            failure="Failed to generate opening response",
        )

    @staticmethod
    def build_customer_context(context: CallContext) -> str:
        """One-paragraph description of the caller built from the context."""
        issue = context.customer_issue or "an unspecified issue"
        return (
            f"{context.caller_name} has been on the call for {context.call_duration} minutes "
            f"regarding {issue}. Customer sentiment is {context.customer_sentiment.value} "
            f"with {context.urgency_level.value} urgency."
        )

    async def _generate(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        failure: str,
        **log_context
    ) -> str:
        try:
            response = await self.llm.complete(
                prompt,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            logger.error("briefing_generation_failed", reason=failure, error=str(e), **log_context)
            raise GenerationError(failure) from e

        if not response.text:
            logger.error("briefing_generation_empty", reason=failure, **log_context)
            raise GenerationError(f"{failure}: empty response")

        return response.text

    @staticmethod
    def _extract_section(text: str, heading: str, limit: int) -> tuple[str, ...]:
        """Collect the bullet items listed under a heading such as 'Key points:'."""
        heading_re = re.compile(rf"^{heading}\s*(?::\s*(.*))?$", re.IGNORECASE)
        items: list[str] = []
        in_section = False

        for line in text.splitlines():
            if not in_section:
                match = heading_re.match(line.strip().strip("*#").strip())
                if match:
                    in_section = True
                    inline = (match.group(1) or "").strip("*: ").strip()
                    if inline:
                        items.append(inline)
                continue

            if not line.strip():
                if items:
                    break
                continue

            bullet = _BULLET.match(line)
            if not bullet:
                break
            item = bullet.group(1).strip().strip("*").strip()
            if item:
                items.append(item)

        return tuple(items[:limit])

    @staticmethod
    def _join(values: tuple[str, ...]) -> str:
        return ", ".join(values) if values else "None"
