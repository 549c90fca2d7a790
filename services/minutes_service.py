"""MinutesService for turning meeting transcripts into structured minutes.

The model is asked for a bare JSON object with a fixed schema. Its output is
parsed tolerantly: code fences are stripped, missing fields get defaults and
malformed entries are dropped. If the output is not a JSON object at all, a
minimal document embedding the raw response is returned instead of failing,
so a run that reached the model always yields minutes.
"""
import json
import logging
import math
import os
from typing import Any, List, Optional, Tuple, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from models.minutes_models import (
    ActionItem,
    ChatMessage,
    MinutesDocument,
    MinutesFormat,
    MinutesGenerationOptions,
    PriorityEnum,
)
from utils.errors import GenerationError
from utils.text_utils import extract_participants

logger = logging.getLogger(__name__)

# ~3750 tokens of transcript
MAX_TRANSCRIPT_CHARS = 15000
TRUNCATION_MARKER = "[Transcript truncated due to length limits]"

UNTITLED_MEETING = "Untitled meeting"
UNPARSEABLE_TITLE = "Minutes could not be processed"

LANGUAGE_NAMES = {
    "es": "Spanish",
    "en": "English",
    "pt": "Portuguese",
    "fr": "French",
    "de": "German",
    "it": "Italian",
}

FORMAT_INSTRUCTIONS = {
    MinutesFormat.detailed: (
        "Write detailed minutes: a summary of 2-3 paragraphs and every key point, "
        "decision and action item that was discussed."
    ),
    MinutesFormat.summary: (
        "Write concise minutes: a one-paragraph summary and only the most important "
        "key points, decisions and action items."
    ),
    MinutesFormat.executive: (
        "Write executive minutes for leadership: a summary of at most five sentences "
        "focused on outcomes, decisions and owners; keep key points to a minimum."
    ),
}

OpenAIClient = Union[AsyncOpenAI, AsyncAzureOpenAI]


def build_openai_client() -> Tuple[OpenAIClient, str]:
    """
    Create the chat-completions client and resolve the model/deployment name.

    Azure OpenAI is used when AZURE_OPENAI_ENDPOINT is set, otherwise the
    public OpenAI API.

    Raises:
        ValueError: If neither backend is configured
    """
    azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    if azure_endpoint:
        api_key = os.getenv("AZURE_OPENAI_API_KEY")
        deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
        if not api_key or not deployment:
            raise ValueError(
                "AZURE_OPENAI_API_KEY and AZURE_OPENAI_DEPLOYMENT_NAME are required "
                "when AZURE_OPENAI_ENDPOINT is set"
            )
        client = AsyncAzureOpenAI(
            azure_endpoint=azure_endpoint,
            api_key=api_key,
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-06-01"),
        )
        return client, deployment

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY environment variable is required")
    return AsyncOpenAI(api_key=api_key), os.getenv("OPENAI_MODEL", "gpt-4o")


class MinutesService:
    """Generates meeting minutes and short summaries with a chat-completions model."""

    def __init__(self, client: Optional[OpenAIClient] = None, model: Optional[str] = None):
        """
        Args:
            client: Pre-built client (tests pass a mock); built from env when omitted
            model: Model or Azure deployment name; resolved from env when omitted
        """
        if client is None:
            client, default_model = build_openai_client()
            model = model or default_model
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o")
        logger.info(f"MinutesService initialized with model: {self.model}")

    async def generate_minutes(
        self,
        transcript: str,
        meeting_id: str,
        options: Optional[MinutesGenerationOptions] = None,
    ) -> MinutesDocument:
        """Generate structured minutes from a transcript.

        Args:
            transcript: Transcript text, ideally one "Speaker: text" line per utterance
            meeting_id: Meeting the minutes belong to
            options: Generation options; defaults apply to anything unspecified

        Returns:
            MinutesDocument (never None; a minimal document if the output was unusable)

        Raises:
            GenerationError: If the model call fails or returns no content
        """
        options = options or MinutesGenerationOptions()

        logger.info(
            f"Generating minutes: meeting_id={meeting_id}, transcript_length={len(transcript)}, "
            f"language={options.language}, format={options.format.value}"
        )

        messages = [
            ChatMessage(role="system", content=self._build_system_prompt(options)),
            ChatMessage(role="user", content=self._build_user_prompt(transcript)),
        ]
        content = await self._complete(messages, options.max_tokens, options.temperature)
        if not content:
            raise GenerationError("Empty response from the language model")

        minutes = self._parse_minutes_response(content, meeting_id, transcript)

        logger.info(
            f"Minutes generated: meeting_id={meeting_id}, key_points={len(minutes.key_points)}, "
            f"decisions={len(minutes.decisions)}, action_items={len(minutes.action_items)}"
        )
        return minutes

    async def generate_summary(self, text: str, max_words: int = 200) -> str:
        """
        Produce a single-paragraph summary of at most `max_words` words.

        Returns an empty string when the model returns no content.
        """
        messages = [
            ChatMessage(
                role="system",
                content=(
                    "You are an assistant that writes concise summaries. "
                    f"Write a single-paragraph summary of at most {max_words} words."
                ),
            ),
            ChatMessage(role="user", content=f"Summarize the following text:\n\n{text}"),
        ]
        content = await self._complete(messages, math.ceil(max_words * 1.5), 0.5)
        return content or ""

    async def _complete(self, messages: List[ChatMessage], max_tokens: int, temperature: float) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[m.model_dump() for m in messages],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            logger.error(f"Language model call failed: {type(e).__name__}: {e}", exc_info=True)
            raise GenerationError(
                f"Failed to generate content: {e}",
                details={"error": type(e).__name__},
            ) from e

        if not response.choices:
            raise GenerationError("No response from the language model")
        return response.choices[0].message.content or ""

    def _build_system_prompt(self, options: MinutesGenerationOptions) -> str:
        language = LANGUAGE_NAMES.get(options.language.lower(), options.language)
        timestamp_instruction = (
            "The transcript lines start with [HH:MM:SS] timestamps; cite the timestamp "
            "where each key point and decision was discussed, e.g. \"[00:12:30] ...\".\n\n"
            if options.include_timestamps
            else ""
        )

        return (
            "You are an expert assistant that writes professional, well-structured meeting minutes.\n\n"
            "Analyze the meeting transcript and produce minutes that include:\n"
            "- An executive summary of the meeting\n"
            "- The key points discussed\n"
            "- The decisions that were made\n"
            "- Action items with owners (when mentioned)\n"
            "- Next steps\n\n"
            f"{FORMAT_INSTRUCTIONS[options.format]}\n\n"
            f"{timestamp_instruction}"
            f"Write every value in {language}.\n\n"
            "IMPORTANT: Respond ONLY with a valid JSON object with exactly this structure:\n"
            "{\n"
            '  "title": "Descriptive meeting title",\n'
            '  "summary": "Executive summary",\n'
            '  "keyPoints": ["Key point 1", "Key point 2"],\n'
            '  "decisions": ["Decision 1", "Decision 2"],\n'
            '  "actionItems": [\n'
            "    {\n"
            '      "task": "Task description",\n'
            '      "assignedTo": "Person responsible (if mentioned)",\n'
            '      "priority": "high|medium|low"\n'
            "    }\n"
            "  ],\n"
            '  "nextSteps": ["Next step 1"]\n'
            "}\n\n"
            "Do not use markdown or code fences and do not add any text outside the JSON object."
        )

    def _build_user_prompt(self, transcript: str) -> str:
        prompt = "Analyze the following meeting transcript and write the minutes:\n\n"

        if len(transcript) > MAX_TRANSCRIPT_CHARS:
            logger.warning(
                f"Transcript too long, truncating: original_length={len(transcript)}, "
                f"truncated_length={MAX_TRANSCRIPT_CHARS}"
            )
            prompt += transcript[:MAX_TRANSCRIPT_CHARS]
            prompt += f"\n\n{TRUNCATION_MARKER}"
        else:
            prompt += transcript

        prompt += "\n\nReturn the minutes as the JSON object described in the instructions."
        return prompt

    def _parse_minutes_response(self, content: str, meeting_id: str, transcript: str) -> MinutesDocument:
        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse minutes response as JSON: meeting_id={meeting_id}, error={e}")
            return _unparseable_minutes(meeting_id, content)

        if not isinstance(parsed, dict):
            logger.error(
                f"Minutes response is not a JSON object: meeting_id={meeting_id}, "
                f"type={type(parsed).__name__}"
            )
            return _unparseable_minutes(meeting_id, content)

        title = parsed.get("title")
        summary = parsed.get("summary")

        return MinutesDocument(
            meeting_id=meeting_id,
            title=title.strip() if isinstance(title, str) and title.strip() else UNTITLED_MEETING,
            participants=extract_participants(transcript),
            summary=summary if isinstance(summary, str) else "",
            key_points=_string_list(parsed.get("keyPoints")),
            decisions=_string_list(parsed.get("decisions")),
            action_items=_action_items(parsed.get("actionItems")),
            next_steps=_string_list(parsed.get("nextSteps")),
        )


def strip_code_fences(content: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence, if present."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[:-len("```")]
    return text.strip()


def _unparseable_minutes(meeting_id: str, content: str) -> MinutesDocument:
    return MinutesDocument(
        meeting_id=meeting_id,
        title=UNPARSEABLE_TITLE,
        summary=f"The minutes could not be generated automatically. Model response: {content}",
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _action_items(value: Any) -> List[ActionItem]:
    if not isinstance(value, list):
        return []

    items = []
    for entry in value:
        if isinstance(entry, str):
            if entry.strip():
                items.append(ActionItem(task=entry.strip()))
            continue
        if not isinstance(entry, dict):
            continue
        task = entry.get("task")
        if not isinstance(task, str) or not task.strip():
            continue
        items.append(
            ActionItem(
                task=task.strip(),
                assigned_to=_optional_str(entry.get("assignedTo")),
                due_date=_optional_str(entry.get("dueDate")),
                priority=_priority(entry.get("priority")),
            )
        )
    return items


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _priority(value: Any) -> Optional[PriorityEnum]:
    if not isinstance(value, str):
        return None
    try:
        return PriorityEnum(value.strip().lower())
    except ValueError:
        return None
