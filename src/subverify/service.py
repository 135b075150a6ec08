"""
AI services for subtitle translation, translation assessment and single-line suggestions.
"""
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple

import openai

from .logging import get_logger
from .verify import Assessment, parse_assessment


DEFAULT_MODEL = "gpt-4o-mini";
DEFAULT_SOURCE_LANGUAGE = "Auto Detect";
DEFAULT_TARGET_LANGUAGE = "English";
ROMANIZED_HINDI = "Hindi (Romanized)";

LINE_BREAK_MARKER = "<br>";
TRANSLATION_LINE = re.compile( r'^\s*\[ID:\s*(\d+)\]\s*(.*)$' );


class ServiceError( RuntimeError ):
    """Raised when a request to the AI service fails."""


def language_instruction( target_language: str ) -> str:
    """Target language line for prompts; Romanized Hindi gets an explicit script hint."""
    if target_language == ROMANIZED_HINDI:
        return "Target Language: Hindi (written in Roman script/Hinglish). Use natural conversational style.";
    return f"Target Language: {target_language}.";


def flatten_caption( text: str ) -> str:
    return text.replace( "\n", f" {LINE_BREAK_MARKER} " );


def restore_caption( text: str ) -> str:
    return re.sub( r'\s*<br\s*/?>\s*', "\n", text, flags=re.IGNORECASE ).strip();


def parse_translation_lines( response_text: str, expected_ids: Sequence[int] ) -> Dict[int, str]:
    """
    Read '[ID:n] text' lines from a translation response.

    Lines without a readable id, or with an id that was not requested, are
    ignored. The first line for an id wins.

    Args:
        response_text: Raw model output
        expected_ids: Ids sent in the request

    Returns:
        Mapping of id to translated text (empty translations left out)
    """
    expected = set( expected_ids );
    translations = {};

    for line in ( response_text or "" ).splitlines():
        match = TRANSLATION_LINE.match( line );
        if not match:
            continue;

        line_id = int( match.group( 1 ) );
        text = restore_caption( match.group( 2 ) );
        if line_id in expected and line_id not in translations and text:
            translations[line_id] = text;

    return translations;


def build_translation_prompt( lines: Sequence[Tuple[int, str]], source_language: str, target_language: str ) -> str:
    payload = "\n".join( f"[ID:{line_id}] {flatten_caption( text )}" for line_id, text in lines );

    return f"""You are an expert subtitle translator.
Source Language: {source_language}.
{language_instruction( target_language )}

Translate the following subtitle lines into the target language.

RULES:
1. Maintain the exact number of lines.
2. Do NOT merge lines.
3. Do NOT change the [ID:x] prefix.
4. Keep {LINE_BREAK_MARKER} markers where they appear; they are line breaks inside one subtitle.
5. Keep the translation concise to fit subtitle timing constraints where possible.
6. Output ONLY the translated lines with their ID prefixes.

Input:
{payload}""";


def build_assessment_prompt( pairs: Sequence[Tuple[int, str, str]], source_language: str, target_language: str ) -> str:
    comparison = "\n---\n".join(
        f"ID: {line_id}\nSource: {source_text}\nTranslation: {translated_text}"
        for line_id, source_text, translated_text in pairs
    );

    return f"""You are a professional subtitle Quality Assurance specialist.
Source Language: {source_language}
{language_instruction( target_language )}

Your task is to verify the translation accuracy of the following subtitle pairs.

Evaluate each pair for:
1. Meaning accuracy (does the translation convey the original meaning?).
2. Tone and context.

For each item, assign a status: 'correct', 'minor_issue', or 'incorrect'.
Provide brief feedback for any issues.
Also provide an overall score (0-100) and a brief summary of the translation quality.

Respond with ONLY a JSON object of the form:
{{"overallScore": <integer>, "summary": "<text>", "items": [{{"id": <integer>, "status": "<status>", "feedback": "<text>"}}]}}

Input Pairs:
{comparison}""";


def build_suggestion_prompt( source_text: str, current_translation: str, source_language: str, target_language: str ) -> str:
    return f"""Act as a professional subtitle translator.
Source Language: {source_language}
{language_instruction( target_language )}

Original Text: "{source_text}"
Current Translation: "{current_translation}"

Task: Provide a single, improved translation that is more accurate, natural, and concise.
It should fix any grammatical errors or awkward phrasing in the current translation.
Only return the translated text string. Do not add quotes or explanations.""";


class AssessmentService( ABC ):
    """Abstract base class for the AI service used for translation and review."""

    def __init__( self, api_key: Optional[str] = None ):
        self.api_key = api_key;
        self.logger = get_logger();

    @abstractmethod
    async def complete( self, prompt: str, json_response: bool = False, temperature: Optional[float] = None ) -> str:
        """Send one prompt and return the raw text reply."""
        pass

    async def translate(
        self,
        lines: Sequence[Tuple[int, str]],
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE
    ) -> Dict[int, str]:
        """
        Translate subtitle lines.

        Args:
            lines: (id, text) pairs in file order
            source_language: Source language name or "Auto Detect"
            target_language: Target language name

        Returns:
            Mapping of id to translated text; ids the model skipped are absent
        """
        if not lines:
            return {};

        self.logger.info( f"Translating {len( lines )} lines ({source_language} -> {target_language})" );
        prompt = build_translation_prompt( lines, source_language, target_language );
        response_text = await self.complete( prompt, temperature=0.3 );

        translations = parse_translation_lines( response_text, [ line_id for line_id, _ in lines ] );
        if len( translations ) < len( lines ):
            self.logger.warning( f"Translation returned {len( translations )}/{len( lines )} lines; missing lines keep their text" );
        return translations;

    async def assess(
        self,
        pairs: Sequence[Tuple[int, str, str]],
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE
    ) -> Assessment:
        """
        Ask the model to judge translation quality line by line.

        Args:
            pairs: (id, source text, translated text) triples
            source_language: Source language name
            target_language: Target language name

        Returns:
            Validated Assessment (fields the model got wrong are left empty)
        """
        self.logger.info( f"Requesting quality assessment for {len( pairs )} lines" );
        prompt = build_assessment_prompt( pairs, source_language, target_language );
        response_text = await self.complete( prompt, json_response=True );
        return parse_assessment( response_text );

    async def suggest(
        self,
        source_text: str,
        current_translation: str,
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE
    ) -> str:
        """Return an improved translation for one line, or the current one if the reply is empty."""
        prompt = build_suggestion_prompt( source_text, current_translation, source_language, target_language );
        response_text = await self.complete( prompt );
        return ( response_text or "" ).strip() or current_translation;


class OpenAIService( AssessmentService ):
    """OpenAI chat completions backend (default)."""

    def __init__( self, api_key: str, model: str = DEFAULT_MODEL, client=None ):
        super().__init__( api_key );
        self.model = model;
        self.client = client or openai.AsyncOpenAI( api_key=api_key );

    async def complete( self, prompt: str, json_response: bool = False, temperature: Optional[float] = None ) -> str:
        """
        Run one chat completion.

        Raises:
            ServiceError: On any API or network failure
        """
        request = {
            'model': self.model,
            'messages': [ { "role": "user", "content": prompt } ]
        };
        if json_response:
            request['response_format'] = { "type": "json_object" };
        if temperature is not None:
            request['temperature'] = temperature;

        self.logger.debug( f"Sending {len( prompt )} character prompt to {self.model}" );

        try:
            response = await self.client.chat.completions.create( **request );
        except openai.AuthenticationError as e:
            raise ServiceError( f"OpenAI rejected the API key: {e}" ) from e;
        except openai.APIError as e:
            raise ServiceError( f"OpenAI request failed: {e}" ) from e;

        if not response.choices:
            raise ServiceError( "OpenAI returned no choices" );

        return response.choices[0].message.content or "";


def create_service( api_name: str, api_key: str, model: str = DEFAULT_MODEL ) -> AssessmentService:
    """
    Factory function to create the AI service.

    Args:
        api_name: "openai"
        api_key: API key for the service
        model: Model name

    Returns:
        Initialized service
    """
    if api_name == "openai":
        return OpenAIService( api_key, model=model );
    raise ValueError( f"Unknown AI service: {api_name}" );
