"""Prompt builders for transcription, keyterm extraction and correction."""

from __future__ import annotations

from scribe.core.timestamps import format_timestamp

LANGUAGE_NAMES: dict[str, str] = {
    "el": "Greek",
    "en": "English",
    "ru": "Russian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
}


def language_name(code: str | None) -> str:
    if not code:
        return "the original spoken language"
    return LANGUAGE_NAMES.get(code.lower(), code)


def build_transcription_prompt(
    language: str | None,
    speaker_identification: bool = True,
    timestamps: bool = True,
    duration_seconds: float | None = None,
    custom_instructions: str | None = None,
    keyterms: tuple[str, ...] = (),
) -> str:
    target = language_name(language)
    lines = [
        "You are an expert transcriber and translator.",
        f"Task: Transcribe the audio from this file directly into {target}.",
        "",
        "Guidelines:",
        f"- Provide a highly accurate transcription in {target}.",
        f"- If the audio is already in {target}, transcribe it verbatim.",
        f"- If the audio is in another language, translate it fluently into {target}.",
    ]
    if timestamps:
        limit = (
            format_timestamp(duration_seconds)
            if duration_seconds
            else "the audio duration"
        )
        lines += [
            "- Timestamps: start each paragraph or speaker change with [MM:SS] "
            "or [H:MM:SS], e.g. [00:00], [01:23], [1:05:30].",
            "- Timestamps must match the actual position in the audio timeline "
            f"and must not exceed {limit}.",
        ]
    if speaker_identification:
        lines += [
            '- Speaker identification: label speakers as "Speaker 1:", '
            '"Speaker 2:", and so on.',
            "- Start a new paragraph every time the speaker changes.",
        ]
    if keyterms:
        lines.append(
            "- These terms occur in the audio; spell them exactly: "
            + ", ".join(keyterms)
        )
    lines.append(
        '- Do not add introductory text like "Here is the transcription". '
        "Just provide the text."
    )
    if custom_instructions:
        lines += ["", f"Additional instructions: {custom_instructions}"]
    return "\n".join(lines)


def build_keyterm_prompt(language: str | None, max_keyterms: int) -> str:
    target = language_name(language)
    return f"""You are analyzing audio to extract up to {max_keyterms} important keyterms that will help improve transcription accuracy.

Identify and extract the most important terms:
1. Proper nouns: names of people, places, organizations, brands
2. Technical terms: specialized vocabulary, jargon, domain-specific words
3. Locations: cities, countries, landmarks
4. Acronyms: abbreviations and initialisms

Requirements:
- Focus on {target} terms that are difficult to transcribe correctly
- Each keyterm is a single word or short phrase (max 50 characters)
- Prioritize terms that appear multiple times
- Do not include common function words
- Order by importance (most important first)

Return a JSON object with this exact format:
{{"keyterms": ["term1", "term2", ...]}}"""


def build_correction_prompt(
    text: str,
    language: str | None,
    previous_context: str | None = None,
    next_context: str | None = None,
    with_audio: bool = False,
) -> str:
    target = language_name(language)
    source = (
        "the attached audio and the transcription below"
        if with_audio
        else "the transcription below"
    )
    parts = [
        f"You are an expert proofreader for {target} transcriptions.",
        f"Review {source} and fix errors in proper nouns, technical terms, "
        "acronyms, diacritics and context-dependent spelling.",
        "",
        "Rules:",
        "- Preserve every timestamp such as [12:34] exactly as written.",
        '- Preserve speaker labels such as "Speaker 1:" exactly as written.',
        "- Do not summarize, reorder or drop content.",
        "- Only correct clear errors; keep the wording otherwise unchanged.",
    ]
    if previous_context:
        parts += [
            "",
            "Preceding context (for reference only, do not include it in the output):",
            previous_context,
        ]
    if next_context:
        parts += [
            "",
            "Following context (for reference only, do not include it in the output):",
            next_context,
        ]
    parts += [
        "",
        "Transcription to correct:",
        text,
        "",
        'Return JSON: {"corrected_text": "<full corrected text>", '
        '"correction_count": <number of corrections>}',
    ]
    return "\n".join(parts)
