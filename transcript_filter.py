"""
Transcript sanitizer: cleanup of raw speech-to-text output and
hallucination filtering.

Whisper-style models invent short plausible utterances ("Obrigado.",
"Hello.", "[music]") when fed silence or very short audio. The cleanup
pipeline strips annotation artifacts; the signature table then discards
transcripts that are near-certainly fabricated. An empty string is the
only "discard" signal and nothing here raises.

The signature table is plain data and can be replaced by a JSON file
(see load_hallucination_rules) as patterns get tuned per model.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

MIN_TRANSCRIPT_CHARS = 2
# Short genuine questions get dropped too; known tradeoff, tune only with new data.
SHORT_QUESTION_MAX_CHARS = 20

# Annotations may span line breaks ("[music\n playing]").
_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_PAREN_RE = re.compile(r"\([^)]*\)")
_MULTI_PERIOD_RE = re.compile(r"\.{2,}")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
# A backslash run between two spaces takes one of them along.
_BACKSLASH_RE = re.compile(r"(?<=\s)\\+\s|\\+")
_FILLER_WORD_RE = re.compile(r"ai|eh+|hm+|mm+|uh+|um+|ah+|oh", re.IGNORECASE)
_FILLER_TAIL_CHARS = ",.!?…"
_TRAILING_OUTRO_RE = re.compile(
    r"\s+(?:legendas\s|legendado por\b|subtitles by\b|obrigad[oa]\b|inscreva-se|"
    r"thanks? (?:you )?for watching|(?:please )?subscribe\b).*$",
    re.IGNORECASE | re.DOTALL,
)
_REPEATED_PUNCT_RE = re.compile(r"([,.!?])\1+")


@dataclass(frozen=True)
class HallucinationRule:
    label: str
    pattern: re.Pattern


DEFAULT_HALLUCINATION_PATTERNS = [
    ("punctuation_only", r"^[\W_]*$"),
    ("single_letter", r"^[^\W\d_][.!?]?$"),
    ("lone_vowel_or_article", r"^(?:a|e|i|o|u|à|é|um|uma|the|an)[.!?]?$"),
    ("filler_only", r"^(?:\b(?:uh+|um+|ah+|eh+|hm+|mm+|oh+)\b[\s,.!?…]*)+$"),
    (
        "greeting",
        r"^(?:ol[áa]|oi|hello|hi|hey|bom dia|boa tarde|boa noite|good (?:morning|afternoon|evening|night)|"
        r"tchau|adeus|bye|goodbye|at[ée] logo|at[ée] j[áa])(?:[\s,]+(?:a todos|pessoal|everyone))?[.!,]*$",
    ),
    (
        "thanks",
        r"^(?:muito )?(?:obrigad[oa]|thank you|thanks)"
        r"(?: (?:a todos|por assistir|for watching|for listening|everyone))?[.!]*$",
    ),
    (
        "yes_no",
        r"^(?:sim|n[ãa]o|yes|no|ok|okay|certo|claro|pois|exato|t[áa] bem|est[áa] bem|yeah|yep|nope|right)[.!]*$",
    ),
    (
        "prompt_echo",
        r"^(?:ol[áa],?\s*)?(?:como est[áa]\??\s*)?(?:est[áa] tudo bem\.?\s*)?"
        r"(?:obrigad[oa],?\s*)?(?:at[ée] logo\.?)?$",
    ),
    (
        "prompt_echo_en",
        r"^(?:hello,?\s*)?(?:how are you\??\s*)?(?:everything is fine\.?\s*)?"
        r"(?:thank you,?\s*)?(?:see you later\.?)?$",
    ),
    (
        "outro_only",
        r"^(?:legendas|legendado|subtitles|inscreva-se|subscribe|thanks for watching|"
        r"thank you for watching|obrigad[oa] por assistir)\b.*$",
    ),
    ("short_question", rf"^.{{0,{SHORT_QUESTION_MAX_CHARS - 2}}}\?$"),
    (
        "interrogative_opener",
        r"^(?:o qu[eê]|qu[eê]|what|como|how|porqu[eê]|why|onde|where|quem|who|quando|when)\b[^.!?]{0,24}\?$",
    ),
]


def compile_rules(entries: Iterable) -> List[HallucinationRule]:
    """
    Compile (label, pattern) pairs or {"label", "pattern"} dicts into rules.

    Patterns that fail to compile are skipped with a warning so a single
    typo in an edited rules file doesn't disable the whole table.
    """
    rules = []
    for idx, entry in enumerate(entries):
        if isinstance(entry, dict):
            label = str(entry.get("label") or f"rule_{idx}")
            source = entry.get("pattern")
        else:
            try:
                label, source = entry
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed hallucination rule #{idx}: {entry!r}")
                continue
        if not isinstance(source, str):
            logger.warning(f"Skipping hallucination rule '{label}': pattern must be a string")
            continue
        try:
            rules.append(HallucinationRule(label, re.compile(source, re.IGNORECASE)))
        except re.error as ex:
            logger.warning(f"Skipping hallucination rule '{label}': {ex}")
    return rules


HALLUCINATION_RULES = compile_rules(DEFAULT_HALLUCINATION_PATTERNS)


def load_hallucination_rules(path: Optional[Union[str, Path]]) -> List[HallucinationRule]:
    """Load the signature table from a JSON list, falling back to the built-in one."""
    if not path:
        return HALLUCINATION_RULES
    path = Path(path).expanduser()
    if not path.exists():
        logger.warning(f"Hallucination rules file not found: {path}, using defaults")
        return HALLUCINATION_RULES
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as ex:
        logger.warning(f"Could not read hallucination rules from {path}: {ex}, using defaults")
        return HALLUCINATION_RULES
    if not isinstance(data, list):
        logger.warning(f"Hallucination rules in {path} must be a JSON list, using defaults")
        return HALLUCINATION_RULES

    rules = compile_rules(data)
    logger.info(f"Loaded {len(rules)} hallucination rules from {path}")
    return rules


def save_hallucination_rules(path: Union[str, Path], rules: Optional[List[HallucinationRule]] = None) -> Path:
    rules = HALLUCINATION_RULES if rules is None else rules
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [{"label": rule.label, "pattern": rule.pattern.pattern} for rule in rules]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    return path


def _strip_trailing_fillers(text: str) -> str:
    """
    Drop hesitation sounds ("um", "hm", "e ai", ...) and the punctuation
    after them from the end of text.

    Walks backwards one word at a time over an end index, so Whisper's
    "um um um ..." repetition loops cost linear time. A filler is only
    dropped when whitespace precedes it.
    """
    kept = end = len(text)
    while True:
        while end > 0 and (text[end - 1].isspace() or text[end - 1] in _FILLER_TAIL_CHARS):
            end -= 1
        start = end
        while start > 0 and not text[start - 1].isspace():
            start -= 1
        if start == 0 or not _FILLER_WORD_RE.fullmatch(text, start, end):
            return text[:kept]

        if text[start:end].lower() == "ai":
            # Portuguese "e ai" goes as one unit
            e_end = start
            while e_end > 0 and text[e_end - 1].isspace():
                e_end -= 1
            e_start = e_end - 1
            if e_start > 0 and text[e_start:e_end].lower() == "e" and text[e_start - 1].isspace():
                start = e_start

        while start > 0 and text[start - 1].isspace():
            start -= 1
        kept = end = start


def _strip_trailing_artifacts(text: str) -> str:
    # Fillers can hide behind an outro and vice versa; repeat until stable.
    while True:
        stripped = _strip_trailing_fillers(text)
        stripped = _TRAILING_OUTRO_RE.sub("", stripped)
        if stripped == text:
            return text
        text = stripped


def clean_transcript(text: Optional[str]) -> str:
    """Apply the ordered cleanup rules to a raw transcript."""
    if not isinstance(text, str) or not text:
        return ""

    cleaned = _BRACKET_RE.sub("", text)
    cleaned = _PAREN_RE.sub("", cleaned)
    cleaned = _MULTI_PERIOD_RE.sub(".", cleaned)
    cleaned = _MULTI_SPACE_RE.sub(" ", cleaned)
    cleaned = _BACKSLASH_RE.sub("", cleaned)
    cleaned = _strip_trailing_artifacts(cleaned)
    cleaned = cleaned.strip()
    cleaned = _REPEATED_PUNCT_RE.sub(lambda m: m.group(1), cleaned)

    if cleaned != text:
        logger.debug(f"Transcript cleaned: {text!r} -> {cleaned!r}")
    return cleaned


def match_hallucination(text: str, rules: Optional[List[HallucinationRule]] = None) -> Optional[str]:
    """Return the label of the first signature matching text, or None."""
    for rule in HALLUCINATION_RULES if rules is None else rules:
        if rule.pattern.search(text):
            return rule.label
    return None


def sanitize_transcript(text: Optional[str], rules: Optional[List[HallucinationRule]] = None) -> str:
    """
    Turn a raw transcript into a clean one, or "" when it should be discarded.

    Args:
        text: Raw text returned by the transcription provider
        rules: Signature table (defaults to HALLUCINATION_RULES)

    Returns:
        The cleaned transcript, or an empty string for "no speech detected"
    """
    cleaned = clean_transcript(text)
    if not cleaned:
        return ""

    label = match_hallucination(cleaned, rules)
    if label is not None:
        logger.info(f"Transcript discarded as hallucination ({label}): {cleaned!r}")
        return ""

    if len(cleaned) < MIN_TRANSCRIPT_CHARS:
        logger.info(f"Transcript discarded as too short: {cleaned!r}")
        return ""

    return cleaned
