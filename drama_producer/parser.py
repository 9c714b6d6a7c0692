"""Parse loosely formatted "Speaker: Dialogue" scripts into speaker turns."""

import re
import unicodedata
from dataclasses import dataclass

from drama_producer.models import ParsedLine, DialogueSegment
from drama_producer.constants import (
    COLON_LABEL_MAX,
    DASH_LABEL_MAX,
    METADATA_PREFIXES,
    METADATA_SUBSTRINGS,
    METADATA_PATTERNS,
    METADATA_TOKEN,
    METADATA_MAX_WORDS,
    SENTENCE_STARTERS,
    BIO_DESCRIPTORS,
    DASH_LABEL_MAX_WORDS,
    CAPS_HEADER_MIN_WORDS,
    SKIP_LINE_GLYPHS,
)


@dataclass(frozen=True)
class ParserRules:
    """Rule tables driving the classifier and the cue gate.

    Defaults come from constants; pass a modified copy
    (``dataclasses.replace(DEFAULT_RULES, ...)``) to tune a rule set.
    """

    metadata_prefixes: tuple = METADATA_PREFIXES
    metadata_substrings: tuple = METADATA_SUBSTRINGS
    metadata_patterns: tuple = METADATA_PATTERNS
    metadata_token: str = METADATA_TOKEN
    metadata_max_words: int = METADATA_MAX_WORDS
    sentence_starters: frozenset = SENTENCE_STARTERS
    bio_descriptors: frozenset = BIO_DESCRIPTORS
    dash_label_max_words: int = DASH_LABEL_MAX_WORDS
    caps_header_min_words: int = CAPS_HEADER_MIN_WORDS
    skip_line_glyphs: tuple = SKIP_LINE_GLYPHS
    colon_label_max: int = COLON_LABEL_MAX
    dash_label_max: int = DASH_LABEL_MAX


DEFAULT_RULES = ParserRules()

# " - Description", " — Description" trailing a name
_DESCRIPTOR_SEPARATOR_RE = re.compile(r"\s+[-—–]\s+")

_PARENTHETICAL_RE = re.compile(r"\(.*?\)")
_DIGIT_OR_HASH_RE = re.compile(r"[0-9#]")
_LOWER_START_RE = re.compile(r"^[a-z]")
_ACT_NUMBER_RE = re.compile(r"^act\s*\d+", re.IGNORECASE)
_WORD_SPLIT_RE = re.compile(r"[\W_]+")
_SEPARATOR_LINE_RE = re.compile(r"^[-*_]{3,}$")


def _is_name_char(ch: str) -> bool:
    """Letters (with their combining marks), digits, whitespace, ' and -."""
    if ch.isspace() or ch in "'-":
        return True
    category = unicodedata.category(ch)
    if category.startswith("M"):
        # Emoji variation selectors are marks too
        return not ("\ufe00" <= ch <= "\ufe0f")
    return category[0] in "LN"


def clean_speaker_name(raw: str) -> str:
    """Reduce a raw label to a display name.

    "Tappu (smiling)( Kid Male Speaker )" → "Tappu"
    "Hero - the brave one" → "Hero"
    An empty result means the label held no name.
    """
    name = _PARENTHETICAL_RE.sub("", raw)

    separator = _DESCRIPTOR_SEPARATOR_RE.search(name)
    if separator and separator.start():
        name = name[:separator.start()]

    name = "".join(ch for ch in name if _is_name_char(ch))
    return name.strip()


def is_metadata_line(speaker_clean: str, rules: ParserRules = DEFAULT_RULES) -> bool:
    """Return True if a cleaned label is stage direction or noise, not a speaker.

    Rules are checked in order and the first hit wins.
    """
    lower = speaker_clean.lower().strip()

    if any(lower == prefix or lower.startswith(prefix + " ") for prefix in rules.metadata_prefixes):
        return True
    if any(word in lower for word in rules.metadata_substrings):
        return True

    # "Act 2", "Scene 1", "Order #637"
    if any(re.search(pattern, lower, re.IGNORECASE) for pattern in rules.metadata_patterns):
        return True

    words = re.split(r"[\s-]+", lower)
    if rules.metadata_token in words:
        return True

    # Names are short
    if len(words) > rules.metadata_max_words:
        return True

    # Pure numbers or symbols
    if not any(ch.isalpha() for ch in lower):
        return True

    return False


def _is_all_caps(text: str) -> bool:
    return text == text.upper() and re.search(r"[A-Z]", text) is not None


def _reject_dash_cue(
    line: str,
    speaker_raw: str,
    speaker_clean: str,
    dialogue: str,
    rules: ParserRules,
) -> bool:
    """Gate for low-confidence "Name - text" cues. Order matters."""
    # Indented prose
    if re.match(r"^\s", line):
        return True

    # "and then - he left"
    if _LOWER_START_RE.match(speaker_raw):
        return True

    # "Order #637", "Act 2"
    if _DIGIT_OR_HASH_RE.search(speaker_raw):
        return True

    first_word = _WORD_SPLIT_RE.split(speaker_raw)[0].lower()
    if first_word in rules.sentence_starters:
        return True

    if len(re.split(r"\s+", speaker_clean)) > rules.dash_label_max_words:
        return True

    # Mid-sentence continuation
    if dialogue and _LOWER_START_RE.match(dialogue):
        return True

    # Character sheet: "Hero - Male, 25, brave"
    first_dialogue_word = _WORD_SPLIT_RE.split(dialogue.strip())[0].lower()
    if first_dialogue_word in rules.bio_descriptors:
        return True

    if _ACT_NUMBER_RE.match(speaker_raw):
        return True

    # ALL-CAPS scene header: "DAWN - THE VILLAGE", "INTERIOR - Night"
    if _is_all_caps(speaker_clean):
        word_count = len(re.split(r"\s+", dialogue))
        if _is_all_caps(dialogue) or word_count < rules.caps_header_min_words:
            return True

    return False


def _split_cue(trimmed: str, rules: ParserRules):
    """Split a line at its first colon, else at a dash.

    Returns (speaker_raw, dialogue, is_dash_match) or None.
    """
    match = re.match(rf"^([^:]{{1,{rules.colon_label_max}}}):(.*)$", trimmed)
    if match:
        return match.group(1).strip(), match.group(2).strip(), False

    match = re.match(
        rf"^([^—–-]{{1,{rules.dash_label_max}}})\s*[—–-]\s*(.*)$",
        trimmed,
    )
    if match:
        return match.group(1).strip(), match.group(2).strip(), True

    return None


def _read_cue(line: str, trimmed: str, rules: ParserRules) -> ParsedLine | None:
    """Return a new ParsedLine if the line opens a speaking turn."""
    split = _split_cue(trimmed, rules)
    if split is None:
        return None
    speaker_raw, dialogue, is_dash_match = split

    # Markdown headings and bullets
    if speaker_raw.startswith("*") or speaker_raw.startswith("#"):
        return None

    speaker_clean = clean_speaker_name(speaker_raw)

    if is_dash_match:
        if _reject_dash_cue(line, speaker_raw, speaker_clean, dialogue, rules):
            return None
    elif _DIGIT_OR_HASH_RE.search(speaker_raw):
        # "ACT 2:", "SCENE 1:"
        return None

    if not speaker_clean or is_metadata_line(speaker_clean, rules):
        return None

    return ParsedLine(
        original=line,
        speaker_raw=speaker_raw,
        speaker_clean=speaker_clean,
        metadata=" ".join(_PARENTHETICAL_RE.findall(speaker_raw)),
        dialogue=dialogue,
    )


def _is_decoration(trimmed: str, rules: ParserRules) -> bool:
    """Continuation lines that carry no speech."""
    if trimmed.startswith("(") and trimmed.endswith(")"):
        return True
    if trimmed.startswith(rules.skip_line_glyphs):
        return True
    if _SEPARATOR_LINE_RE.match(trimmed):
        return True
    return False


def parse_script(text: str, rules: ParserRules = DEFAULT_RULES) -> list[ParsedLine]:
    """Parse script text into speaker turns.

    Each recognised cue starts a new ParsedLine; lines without a cue are
    appended to the active turn's dialogue. Lines before the first cue are
    dropped. Never raises.
    """
    parsed = []
    current = None

    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue

        cue = _read_cue(line, trimmed, rules)
        if cue is not None:
            if current is not None:
                parsed.append(current)
            current = cue
            continue

        # Continuation of the active speaker
        if current is None or _is_decoration(trimmed, rules):
            continue
        if current.dialogue:
            current.dialogue += " " + trimmed
        else:
            current.dialogue = trimmed

    if current is not None:
        parsed.append(current)

    return parsed


def group_segments(lines: list[ParsedLine]) -> list[DialogueSegment]:
    """Merge consecutive lines of the same speaker into one segment each.

    Speakers compare by exact string; one segment is one synthesis call.
    """
    segments = []
    for line in lines:
        if segments and segments[-1].speaker == line.speaker_clean:
            segments[-1].text += " " + line.dialogue
        else:
            segments.append(DialogueSegment(speaker=line.speaker_clean, text=line.dialogue))
    return segments
