"""Tests for parser module: name cleaning, noise classifier, segmenter, grouping."""

from dataclasses import replace

import pytest

from drama_producer.parser import (
    DEFAULT_RULES,
    clean_speaker_name,
    is_metadata_line,
    parse_script,
    group_segments,
)


# --- Name sanitizer ---

def test_clean_name_strips_parenthetical():
    assert clean_speaker_name("Tappu (smiling)") == "Tappu"


def test_clean_name_strips_every_parenthetical():
    assert clean_speaker_name("Tappu (smiling)( Kid Male Speaker )") == "Tappu"


def test_clean_name_truncates_descriptor():
    """Spaced dash starts a description; the name is kept."""
    assert clean_speaker_name("Hero - the brave one") == "Hero"
    assert clean_speaker_name("Priya — her mother") == "Priya"


def test_clean_name_keeps_hyphen_and_apostrophe():
    assert clean_speaker_name("Mary-Jane") == "Mary-Jane"
    assert clean_speaker_name("O'Brien") == "O'Brien"


def test_clean_name_strips_symbols_and_emoji():
    assert clean_speaker_name("🔥Raju🔥") == "Raju"
    assert clean_speaker_name("**Raju!!**") == "Raju"


def test_clean_name_keeps_non_latin_letters():
    assert clean_speaker_name("जेठालाल") == "जेठालाल"


def test_clean_name_empty_when_only_direction():
    assert clean_speaker_name("(whispering)") == ""
    assert clean_speaker_name("") == ""


# --- Metadata/noise classifier ---

@pytest.mark.parametrize("name", ["Scene", "Scene One", "Act", "INT. OFFICE", "Here's", "Cast", "Title"])
def test_metadata_prefixes(name):
    assert is_metadata_line(name)


@pytest.mark.parametrize("name", ["Background Music", "Crowd", "Theme", "The End"])
def test_metadata_substrings(name):
    assert is_metadata_line(name)


def test_metadata_structural_patterns():
    """Numbered headers without a space still count."""
    assert is_metadata_line("Scene1")
    assert is_metadata_line("Act2")
    assert is_metadata_line("Order #12")


def test_metadata_cue_token():
    assert is_metadata_line("Lights-Cue")
    assert is_metadata_line("Lights Cue")


def test_metadata_long_names_rejected():
    assert is_metadata_line("Tall Thin Grey Old Wizard")
    assert not is_metadata_line("Tall Thin Grey Wizard")


def test_metadata_numbers_and_symbols():
    assert is_metadata_line("123")
    assert is_metadata_line("---")
    assert is_metadata_line("")


@pytest.mark.parametrize("name", ["Narrator", "Jethalal", "Detective", "Old Man", "Mary-Jane", "जेठालाल"])
def test_real_speakers_pass(name):
    assert not is_metadata_line(name)


def test_metadata_rules_are_swappable():
    rules = replace(DEFAULT_RULES, metadata_prefixes=DEFAULT_RULES.metadata_prefixes + ("robot",))
    assert not is_metadata_line("Robot")
    assert is_metadata_line("Robot", rules)


# --- Line segmenter: end-to-end scenarios ---

def test_parse_two_speakers():
    lines = parse_script("Narrator: The sun rose.\nHero: I will find the treasure today!")
    assert [(l.speaker_clean, l.dialogue) for l in lines] == [
        ("Narrator", "The sun rose."),
        ("Hero", "I will find the treasure today!"),
    ]


def test_parse_rejects_numbered_scene_header():
    lines = parse_script("SCENE 1: A dark forest\nHero: Who's there?")
    assert len(lines) == 1
    assert lines[0].speaker_clean == "Hero"
    assert lines[0].dialogue == "Who's there?"


def test_parse_continuation_skips_parenthetical_line():
    lines = parse_script("Jethalal: Aaj ka topic hai...\n(laughs)\nbahut accha hai")
    assert len(lines) == 1
    assert lines[0].dialogue == "Aaj ka topic hai... bahut accha hai"


# --- Line segmenter: details ---

def test_parse_keeps_original_and_metadata():
    lines = parse_script("Tappu (smiling)(to audience): Hello everyone!")
    line = lines[0]
    assert line.original == "Tappu (smiling)(to audience): Hello everyone!"
    assert line.speaker_raw == "Tappu (smiling)(to audience)"
    assert line.speaker_clean == "Tappu"
    assert line.metadata == "(smiling) (to audience)"
    assert line.dialogue == "Hello everyone!"


def test_parse_empty_dialogue_filled_by_continuation():
    lines = parse_script("Hero:\nI am here.")
    assert lines[0].dialogue == "I am here."


def test_parse_drops_text_before_first_cue():
    lines = parse_script("Once upon a time\nHero: Hi")
    assert len(lines) == 1
    assert lines[0].dialogue == "Hi"


def test_parse_blank_lines_do_not_break_turn():
    lines = parse_script("Hero: First part.\n\n   \nsecond part.")
    assert len(lines) == 1
    assert lines[0].dialogue == "First part. second part."


def test_parse_noise_label_becomes_continuation():
    lines = parse_script("Hero: Hello\nBackground: rain falls")
    assert len(lines) == 1
    assert lines[0].dialogue == "Hello Background: rain falls"


def test_parse_markdown_heading_is_not_a_cue():
    lines = parse_script("# Title: My Drama\n**Cast**: Hero\nHero: Hi")
    assert [l.speaker_clean for l in lines] == ["Hero"]


def test_parse_colon_label_with_digit_rejected():
    assert parse_script("Agent 47: Target acquired.") == []


def test_parse_colon_beyond_sixty_chars_is_not_a_cue():
    text = "Hero: Start.\n" + "x" * 61 + ": tail"
    lines = parse_script(text)
    assert len(lines) == 1
    assert lines[0].dialogue.endswith(": tail")


def test_parse_skips_separators_and_glyph_lines():
    text = "Hero: Hi\n---\n***\n___\n🎵 la la la\n· bullet\n👉 look\nThere."
    lines = parse_script(text)
    assert lines[0].dialogue == "Hi There."


def test_parse_crlf_line_endings():
    lines = parse_script("Narrator: The sun rose.\r\nHero: Hello!\r\n")
    assert [(l.speaker_clean, l.dialogue) for l in lines] == [
        ("Narrator", "The sun rose."),
        ("Hero", "Hello!"),
    ]


# --- Dash cues and their rejection gate ---

def test_dash_cue_accepted():
    lines = parse_script("Raju - Where are you going?\nPriya — I told you already.")
    assert [(l.speaker_clean, l.dialogue) for l in lines] == [
        ("Raju", "Where are you going?"),
        ("Priya", "I told you already."),
    ]


@pytest.mark.parametrize("line", [
    "  Raju - Where are you going?",          # indented
    "and then - He left",                    # lowercase label
    "Order #637 - Delivered",                # digit or #
    "The Hero - Saves the day",              # sentence starter
    "Well - I don't know",                   # sentence starter
    "Big Bad Wolf King - Hello there friend", # more than 3 words
    "Raju - where are you",                  # lowercase dialogue
    "Hero - Male, brave and kind",           # character sheet
    "DAWN - THE VILLAGE WAKES UP",           # all-caps header
    "MAYA - Run!",                           # all-caps label, short dialogue
])
def test_dash_gate_rejects(line):
    lines = parse_script("Hero: Listen.\n" + line)
    assert len(lines) == 1
    assert lines[0].dialogue == "Listen. " + line.strip()


def test_dash_caps_label_with_long_dialogue_accepted():
    lines = parse_script("MAYA - Run, they are coming for us!")
    assert lines[0].speaker_clean == "MAYA"


# --- Properties ---

def test_every_cue_is_a_real_speaker(sample_script):
    lines = parse_script(sample_script)
    assert len(lines) == 5
    assert all(not is_metadata_line(l.speaker_clean) for l in lines)


def test_reparse_own_output_keeps_speaker(sample_script):
    for line in parse_script(sample_script):
        reparsed = parse_script(f"{line.speaker_clean}: {line.dialogue}")
        assert reparsed[0].speaker_clean == line.speaker_clean


def test_parse_with_custom_rules():
    rules = replace(DEFAULT_RULES, metadata_prefixes=DEFAULT_RULES.metadata_prefixes + ("robot",))
    lines = parse_script("Hero: Hi.\nRobot: Beep.", rules=rules)
    assert len(lines) == 1
    assert lines[0].dialogue == "Hi. Robot: Beep."


# --- Segment grouper ---

def test_group_consecutive_speakers(make_line):
    lines = [make_line("Hero", "I am here."), make_line("Hero", "Still here."), make_line("Villain", "Not for long.")]
    segments = group_segments(lines)
    assert len(segments) == 2
    assert segments[0].speaker == "Hero"
    assert segments[0].text == "I am here. Still here."
    assert segments[1].text == "Not for long."


def test_group_empty():
    assert group_segments([]) == []


def test_group_is_case_sensitive(make_line):
    segments = group_segments([make_line("Hero", "a"), make_line("hero", "b")])
    assert len(segments) == 2


def test_group_alternating_speakers_unchanged(sample_script):
    lines = parse_script(sample_script)
    segments = group_segments(lines)
    assert len(segments) == len(lines)


def test_group_never_longer_than_input(make_line):
    lines = [make_line(s, "x") for s in ["A", "A", "B", "A", "B", "B", "B"]]
    segments = group_segments(lines)
    assert len(segments) == 4
    assert [s.speaker for s in segments] == ["A", "B", "A", "B"]
