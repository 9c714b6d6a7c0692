"""All magic numbers, rule tables and configuration constants."""

# --- Script parsing ---

COLON_LABEL_MAX = 60                # chars allowed before the first colon of a cue
DASH_LABEL_MAX = 50                 # stricter bound for "Name - text" cues

# Classifier rule 1: name equals, or starts with "<keyword> "
METADATA_PREFIXES = (
    "scene", "act", "act:",
    "cue", "sound", "fx", "lighting",
    "camera", "cut to", "fade",
    "narrator opening", "closing", "entry", "exit",
    "int.", "ext.", "est.",                                 # screenplay headers
    "total",                                                # "Total 10 Characters"
    "time", "date", "setting", "location", "place",
    "drama", "dance", "duration",
    "order", "gen", "gen-z",
    # AI conversational filler
    "here's", "here is", "sure", "okay", "certainly",
    "revised", "humanized", "generated", "script", "title", "synopsis",
    "summary", "cast", "characters",
    "note", "disclaimer",
)

# Classifier rule 2: name contains the keyword anywhere
METADATA_SUBSTRINGS = (
    "transition", "background", "theme", "fade out", "fade in",
    "music", "song", "beat", "flute", "track",
    "entry", "enters", "descends", "appear",
    "bow", "applause", "laugh", "cheer", "crowd",
    "end", "begin", "start", "finish",
)

# Classifier rule 3
METADATA_PATTERNS = (
    r"^act\s*\d+",
    r"^scene\s*\d+",
    r"^order\s*#?\d+",
)

METADATA_TOKEN = "cue"              # classifier rule 4
METADATA_MAX_WORDS = 4              # classifier rule 5

# Dash cue gate: first words that open sentences, not names
SENTENCE_STARTERS = frozenset({
    "i", "we", "you", "he", "she", "it", "they",
    "the", "a", "an", "this", "that", "these", "those",
    "but", "and", "so", "or", "because", "when", "if", "then", "while",
    "what", "why", "where", "who", "how",
    "wait", "look", "stop", "go", "come", "listen", "no", "yes", "well",
    "total", "act", "scene", "order",
})

# Dash cue gate: "Hero - Male, 25" is a character sheet, not dialogue
BIO_DESCRIPTORS = frozenset({
    "male", "female", "boy", "girl", "man", "woman", "kid", "adult",
    "voice", "character", "role", "age", "narrator", "speaker",
})

DASH_LABEL_MAX_WORDS = 3
CAPS_HEADER_MIN_WORDS = 4           # ALL-CAPS label + shorter dialogue = scene header

# Continuation lines starting with these are decoration
SKIP_LINE_GLYPHS = ("\U0001F3B5", "\U0001F31F", "⏳", "\U0001F525", "\U0001F449", "·")

# --- Audio ---

PROVIDER_SAMPLE_RATE = 24000        # Hz, provider PCM contract
PROVIDER_CHANNELS = 1
PROVIDER_SAMPLE_WIDTH = 2           # bytes, 16-bit signed little-endian
PCM_SCALE = 32768.0

# --- Casting ---

VOICE_POOL = ["Puck", "Charon", "Kore", "Fenrir", "Zephyr"]
VOICE_META = {
    "Puck": {"gender": "Male", "traits": "Mischievous, Tenor"},
    "Charon": {"gender": "Male", "traits": "Deep, Authoritative"},
    "Kore": {"gender": "Female", "traits": "Gentle, Soothing"},
    "Fenrir": {"gender": "Male", "traits": "Gruff, Intense"},
    "Zephyr": {"gender": "Female", "traits": "Professional, Confident"},
}
PITCH_MIN = 0.8
PITCH_MAX = 1.2
PITCH_NEUTRAL = 1.0
REGISTRY_FILENAME = "voice_registry.json"

# --- Providers ---

GEMINI_TEXT_MODEL = "gemini-2.5-flash"
GEMINI_TTS_MODEL = "gemini-2.5-flash-preview-tts"
TTS_RETRY_COUNT = 10                # max attempts per segment on rate limits
TTS_RETRY_BASE_DELAY = 10.0         # seconds, doubled on each retry
TEXT_RETRY_COUNT = 5
TEXT_RETRY_BASE_DELAY = 3.0         # 3s, 6s, 12s, 24s...
RETRY_MAX_DELAY = 60.0              # cap on any single backoff wait
REQUEST_DELAY = 6.0                 # seconds between segment requests (~10 RPM)
THROTTLED_REQUEST_DELAY = 15.0      # after any rate limit (4 RPM)
RATE_LIMIT_MARKERS = ("429", "quota", "exhausted", "overloaded", "503")
TTS_RATE = "+0%"                    # edge-tts speech rate

# Casting voices rendered through edge-tts when no Gemini key is available
EDGE_VOICE_MAP = {
    "Puck": "en-US-TonyNeural",
    "Charon": "en-US-DavisNeural",
    "Kore": "en-US-JennyNeural",
    "Fenrir": "en-GB-ThomasNeural",
    "Zephyr": "en-US-AriaNeural",
}

SUPPORTED_LANGUAGES = [
    "English", "Spanish", "French", "German", "Italian", "Japanese",
    "Korean", "Chinese", "Hindi", "Russian", "Portuguese", "Arabic",
]
SCRIPT_MAX_LINES = 25
MAPPING_EXCERPT_CHARS = 1500

PREVIEW_TEXT = "Hello! This is how I sound in your drama."
OUTPUT_BITRATE = "192k"             # MP3 output bitrate
OUTPUT_DIR = "output"
VERSION = "0.1.0"
