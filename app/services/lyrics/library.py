"""
Built-in lyrics templates used when the caller supplies no lyrics.
Templates are deliberately short: the resolver expands them to the length band
of the requested duration.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class LyricsTemplate:
    id: str
    title: str
    genre: str
    mood: str
    lyrics: str
    tags: tuple[str, ...] = field(default_factory=tuple)


GENRE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "lofi": ("lofi", "lo-fi", "study", "mellow", "tape", "vinyl", "coffee", "rain", "slow", "quiet"),
    "hiphop": ("hip hop", "hiphop", "rap", "street", "hustle", "bars", "rhyme", "flow", "grind"),
    "jazz": ("jazz", "saxophone", "sax", "trumpet", "piano", "swing", "smoky", "club"),
    "chill": ("chill", "calm", "ocean", "waves", "breeze", "drift", "relax", "meditation"),
    "rnb": ("rnb", "r&b", "soul", "romance", "groove", "passion", "heartbeat", "desire"),
    "techno": ("techno", "edm", "rave", "bass", "synth", "warehouse", "strobe", "dance"),
}

MOOD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "melancholic": ("sad", "melancholy", "lonely", "blue", "tears", "faded", "lost", "missing"),
    "empowering": ("strong", "power", "rise", "overcome", "victory", "confidence", "champion"),
    "romantic": ("love", "romance", "heart", "kiss", "together", "lovers"),
    "peaceful": ("peace", "calm", "quiet", "serene", "gentle", "soft", "still", "silence"),
    "nostalgic": ("nostalgia", "memory", "remember", "past", "vintage", "yesterday"),
    "intense": ("intense", "fire", "burn", "fight", "fierce", "hard", "raw"),
    "dreamy": ("dream", "dreamy", "haze", "clouds", "fantasy", "floating"),
    "euphoric": ("euphoric", "joy", "party", "night out", "alive", "lights"),
}

LIBRARY: tuple[LyricsTemplate, ...] = (
    LyricsTemplate(
        id="lofi-rain-window",
        title="Rain on the Window",
        genre="lofi",
        mood="melancholic",
        tags=("rain", "night", "coffee", "window"),
        lyrics=(
            "Rain keeps tapping on the glass tonight\n"
            "Coffee going cold beneath the lamp light\n"
            "Pages full of words I never said\n"
            "Playing back your voice inside my head"
        ),
    ),
    LyricsTemplate(
        id="lofi-vinyl-afternoon",
        title="Vinyl Afternoon",
        genre="lofi",
        mood="nostalgic",
        tags=("vinyl", "sunlight", "afternoon", "memories"),
        lyrics=(
            "Needle drops on an old record groove\n"
            "Sunlight slowly moving through the room\n"
            "Dust is dancing in a golden haze\n"
            "Spinning back to simple summer days"
        ),
    ),
    LyricsTemplate(
        id="hiphop-city-grind",
        title="City Grind",
        genre="hiphop",
        mood="empowering",
        tags=("city", "hustle", "street", "dreams"),
        lyrics=(
            "Started on the corner with a notebook and a plan\n"
            "Every single morning I keep building what I can\n"
            "Concrete under sneakers and the city in my chest\n"
            "Never taking breaks until I know I gave my best"
        ),
    ),
    LyricsTemplate(
        id="hiphop-late-night",
        title="Late Night Bars",
        genre="hiphop",
        mood="intense",
        tags=("night", "beats", "rhyme", "fire"),
        lyrics=(
            "Midnight on the block and the speakers start to knock\n"
            "Every line I write is another turn of the lock\n"
            "Fire in the booth and I am burning through the page\n"
            "Turning every setback into fuel for the stage"
        ),
    ),
    LyricsTemplate(
        id="jazz-smoky-room",
        title="Smoky Room",
        genre="jazz",
        mood="romantic",
        tags=("piano", "club", "evening", "love"),
        lyrics=(
            "Piano in the corner plays a slow and easy tune\n"
            "You walk in with the evening and the rising of the moon\n"
            "The saxophone is sighing every word I meant to say\n"
            "Stay a little longer, let the music lead the way"
        ),
    ),
    LyricsTemplate(
        id="chill-ocean-drift",
        title="Ocean Drift",
        genre="chill",
        mood="peaceful",
        tags=("ocean", "waves", "breeze", "summer"),
        lyrics=(
            "Waves roll in and slowly fade away\n"
            "Salt is in the air at the end of day\n"
            "Breathing with the tide, letting go of time\n"
            "Floating on a feeling, calm and sublime"
        ),
    ),
    LyricsTemplate(
        id="chill-cloud-walk",
        title="Cloud Walk",
        genre="chill",
        mood="dreamy",
        tags=("clouds", "sky", "dream", "floating"),
        lyrics=(
            "Walking on the clouds above the town\n"
            "Nothing here can ever pull me down\n"
            "Soft and slow the colors drift and blend\n"
            "Hoping that this moment will not end"
        ),
    ),
    LyricsTemplate(
        id="rnb-heartbeat",
        title="Heartbeat",
        genre="rnb",
        mood="romantic",
        tags=("love", "heart", "together", "night"),
        lyrics=(
            "Feel your heartbeat racing next to mine\n"
            "Every little touch is like a sign\n"
            "Hold me close and never let me go\n"
            "This is all the love I need to know"
        ),
    ),
    LyricsTemplate(
        id="rnb-slow-burn",
        title="Slow Burn",
        genre="rnb",
        mood="melancholic",
        tags=("missing", "tears", "soul", "memory"),
        lyrics=(
            "Empty side of the bed where you used to lay\n"
            "Still can hear the song you used to play\n"
            "Tears fall slow like the end of June\n"
            "Missing you beneath the silver moon"
        ),
    ),
    LyricsTemplate(
        id="techno-strobe",
        title="Strobe",
        genre="techno",
        mood="euphoric",
        tags=("dance", "lights", "bass", "party"),
        lyrics=(
            "Strobe lights flashing and the bass is in my bones\n"
            "A thousand strangers moving but we never feel alone\n"
            "Hands up to the ceiling as the morning starts to glow\n"
            "Lost inside the rhythm and we never want to go"
        ),
    ),
)

# Selected only through the bonus pack trigger, once per user per day
BONUS_PACK: tuple[LyricsTemplate, ...] = (
    LyricsTemplate(
        id="signature-on-air",
        title="On Air",
        genre="hiphop",
        mood="empowering",
        tags=("signature", "radio", "city", "og"),
        lyrics=(
            "Red light on, the whole city tuning in\n"
            "Signature sound, this is where the night begins\n"
            "Every frequency is carrying my name\n"
            "Turn the dial up, nothing ever sounds the same"
        ),
    ),
    LyricsTemplate(
        id="signature-late-frequency",
        title="Late Frequency",
        genre="lofi",
        mood="nostalgic",
        tags=("signature", "radio", "night", "static"),
        lyrics=(
            "Static in the speakers at a quarter after two\n"
            "Signature station playing every song I knew\n"
            "Soft voice on the airwaves keeps me company\n"
            "Late night frequency, just the radio and me"
        ),
    ),
    LyricsTemplate(
        id="signature-broadcast",
        title="Broadcast",
        genre="techno",
        mood="euphoric",
        tags=("signature", "radio", "dance", "lights"),
        lyrics=(
            "Broadcast going out across the neon sky\n"
            "Signature beat and every hand is reaching high\n"
            "Feel the pulse from every tower to the floor\n"
            "Turn it up, the night is asking us for more"
        ),
    ),
)

FALLBACK = LyricsTemplate(
    id="fallback",
    title="Untitled",
    genre="pop",
    mood="peaceful",
    lyrics=(
        "Here we are beneath the open sky\n"
        "Every moment passing slowly by\n"
        "Sing it out and let the music play\n"
        "We will find our way another day"
    ),
)
