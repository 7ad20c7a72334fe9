"""Voice service for ElevenLabs TTS integration.

Interrogation transcripts are plain "Speaker: line" scripts. Each line is
voiced separately with the speaker's assigned voice and the MP3 segments are
joined into a single clip.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import requests

from config.settings import get_env_settings

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"

# ElevenLabs premade voices, grouped by gender
MALE_VOICES = [
    ("George", "JBFqnCBsd6RMkjVDRZzb"),
    ("Adam", "pNInz6obpgDQGcFmaJgB"),
    ("Antoni", "ErXwobaYiN019PkySvjV"),
]
FEMALE_VOICES = [
    ("Rachel", "21m00Tcm4TlvDq8ikWAM"),
    ("Bella", "EXAVITQu4vr4xnAQ5fSE"),
    ("Domi", "AZnzlk1XvdvUeBnXmlld"),
]

_SCRIPT_LINE = re.compile(r"^\s*([^:\n]{1,60}):\s*(.+)$")


@dataclass
class CastVoice:
    """A speaker in a script and the voice that reads their lines."""

    name: str
    voice_id: str

    def __repr__(self):
        return f"CastVoice({self.name}, {self.voice_id})"


class AudioGenerator(Protocol):
    def generate_audio(self, script: str, voices: List[CastVoice]) -> Optional[bytes]:
        ...


def parse_script(script: str) -> List[Tuple[str, str]]:
    """Split a 'Speaker: line' script into (speaker, line) pairs."""
    lines = []
    for raw in script.splitlines():
        match = _SCRIPT_LINE.match(raw)
        if match:
            lines.append((match.group(1).strip(), match.group(2).strip()))
    return lines


def detect_gender(name: str, text_generator, rng: Optional[random.Random] = None) -> str:
    """Ask the text model whether a name reads as male or female.

    Falls back to a coin flip when the model is unavailable or unclear.
    """
    rng = rng or random.Random()
    prompt = (
        f'Based on the name "{name}", determine if this is typically a male or female name.\n'
        "If the name is ambiguous or uncommon, make your best guess based on typical naming conventions.\n"
        'Respond with only one word: "male" or "female"'
    )
    try:
        answer = text_generator.generate(prompt).strip().lower()
    except Exception as e:
        logger.warning("Gender detection failed for %s: %s", name, e)
        answer = ""

    if "female" in answer:
        return "female"
    if "male" in answer:
        return "male"
    return rng.choice(["male", "female"])


def cast_voices(names: List[str], text_generator, rng: Optional[random.Random] = None) -> List[CastVoice]:
    """Pick a voice for each speaker from the pool matching their gender."""
    rng = rng or random.Random()
    cast = []
    for name in names:
        gender = detect_gender(name, text_generator, rng)
        pool = MALE_VOICES if gender == "male" else FEMALE_VOICES
        voice_name, voice_id = rng.choice(pool)
        logger.info("Voice assignment: %s (%s) -> %s", name, gender, voice_name)
        cast.append(CastVoice(name=name, voice_id=voice_id))
    return cast


class VoiceService:
    """Service for ElevenLabs TTS generation."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or get_env_settings().elevenlabs_api_key

    @property
    def is_available(self) -> bool:
        """Check if ElevenLabs API is available."""
        return bool(self.api_key)

    def _get_headers(self) -> dict:
        """Get API headers."""
        return {"xi-api-key": self.api_key, "Content-Type": "application/json"}

    def generate_speech(
        self,
        text: str,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
    ) -> Optional[bytes]:
        """Generate speech audio from text.

        Returns:
            MP3 bytes or None on error
        """
        if not self.is_available:
            logger.warning("ElevenLabs API key not set")
            return None

        try:
            response = requests.post(
                f"{ELEVENLABS_API_URL}/text-to-speech/{voice_id}",
                headers=self._get_headers(),
                json={
                    "text": text,
                    "model_id": model_id,
                    "voice_settings": {
                        "stability": 0.50,
                        "similarity_boost": 0.75,
                        "style": 0.0,
                        "use_speaker_boost": True,
                    },
                },
                timeout=30,
            )
            response.raise_for_status()
            return response.content

        except requests.RequestException as e:
            logger.error("Error generating speech: %s", e)
            return None

    def generate_audio(self, script: str, voices: List[CastVoice]) -> Optional[bytes]:
        """Voice a whole 'Speaker: line' script.

        Lines whose speaker has no assigned voice use the first voice.
        Returns None if no line could be voiced.
        """
        if not voices:
            return None
        voice_by_name: Dict[str, str] = {v.name.lower(): v.voice_id for v in voices}
        segments = []
        for speaker, line in parse_script(script):
            voice_id = voice_by_name.get(speaker.lower(), voices[0].voice_id)
            audio = self.generate_speech(line, voice_id)
            if audio:
                segments.append(audio)

        if not segments:
            logger.warning("No audio produced for script (%d chars)", len(script))
            return None
        logger.info("Generated %d audio segments", len(segments))
        return b"".join(segments)


# Global voice service instance
_voice_service: Optional[VoiceService] = None


def get_voice_service() -> VoiceService:
    """Get or create the global voice service."""
    global _voice_service
    if _voice_service is None:
        _voice_service = VoiceService()
    return _voice_service
