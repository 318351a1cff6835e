"""TwiML generation for the call flow."""
from dataclasses import dataclass
from typing import Iterable, Optional, Union
from twilio.twiml.voice_response import Gather, VoiceResponse

from app.core.config import settings


@dataclass(frozen=True)
class Utterance:
    """Something to say to the caller, as audio when available."""

    text: str
    audio_url: Optional[str] = None


class TwiMLBuilder:
    """Builds the TwiML documents the controller returns to Twilio."""

    def __init__(
        self,
        input_mode: Optional[str] = None,
        say_voice: Optional[str] = None,
        language: Optional[str] = None,
        gather_timeout: Optional[int] = None,
        record_timeout: Optional[int] = None,
        record_max_length: Optional[int] = None,
    ):
        self.input_mode = input_mode or settings.input_mode
        self.say_voice = say_voice or settings.say_voice
        self.language = language or settings.speech_language
        self.gather_timeout = gather_timeout or settings.gather_timeout
        self.record_timeout = record_timeout or settings.record_timeout
        self.record_max_length = record_max_length or settings.record_max_length

    def speak_and_capture(self, utterance: Optional[Utterance], input_url: str) -> str:
        """
        Speak (or play) an utterance, then capture the caller's next input.

        In speech mode the utterance is nested in the Gather so the caller can
        barge in. If nothing is captured, Twilio falls through to a Redirect
        back to the input URL, which reprompts.
        """
        response = VoiceResponse()

        if self.input_mode == "recording":
            if utterance:
                self._speak(response, utterance)
            response.record(
                action=input_url,
                method="POST",
                timeout=self.record_timeout,
                max_length=self.record_max_length,
                play_beep=False,
            )
        else:
            gather = Gather(
                input="speech",
                action=input_url,
                method="POST",
                speech_timeout="auto",
                timeout=self.gather_timeout,
                language=self.language,
            )
            if utterance:
                self._speak(gather, utterance)
            response.append(gather)

        response.redirect(input_url, method="POST")
        return str(response)

    def speak_and_hangup(self, utterances: Iterable[Utterance]) -> str:
        """Speak the final utterances and end the call."""
        response = VoiceResponse()
        for utterance in utterances:
            self._speak(response, utterance)
        response.hangup()
        return str(response)

    def apology_and_redirect(self, apology: str, redirect_url: str) -> str:
        """Apologize and send the caller back through the entry webhook."""
        response = VoiceResponse()
        response.say(apology, voice=self.say_voice, language=self.language)
        response.redirect(redirect_url, method="POST")
        return str(response)

    def _speak(self, verb: Union[VoiceResponse, Gather], utterance: Utterance) -> None:
        if utterance.audio_url:
            verb.play(utterance.audio_url)
        else:
            verb.say(utterance.text, voice=self.say_voice, language=self.language)
