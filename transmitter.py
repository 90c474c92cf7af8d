#!/usr/bin/env python3
"""
Transmitter

Connects the chat send/receive flow to the Morse engine. Sending builds the
payload that the message store keeps; receiving plays the message in the
background. Audio problems never reach the send or receive path.
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from audio_resource import AudioResourceError, AudioResourceManager, get_audio_manager
from morse_code import EncodedMessage, TimingProfile, encode
from playback import PlaybackScheduler
from tone_synth import ToneSynthesizer


def build_payload(
    text: str,
    username: Optional[str] = None,
    sent_at: Optional[datetime] = None
) -> Dict:
    """
    Build the stored payload for an outgoing message.

    Args:
        text: Message text
        username: Sender name (default: Anonymous)
        sent_at: Send time (default: now, UTC)

    Returns:
        Payload dictionary
    """
    text = text.strip()
    if not text:
        raise ValueError("Message text is empty")

    sent_at = sent_at or datetime.now(timezone.utc)
    return {
        'username': (username or '').strip() or 'Anonymous',
        'message': text,
        'morse': encode(text).text,
        'encoding': 'morse',
        'sent_at': sent_at.isoformat()
    }


def morse_for_row(row: Dict) -> str:
    """
    Morse text for a stored or realtime row.

    Uses the stored ``morse`` field when present, otherwise encodes the
    message text.
    """
    payload = row.get('payload') or {}
    return payload.get('morse') or encode(payload.get('message') or '').text


class Transmitter:
    """
    Sends and receives Morse messages.

    Incoming messages are played as background tasks; several may be
    playing at once.
    """

    def __init__(
        self,
        manager: Optional[AudioResourceManager] = None,
        synthesizer: Optional[ToneSynthesizer] = None,
        timing: Optional[TimingProfile] = None,
        debug: bool = False
    ):
        self.manager = manager or get_audio_manager()
        self.synthesizer = synthesizer or ToneSynthesizer(debug=debug)
        self.timing = timing or TimingProfile()
        self.debug = debug

        self._playbacks: Set[asyncio.Task] = set()

    def transmit(self, text: str, username: Optional[str] = None) -> Dict:
        """
        Prepare an outgoing message.

        Sending is a user interaction, so the audio output is opened here
        to let later playbacks resume it.

        Args:
            text: Message text
            username: Sender name

        Returns:
            Payload for the message store
        """
        try:
            self.manager.open()
        except AudioResourceError as e:
            if self.debug:
                print(f"Audio unavailable: {e}", file=sys.stderr)

        return build_payload(text, username)

    def receive(self, row: Dict, play_sound: bool = True) -> Optional[asyncio.Task]:
        """
        Handle a row arriving from the message feed.

        Must be called from a running event loop when ``play_sound`` is set.

        Args:
            row: Stored row with a ``payload`` dictionary
            play_sound: Play the message

        Returns:
            The playback task, or None if nothing is played
        """
        morse = morse_for_row(row)
        if not play_sound or not morse:
            return None

        task = asyncio.ensure_future(self.play(EncodedMessage.parse(morse)))
        self._playbacks.add(task)
        task.add_done_callback(self._playbacks.discard)
        return task

    async def play(self, message: EncodedMessage):
        scheduler = PlaybackScheduler(
            message,
            timing=self.timing,
            manager=self.manager,
            synthesizer=self.synthesizer,
            debug=self.debug
        )
        result = await scheduler.run()
        if self.debug:
            print(f"Playback {result}", file=sys.stderr)
        return result

    async def drain(self):
        """Wait for every playback in flight."""
        while self._playbacks:
            await asyncio.gather(*list(self._playbacks))
