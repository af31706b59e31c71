"""Transcription sources — where the spoken (or typed) app idea comes from.

On-device speech capture lives outside this package; anything that offers
`request_permission`, `start`, `stop` and `current_text` can drive the flow.
"""

from typing import Protocol


class TranscriptionSource(Protocol):
    current_text: str

    async def request_permission(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class TypedTranscriptionSource:
    """Keyboard stand-in for a speech recogniser.

    The caller feeds text with `feed()` while listening; `start()` clears it.
    """

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.current_text = ""
        self.is_recording = False

    async def request_permission(self) -> bool:
        return self.granted

    def start(self) -> None:
        self.current_text = ""
        self.is_recording = True

    def stop(self) -> None:
        self.is_recording = False

    def feed(self, text: str) -> None:
        if self.is_recording:
            self.current_text = text
