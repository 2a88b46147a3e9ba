"""
Microphone recording for the voice-driven modes.

VoiceRecorder opens a non-blocking PyAudio input stream, buffers frames
while recording, and on stop returns the recording as base64-encoded WAV.
The microphone is always released on stop and on release(), which the
mode controller calls whenever the interface is reset.
"""

import base64
import io
import logging
import threading
import wave
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

CHANNELS = 1
RATE = 16000
CHUNK = 1024
SAMPLE_WIDTH = 2  # 16-bit

MICROPHONE_ERROR = "Unable to access microphone. Please check permissions."


class MicrophoneUnavailableError(Exception):
    """Raised when no input device can be opened."""

    pass


class VoiceRecorder:
    """
    Records one clip at a time.

    Example:
        >>> recorder = VoiceRecorder()
        >>> recorder.start()
        >>> audio_b64 = recorder.stop()
    """

    def __init__(self, rate: int = RATE, channels: int = CHANNELS):
        self._rate = rate
        self._channels = channels
        self._audio: Optional[Any] = None
        self._stream: Optional[Any] = None
        self._frames: List[bytes] = []
        self._lock = threading.Lock()
        self._last_recording: Optional[str] = None
        self._continue_flag = 0

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def last_recording(self) -> Optional[str]:
        """Base64 WAV of the most recent completed recording."""
        return self._last_recording

    def _on_frames(self, in_data, frame_count, time_info, status):
        with self._lock:
            self._frames.append(in_data)
        return (None, self._continue_flag)

    def start(self) -> None:
        """
        Acquire the microphone and begin buffering audio.

        Raises:
            MicrophoneUnavailableError: If PyAudio is missing or no device opens
        """
        if self.is_recording:
            return

        try:
            import pyaudio
        except ImportError as e:
            logger.error(f"Recording failed: PyAudio not installed ({e})")
            raise MicrophoneUnavailableError(MICROPHONE_ERROR) from e

        self._frames = []
        self._continue_flag = pyaudio.paContinue
        self._audio = pyaudio.PyAudio()
        try:
            self._stream = self._audio.open(
                format=pyaudio.paInt16,
                channels=self._channels,
                rate=self._rate,
                input=True,
                frames_per_buffer=CHUNK,
                stream_callback=self._on_frames,
            )
        except OSError as e:
            logger.error(f"Recording failed: {e}")
            self.release()
            raise MicrophoneUnavailableError(MICROPHONE_ERROR) from e

        self._stream.start_stream()
        logger.info("Recording started")

    def stop(self) -> Optional[str]:
        """
        Stop recording, release the microphone and encode the clip.

        Returns:
            Base64 WAV data, or None when nothing was being recorded
        """
        if not self.is_recording:
            return None

        self.release()
        with self._lock:
            frames, self._frames = self._frames, []

        self._last_recording = encode_wav_base64(frames, self._rate, self._channels)
        logger.info(f"Recording stopped ({len(frames)} chunks)")
        return self._last_recording

    def release(self) -> None:
        """Close the stream and terminate PyAudio. Safe to call repeatedly."""
        stream, self._stream = self._stream, None
        audio, self._audio = self._audio, None

        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing input stream: {e}")
        if audio is not None:
            audio.terminate()

    def discard(self) -> None:
        """Release the device and forget any recording."""
        self.release()
        self._frames = []
        self._last_recording = None


def encode_wav_base64(frames: List[bytes], rate: int = RATE, channels: int = CHANNELS) -> str:
    """Wrap raw 16-bit PCM frames in a WAV container and base64 encode it."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(rate)
        wf.writeframes(b"".join(frames))
    return base64.b64encode(buffer.getvalue()).decode("ascii")
