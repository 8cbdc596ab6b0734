"""
audio.py

Decode carriers to interleaved 16-bit PCM and encode PCM back to a file.

 - .wav/.flac are read/written with soundfile directly.
 - anything else (MP3) goes through pydub, which needs ffmpeg on PATH.
   Encoding writes an intermediate PCM_16 WAV and re-encodes it at the
   requested bitrate.
"""
import io
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Union

import numpy as np
import soundfile as sf
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from lsb_stego.errors import AudioCodecError

logger = logging.getLogger(__name__)

PCM_EXTENSIONS = (".wav", ".flac")


@dataclass
class DecodedAudio:
    samples: np.ndarray  # interleaved int16
    sample_rate: int
    channels: int

    @property
    def frames(self) -> int:
        return len(self.samples) // max(1, self.channels)


def is_pcm_path(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in PCM_EXTENSIONS


def decode(source: Union[str, bytes]) -> DecodedAudio:
    try:
        if isinstance(source, str) and is_pcm_path(source):
            data, sr = sf.read(source, dtype="int16", always_2d=True)
            return DecodedAudio(data.reshape(-1).copy(), sr, data.shape[1])

        if isinstance(source, (bytes, bytearray)):
            audio = AudioSegment.from_file(io.BytesIO(bytes(source)))
        else:
            audio = AudioSegment.from_file(source)
    except (CouldntDecodeError, OSError, RuntimeError) as e:
        # soundfile raises LibsndfileError (a RuntimeError)
        raise AudioCodecError(f"failed to decode audio: {e}") from e

    audio = audio.set_sample_width(2)
    samples = np.array(audio.get_array_of_samples(), dtype=np.int16)
    logger.info("[*] Decoded: channels=%d, samples=%d, sr=%d", audio.channels, len(samples), audio.frame_rate)
    return DecodedAudio(samples, audio.frame_rate, audio.channels)


def write_wav(path: str, samples: np.ndarray, sample_rate: int, channels: int) -> None:
    frames = np.asarray(samples, dtype=np.int16).reshape(-1, channels)
    sf.write(path, frames, sample_rate, subtype="PCM_16")


def encode(samples: np.ndarray, sample_rate: int, channels: int, bitrate: int, output_path: str) -> None:
    if is_pcm_path(output_path):
        write_wav(output_path, samples, sample_rate, channels)
        logger.info("[*] PCM written to %s", output_path)
        return

    fd, tmp_wav = tempfile.mkstemp(suffix=".stego.wav")
    os.close(fd)
    try:
        write_wav(tmp_wav, samples, sample_rate, channels)
        audio = AudioSegment.from_wav(tmp_wav)
        audio.export(output_path, format="mp3", bitrate=f"{bitrate}k")
    except (CouldntEncodeError, CouldntDecodeError, OSError) as e:
        raise AudioCodecError(f"failed to encode to MP3: {e}") from e
    finally:
        os.remove(tmp_wav)
    logger.info("[*] MP3 re-encoded to %s (bitrate %dk)", output_path, bitrate)

