# Shared fixtures: synthetic carriers, a fake MP3 stream and WAV files on disk

import shutil

import numpy as np
import pytest
import soundfile as sf

MP3_HEADER = b"\xFF\xFB\x90\x64"  # MPEG-1 Layer III, 128 kbps, 44.1 kHz, joint stereo
MP3_FRAME_SIZE = 417

requires_ffmpeg = pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")


def make_samples(count, seed=1234):
    rng = np.random.RandomState(seed)
    return rng.randint(-12000, 12000, size=count).astype(np.int16)


def make_mp3_stream(frames=200, seed=7, id3=b""):
    """Frame headers followed by random bodies; enough to look like an MP3 to the scanner."""
    rng = np.random.RandomState(seed)
    body = []
    for _ in range(frames):
        payload = rng.randint(0, 256, size=MP3_FRAME_SIZE - 4).astype(np.uint8)
        # keep the body free of accidental sync words
        payload[payload == 0xFF] = 0x7F
        body.append(MP3_HEADER + payload.tobytes())
    return id3 + b"".join(body)


@pytest.fixture
def samples():
    return make_samples(100_000)


@pytest.fixture
def small_samples():
    return make_samples(1000, seed=99)


@pytest.fixture
def mp3_stream():
    return make_mp3_stream()


@pytest.fixture
def secret_file(tmp_path):
    path = tmp_path / "secret.txt"
    path.write_bytes(b"The quick brown fox jumps over the lazy dog.\n" * 4)
    return path


@pytest.fixture
def cover_wav(tmp_path):
    """Two seconds of stereo noise at 44.1 kHz, 16-bit PCM."""
    path = tmp_path / "cover.wav"
    frames = make_samples(44100 * 2 * 2, seed=42).reshape(-1, 2)
    sf.write(str(path), frames, 44100, subtype="PCM_16")
    return path


@pytest.fixture
def cover_mp3(tmp_path):
    path = tmp_path / "cover.mp3"
    path.write_bytes(make_mp3_stream())
    return path
