"""Application configuration. Loads from env vars."""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Audio: PCM 16-bit mono, 16kHz (WebSocket clients and the recognizer)
    SAMPLE_RATE: int = 16000
    CHANNELS: int = 1

    # Energy framing. Live frames are coarse (classifier only needs ~4 frames/sec);
    # batch frames are finer so the VAD hangover can resolve 0.3s.
    STREAM_FRAME_SECONDS: float = 0.25
    BATCH_FRAME_SECONDS: float = 0.1
    FRAME_COMPACT_MULTIPLE: int = 4  # compact sample arena once this many frames were consumed

    # Batch VAD (adaptive threshold + hysteresis)
    VAD_NOISE_FLOOR_MULTIPLIER: float = 1.5
    VAD_MAX_ENERGY_RATIO: float = 0.05
    VAD_HYSTERESIS_RATIO: float = 0.5  # low threshold = high * this
    VAD_HANGOVER_SECONDS: float = 0.3
    VAD_MIN_SEGMENT_SECONDS: float = 0.3
    VAD_MERGE_GAP_SECONDS: float = 0.5

    # Two-speaker classifier (energy tuned for mean absolute value)
    CLASSIFIER_ENERGY_FLOOR: float = 0.008
    CLASSIFIER_MEAN_MULTIPLIER: float = 1.2
    CLASSIFIER_WINDOW_SECONDS: float = 0.25
    PRIMARY_SPEAKER_LABEL: str = "Sales"  # near-mic, louder party; default when no audio yet
    SECONDARY_SPEAKER_LABEL: str = "Customer"
    PENDING_SPEAKER_LABEL: str = "..."  # label of the volatile (in-progress) span

    # Multi-speaker clustering: change-point ratio bands and cluster radius
    CHANGE_STABLE_ENERGY_MIN: float = 0.3
    CHANGE_STABLE_ENERGY_MAX: float = 3.0
    CHANGE_STABLE_ZCR_MIN: float = 0.4
    CHANGE_STABLE_ZCR_MAX: float = 2.5
    CHANGE_STRONG_ENERGY_MIN: float = 0.2
    CHANGE_STRONG_ENERGY_MAX: float = 5.0
    CHANGE_STRONG_MIN_GAP_SECONDS: float = 0.3
    CHANGE_COMBINED_ENERGY_MIN: float = 0.4
    CHANGE_COMBINED_ENERGY_MAX: float = 2.5
    CHANGE_COMBINED_ZCR_MIN: float = 0.5
    CHANGE_COMBINED_ZCR_MAX: float = 2.0
    CHANGE_COMBINED_MIN_GAP_SECONDS: float = 0.5
    CLUSTER_RADIUS: float = 0.4
    SPEAKER_LABEL_PREFIX: str = "Speaker "

    # Diarization policy: two fixed roles (sales call) vs unknown speaker count
    DIARIZATION_MODE: Literal["two_speaker", "clustering"] = "two_speaker"
    BATCH_DIARIZATION_MODE: Literal["two_speaker", "clustering"] = "clustering"

    # Merging
    STREAM_GAP_TOLERANCE_SECONDS: float = 0.6  # live: same-speaker finals closer than this are joined

    # Recognizer
    LOCALE: str = "en-US"
    LOCAL_WHISPER_MODEL: str = "base"  # base | small | medium | large-v3
    LOCAL_WHISPER_DEVICE: Literal["cpu", "cuda"] = "cpu"
    LOCAL_WHISPER_COMPUTE_TYPE: Literal["int8", "float16"] = "int8"
    LOCAL_WHISPER_BEAM_SIZE_PARTIAL: int = 1
    LOCAL_WHISPER_BEAM_SIZE_FINAL: int = 5

    # Real-time STT: rolling window, transcribed every STEP seconds
    STT_WINDOW_SECONDS: float = 5.0
    STT_STEP_SECONDS: float = 1.0
    STT_MIN_CHUNK_SECONDS: float = 0.5  # do not transcribe chunks < 500ms (prevent hallucination)
    STT_COMMIT_AGE_SECONDS: float = 2.0  # segments ending before (current_audio_time - this) -> final

    # Custom vocabulary (recognition hints). Empty category = all categories.
    VOCABULARY_PATH: str = "./vocabulary.json"
    VOCABULARY_CATEGORY: str = ""

    # Session transcript storage: one .txt per live session, written once on stop.
    TRANSCRIPT_SAVE_ENABLED: bool = True
    TRANSCRIPT_DIR: str = "./transcripts"
    TRANSCRIPT_ADD_TIMESTAMPS: bool = False  # prefix each line with [MM:SS.ss]

    # Finished live sessions stay readable over HTTP for this long, then are purged.
    SESSION_RETENTION_SECONDS: float = 3600.0

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path empty = console only.
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
