"""Tests for the batch VoiceActivityDetector."""
import pytest

from callscribe.audio.models import SpeechSegment
from callscribe.audio.vad import VoiceActivityDetector, merge_speech_segments
from tests.conftest import make_frames

QUIET = 0.01
LOUD = 0.5


def _frames(*runs: tuple[float, int]):
    """Build 0.1 s frames from (energy, count) runs."""
    energies = [energy for energy, count in runs for _ in range(count)]
    return make_frames(energies, frame_seconds=0.1)


@pytest.mark.unit
class TestVoiceActivityDetector:
    @pytest.fixture
    def vad(self) -> VoiceActivityDetector:
        return VoiceActivityDetector()

    def test_empty_input(self, vad: VoiceActivityDetector) -> None:
        assert vad.detect([]) == []

    def test_flat_noise_has_no_speech(self, vad: VoiceActivityDetector) -> None:
        assert vad.detect(make_frames([0.02] * 50, frame_seconds=0.1)) == []

    def test_thresholds(self, vad: VoiceActivityDetector) -> None:
        frames = _frames((QUIET, 10), (LOUD, 10), (QUIET, 10))
        high, low = vad.thresholds(frames)
        # max(0.01 * 1.5, 0.5 * 0.05)
        assert high == pytest.approx(0.025)
        assert low == pytest.approx(0.0125)

    def test_hangover_frame_count(self, vad: VoiceActivityDetector) -> None:
        assert vad.hangover_frames(make_frames([0.1] * 3, frame_seconds=0.1)) == 3
        assert vad.hangover_frames(make_frames([0.1] * 3, frame_seconds=0.25)) == 1

    def test_segment_closes_before_hangover_run(self, vad: VoiceActivityDetector) -> None:
        frames = _frames((QUIET, 10), (LOUD, 10), (QUIET, 10))
        segments = vad.detect(frames)
        assert len(segments) == 1
        assert segments[0].start == pytest.approx(1.0)
        assert segments[0].end == pytest.approx(2.0)

    def test_speech_until_end_of_recording(self, vad: VoiceActivityDetector) -> None:
        segments = vad.detect(_frames((QUIET, 10), (LOUD, 10)))
        assert len(segments) == 1
        assert segments[0].end == pytest.approx(2.0)

    def test_short_dip_does_not_end_segment(self, vad: VoiceActivityDetector) -> None:
        frames = _frames((QUIET, 10), (LOUD, 5), (QUIET, 2), (LOUD, 5), (QUIET, 10))
        segments = vad.detect(frames)
        assert len(segments) == 1
        assert (segments[0].start, segments[0].end) == (pytest.approx(1.0), pytest.approx(2.2))

    def test_blip_shorter_than_minimum_is_dropped(self, vad: VoiceActivityDetector) -> None:
        frames = _frames((QUIET, 10), (LOUD, 2), (QUIET, 10), (LOUD, 10), (QUIET, 10))
        segments = vad.detect(frames)
        assert len(segments) == 1
        assert segments[0].start == pytest.approx(2.2)

    def test_close_segments_are_merged(self, vad: VoiceActivityDetector) -> None:
        frames = _frames((QUIET, 10), (LOUD, 5), (QUIET, 4), (LOUD, 5), (QUIET, 10))
        segments = vad.detect(frames)
        assert len(segments) == 1
        assert (segments[0].start, segments[0].end) == (pytest.approx(1.0), pytest.approx(2.4))

    def test_segments_are_ordered_disjoint_and_long_enough(self, vad: VoiceActivityDetector) -> None:
        frames = _frames(
            (QUIET, 10), (LOUD, 8), (QUIET, 12), (0.3, 6), (QUIET, 15), (LOUD, 3), (QUIET, 9), (0.2, 20), (QUIET, 5)
        )
        segments = vad.detect(frames)
        assert len(segments) == 4
        for segment in segments:
            assert segment.duration >= 0.3 - 1e-9
        for a, b in zip(segments, segments[1:]):
            assert a.end < b.start
            assert b.start - a.end > 0.5

    def test_thresholds_are_configurable(self) -> None:
        frames = _frames((QUIET, 10), (0.014, 10), (QUIET, 10))
        assert VoiceActivityDetector().detect(frames) == []
        sensitive = VoiceActivityDetector(noise_floor_multiplier=1.2, max_energy_ratio=0.01)
        assert len(sensitive.detect(frames)) == 1


@pytest.mark.unit
class TestMergeSpeechSegments:
    def test_gap_at_threshold_merges(self) -> None:
        merged = merge_speech_segments([SpeechSegment(0.0, 1.0), SpeechSegment(1.5, 2.0)], 0.5)
        assert merged == [SpeechSegment(0.0, 2.0)]

    def test_gap_above_threshold_stays_split(self) -> None:
        segments = [SpeechSegment(0.0, 1.0), SpeechSegment(1.6, 2.0)]
        assert merge_speech_segments(segments, 0.5) == segments

    def test_empty(self) -> None:
        assert merge_speech_segments([], 0.5) == []
