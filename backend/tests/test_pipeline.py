import pytest

from conftest import build_jump_frames, build_shuttle_frames, build_stride_frames, make_frame, pushup_keypoints
from fitassess import analyze
from fitassess.cv.frame_source import MappingPresenceDetector, SequenceFrameSource
from fitassess.cv.resource_profile import CancellationToken
from fitassess.cv.result_compiler import ResultCompiler
from fitassess.errors import AnalysisCancelled
from fitassess.models.assessment import AnalysisStatus, DegradationReason, RatingTier
from fitassess.models.integrity import IntegrityCheckKind
from fitassess.schemas.frame import PresenceObservation
from fitassess.schemas.options import AnalysisOptions, NormsTable, NormThresholds


class FailingPresenceDetector:
    """Presence capability that breaks part-way through a recording."""

    def __init__(self, fail_at=7):
        self.fail_at = fail_at

    def detect(self, frame):
        if frame.index == self.fail_at:
            raise RuntimeError("detector crashed")
        return PresenceObservation(person_count=1)


def _check(result, kind):
    return next(c for c in result.integrity.checks if c.check_kind == kind)


class TestScenarios:

    def test_clean_jump(self, jump_frames, athlete):
        result = analyze(jump_frames, "vertical-jump", athlete)

        assert result.status == AnalysisStatus.OK
        assert result.repetition_or_event.kind == "metric"
        assert result.repetition_or_event.metric_value > 0
        assert len(result.repetition_or_event.events) == 1
        assert [p.phase_kind for p in result.phases].count("extend") == 1
        assert result.quality.overall >= 0.8
        assert result.integrity.score < 0.3
        assert result.benchmark is not None
        assert result.confidence == pytest.approx(0.9)

    def test_spliced_jump_with_second_person(self, athlete):
        brightness = [0.85 if 15 <= i < 20 or 25 <= i < 30 else 0.4 for i in range(40)]
        color_variance = [0.2] * 20 + [0.45] * 20
        frames = build_jump_frames(extra_standing=10, brightness=brightness, color_variance=color_variance)
        detector = MappingPresenceDetector.from_person_counts({i: 2 for i in range(20, 25)})

        result = analyze(frames, "vertical-jump", athlete, presence_detector=detector)

        assert result.integrity.score >= 0.55
        assert result.integrity.is_suspicious
        assert result.status == AnalysisStatus.OK
        # 0.8 - 0.3 + 0.1
        assert result.confidence == pytest.approx(0.6)

    def test_regular_situps(self, situp_frames, athlete):
        result = analyze(situp_frames, "sit-ups", athlete)

        assert result.status == AnalysisStatus.OK
        assert result.repetition_or_event.repetition_count == 5
        assert result.repetition_or_event.metric_value is None
        assert result.quality.consistency >= 0.9

    def test_score_on_good_threshold(self, pushup_frames, athlete):
        norms = NormsTable(norms={
            "push-ups": {"16-18": {"male": NormThresholds(poor=1, average=3, good=5, excellent=8)}},
        })

        result = analyze(pushup_frames, "push-ups", athlete, AnalysisOptions(norms_table=norms))

        assert result.repetition_or_event.repetition_count == 5
        assert result.benchmark.percentile == 75.0
        assert result.benchmark.rating_tier == RatingTier.GOOD


class TestDegradedResults:

    def test_short_sequence(self, pushup_frames, athlete):
        result = analyze(pushup_frames[:6], "push-ups", athlete)

        assert result.status == AnalysisStatus.DEGRADED
        assert result.confidence == 0.0
        assert len(result.phases) == 1
        assert result.phases[0].phase_kind == "unknown"
        assert result.repetition_or_event is None
        assert result.integrity is not None
        assert result.explanation

    def test_no_transition_is_degraded(self, athlete):
        frames = [make_frame(i, pushup_keypoints(170.0)) for i in range(20)]

        result = analyze(frames, "push-ups", athlete)

        assert result.status == AnalysisStatus.DEGRADED
        assert result.error_kind == DegradationReason.SEGMENTATION_FAILURE
        assert result.confidence == 0.0
        assert result.integrity is not None

    def test_missing_norms(self, pushup_frames, athlete):
        options = AnalysisOptions(norms_table=NormsTable(norms={}))

        result = analyze(pushup_frames, "push-ups", athlete, options)

        assert result.status == AnalysisStatus.DEGRADED
        assert result.error_kind == DegradationReason.BENCHMARK_UNAVAILABLE
        assert result.repetition_or_event.repetition_count == 5
        assert result.benchmark is None
        assert result.confidence == 0.0


class TestFailedResults:

    def test_unknown_test_kind(self, pushup_frames, athlete):
        result = analyze(pushup_frames, "hula-hoop", athlete)

        assert result.status == AnalysisStatus.FAILED
        assert result.error_kind == DegradationReason.INPUT_ERROR
        assert result.test_kind == "hula-hoop"
        assert result.confidence == 0.0

    def test_empty_sequence(self, athlete):
        result = analyze([], "push-ups", athlete)

        assert result.status == AnalysisStatus.FAILED
        assert result.integrity is None

    def test_out_of_order_frames(self, pushup_frames, athlete):
        frames = list(pushup_frames)
        frames[3], frames[4] = frames[4], frames[3]

        result = analyze(frames, "push-ups", athlete)

        assert result.status == AnalysisStatus.FAILED

    def test_invalid_profile(self, pushup_frames):
        result = analyze(pushup_frames, "push-ups", {"age": 17, "gender": "unknown"})

        assert result.status == AnalysisStatus.FAILED
        assert result.error_kind == DegradationReason.INPUT_ERROR

    def test_no_keypoints_at_all(self, athlete):
        frames = [make_frame(i, {}) for i in range(20)]

        result = analyze(frames, "sit-ups", athlete)

        assert result.status == AnalysisStatus.FAILED
        assert result.error_kind == DegradationReason.ESTIMATION_GAP
        assert result.integrity is not None


class TestPipelineProperties:

    def test_idempotent(self, jump_frames, athlete):
        first = analyze(jump_frames, "vertical-jump", athlete)
        second = analyze(jump_frames, "vertical-jump", athlete)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_accepts_dicts_and_sources(self, pushup_frames):
        payload = [f.model_dump(by_alias=True) for f in pushup_frames]

        from_dicts = analyze(payload, "push-ups", {"age": 17, "gender": "male", "heightCm": 175})
        from_source = analyze(
            SequenceFrameSource(pushup_frames), "push-ups", {"age": 17, "gender": "male", "heightCm": 175}
        )

        assert from_dicts == from_source
        assert from_dicts.repetition_or_event.repetition_count == 5

    def test_serialized_field_names(self, jump_frames, athlete):
        data = analyze(jump_frames, "vertical-jump", athlete).to_dict()

        assert set(data) >= {
            "testKind", "repetitionOrEvent", "quality", "integrity",
            "benchmark", "confidence", "status",
        }
        assert data["status"] == "Ok"
        assert "isSuspicious" in data["integrity"]
        assert "ratingTier" in data["benchmark"]
        assert "rangeOfMotion" in data["quality"]

    def test_cancelled_analysis_raises(self, jump_frames, athlete):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AnalysisCancelled):
            analyze(jump_frames, "vertical-jump", athlete, cancel_token=token)

    def test_low_device_profile_still_counts(self, athlete):
        from conftest import build_cycle_frames

        frames = build_cycle_frames(pushup_keypoints, 50.0, 170.0, cycles=5, frames_per_half=6)

        result = analyze(frames, "push-ups", athlete, AnalysisOptions(device_profile="low"))

        assert result.repetition_or_event.repetition_count == 5


class TestRunningTests:

    def test_shuttle_laps(self, athlete):
        result = analyze(build_shuttle_frames(laps=2), "shuttle-run", athlete)

        assert result.status == AnalysisStatus.OK
        assert [p.phase_kind for p in result.phases] == ["start", "outbound", "return", "outbound", "return"]
        assert result.repetition_or_event.repetition_count == 2
        assert not _check(result, IntegrityCheckKind.MOVEMENT_PATTERN).triggered

    def test_endurance_run(self, athlete):
        result = analyze(build_stride_frames(steps=6), "endurance-run", athlete)

        assert result.status == AnalysisStatus.OK
        assert result.repetition_or_event.repetition_count == 6
        assert not _check(result, IntegrityCheckKind.MOVEMENT_PATTERN).triggered
        assert result.benchmark.rating_tier == RatingTier.POOR

    def test_broad_jump_without_height_warns(self, jump_frames):
        result = analyze(jump_frames, "standing-broad-jump", {"age": 17, "gender": "male"})

        assert result.repetition_or_event.metric_name == "jump_distance_cm"
        assert any("170 cm" in w for w in result.warnings)


class TestIntegrityFailures:

    def test_failing_detector_keeps_other_checks(self, jump_frames, athlete):
        result = analyze(
            jump_frames, "vertical-jump", athlete, presence_detector=FailingPresenceDetector()
        )

        assert result.status == AnalysisStatus.OK
        assert result.integrity is not None
        assert len(result.integrity.checks) == len(IntegrityCheckKind.all())
        multi = _check(result, IntegrityCheckKind.MULTI_PERSON)
        assert not multi.triggered
        assert multi.detail.startswith("check failed: RuntimeError")
        assert any("multi_person" in w for w in result.warnings)
        assert result.confidence == pytest.approx(0.9)

    def test_missing_integrity_is_penalised(self):
        assert ResultCompiler().compute_confidence(None, None) == pytest.approx(0.5)


class TestFrameOrdering:

    @pytest.mark.parametrize("options", [
        AnalysisOptions(sampling_rate=15.0),
        AnalysisOptions(device_profile="low"),
        AnalysisOptions(max_buffered_frames=10),
    ])
    def test_out_of_order_frames_rejected_before_thinning(self, pushup_frames, athlete, options):
        frames = list(pushup_frames)
        frames[3], frames[4] = frames[4], frames[3]

        result = analyze(frames, "push-ups", athlete, options)

        assert result.status == AnalysisStatus.FAILED
        assert result.error_kind == DegradationReason.INPUT_ERROR

    def test_duplicate_timestamp_rejected(self, pushup_frames, athlete):
        frames = list(pushup_frames)
        frames[5] = frames[5].model_copy(update={"timestamp_ms": frames[4].timestamp_ms})

        result = analyze(frames, "push-ups", athlete, AnalysisOptions(sampling_rate=15.0))

        assert result.status == AnalysisStatus.FAILED
