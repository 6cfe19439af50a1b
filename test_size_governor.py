"""
Tests for the size governor's ordered reduction search.

A recording fake engine stands in for the codec: "images" are plain
`Dimensions` and every encode writes a file whose byte count is a
deterministic function of pixel count and quality.
"""

import logging

import pytest

from meuralize.models.frame import Dimensions, GovernorOutcome, GovernorStage
from meuralize.schemas import SizeBudget
from meuralize.services.size_governor import SizeGovernor


class FakeEngine:
    def __init__(self, bytes_per_pixel=None):
        # Bytes per pixel at each quality; None is the initial full-quality write.
        self.bytes_per_pixel = bytes_per_pixel or {None: 0.003, 85: 0.002, 70: 0.0015, 60: 0.001}
        self.writes = []

    def dimensions(self, image):
        return image

    def resize(self, image, size):
        return size

    def encode(self, image, path, quality=None):
        self.writes.append((image, quality))
        size = int(image.width * image.height * self.bytes_per_pixel[quality])
        path.write_bytes(b"\0" * size)


BUDGET = SizeBudget(max_bytes=5_000)


def _write_initial(engine, path, image, quality=None):
    engine.encode(image, path, quality=quality)
    engine.writes.clear()


def test_within_budget_is_a_noop(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "small-meural.jpg"
    image = Dimensions(1000, 500)
    _write_initial(engine, path, image)

    result = SizeGovernor(BUDGET, engine).enforce(image, path)

    assert result.outcome is GovernorOutcome.WITHIN_BUDGET
    assert result.attempts == []
    assert engine.writes == []
    assert result.final_bytes == result.initial_bytes == 1500


def test_downscale_alone_can_satisfy(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "big-meural.jpg"
    image = Dimensions(3840, 2160)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=7_000), engine).enforce(image, path)

    assert result.outcome is GovernorOutcome.REDUCED
    assert result.accepted_stage is GovernorStage.DOWNSCALE
    assert engine.writes == [(Dimensions(1920, 1080), None)]
    assert path.stat().st_size == result.final_bytes == 6220


def test_quality_ladder_runs_in_order_and_stops_at_first_fit(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "photo-meural.jpg"
    image = Dimensions(3840, 2160)
    _write_initial(engine, path, image)

    # 1920x1080 at q85 = 4147 bytes, q70 = 3110 bytes.
    result = SizeGovernor(SizeBudget(max_bytes=3_500), engine).enforce(image, path)

    assert [q for _, q in engine.writes] == [None, 85, 70]
    assert [a.stage for a in result.attempts] == [
        GovernorStage.DOWNSCALE,
        GovernorStage.QUALITY_LADDER,
        GovernorStage.QUALITY_LADDER,
    ]
    assert result.accepted_stage is GovernorStage.QUALITY_LADDER
    assert result.quality == 70
    assert result.final_bytes <= 3_500


def test_ladder_skips_downscale_when_already_at_floor(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "hd-meural.jpeg"
    image = Dimensions(1920, 1080)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=2_500), engine).enforce(image, path)

    assert [q for _, q in engine.writes] == [85, 70, 60]
    assert result.quality == 60
    assert result.outcome is GovernorOutcome.REDUCED


def test_png_skips_quality_ladder(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "art-meural.png"
    image = Dimensions(1920, 1080)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=5_000), engine).enforce(image, path)

    assert all(q is None for _, q in engine.writes)
    assert result.attempts[0].stage is GovernorStage.ITERATIVE_SHRINK
    assert result.attempts[0].dimensions == Dimensions(1728, 972)
    assert result.accepted_stage is GovernorStage.ITERATIVE_SHRINK
    assert result.final_bytes <= 5_000


def test_shrink_loop_compounds_and_keeps_last_quality(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "dense-meural.jpg"
    image = Dimensions(1920, 1080)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=1_000), engine).enforce(image, path)

    shrink = [a for a in result.attempts if a.stage is GovernorStage.ITERATIVE_SHRINK]
    assert [a.dimensions for a in shrink[:3]] == [
        Dimensions(1728, 972),
        Dimensions(1555, 875),
        Dimensions(1400, 788),
    ]
    assert all(a.quality == 60 for a in shrink)
    assert result.final_bytes <= 1_000


def test_unreachable_budget_terminates_with_warning(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "huge-meural.jpg"
    image = Dimensions(3840, 2160)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=1), engine).enforce(image, path)

    # downscale + 3 qualities + 10 shrink iterations, then stop.
    assert len(engine.writes) == 14
    assert result.outcome is GovernorOutcome.EXHAUSTED
    assert result.accepted_stage is None
    assert result.over_budget
    assert path.stat().st_size == result.final_bytes

    sizes = [result.initial_bytes] + [a.size_bytes for a in result.attempts]
    assert all(after <= before for before, after in zip(sizes, sizes[1:]))


def test_zero_shrink_attempts_stops_after_ladder(tmp_path):
    engine = FakeEngine()
    path = tmp_path / "capped-meural.jpg"
    image = Dimensions(1920, 1080)
    _write_initial(engine, path, image)

    governor = SizeGovernor(SizeBudget(max_bytes=1), engine, max_shrink_attempts=0)
    result = governor.enforce(image, path)

    assert [q for _, q in engine.writes] == [85, 70, 60]
    assert result.outcome is GovernorOutcome.EXHAUSTED


def test_invalid_shrink_factor_is_rejected():
    with pytest.raises(ValueError):
        SizeGovernor(BUDGET, FakeEngine(), shrink_factor=1.0)


def test_exhausted_budget_is_logged_below_warning(tmp_path, caplog):
    caplog.set_level(logging.DEBUG)
    engine = FakeEngine()
    path = tmp_path / "huge-meural.png"
    image = Dimensions(3840, 2160)
    _write_initial(engine, path, image)

    result = SizeGovernor(SizeBudget(max_bytes=1), engine).enforce(image, path)

    assert result.outcome is GovernorOutcome.EXHAUSTED
    assert any("after all reduction stages" in r.getMessage() for r in caplog.records)
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
