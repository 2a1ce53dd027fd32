# tests/test_randomization.py
import numpy as np
import pandas as pd
import pytest
from loguru import logger

from studydesign.errors import InvalidConfiguration, UnsupportedMethod
from studydesign.models import RandomizationConfig, RandomizationMethod
from studydesign.randomization import (
    MethodApplied,
    MethodFallback,
    build_block,
    generate_sequence,
    resolve_method,
)
from studydesign.rng import SeededRandom


def _block(ratio=(1, 1), block_size=(4,), seed=42):
    return RandomizationConfig(method=RandomizationMethod.BLOCK, ratio=ratio, block_size=block_size, seed=seed)


def test_block_sequence_reproducible_and_balanced():
    cfg = _block()
    a = generate_sequence(cfg, 8)
    b = generate_sequence(cfg, 8)
    assert a.pairs() == b.pairs()
    arms = a.arm_indices()
    for start in (0, 4):
        block = list(arms[start:start + 4])
        assert block.count(0) == 2
        assert block.count(1) == 2


def test_block_complete_blocks_exactly_balanced_n12():
    seq = generate_sequence(_block(seed=7), 12)
    arms = seq.arm_indices().reshape(3, 4)
    for row in arms:
        assert np.bincount(row, minlength=2).tolist() == [2, 2]


def test_block_uneven_ratio_meets_floor_per_block():
    # ratio 2:1, block 4 -> at least 2 of arm 0 and 1 of arm 1 per block
    seq = generate_sequence(_block(ratio=(2, 1), block_size=(4,), seed=3), 40)
    arms = seq.arm_indices().reshape(10, 4)
    for row in arms:
        counts = np.bincount(row, minlength=2)
        assert counts[0] >= 2
        assert counts[1] >= 1


def test_block_final_partial_block_trimmed():
    seq = generate_sequence(_block(seed=11), 10)
    assert len(seq) == 10
    assert [a.participant_id for a in seq] == list(range(1, 11))
    assert seq.block_size == 4


def test_block_size_defaults_to_four():
    cfg = RandomizationConfig(method="block", seed=1)
    seq = generate_sequence(cfg, 6)
    assert seq.block_size == 4


def test_build_block_three_arms():
    block = build_block((1, 1, 1), 6, SeededRandom(0))
    assert sorted(block) == [0, 0, 1, 1, 2, 2]


def test_simple_two_to_one_converges():
    cfg = RandomizationConfig(method=RandomizationMethod.SIMPLE, ratio=(2, 1), seed=20240601)
    seq = generate_sequence(cfg, 3000)
    counts = np.bincount(seq.arm_indices(), minlength=2)
    assert counts[0] / counts.sum() == pytest.approx(2 / 3, abs=0.05)


def test_simple_without_seed_uses_injected_seed_source():
    cfg = RandomizationConfig(method=RandomizationMethod.SIMPLE, ratio=(2, 1))
    seq = generate_sequence(cfg, 3000, seed_source=lambda: 987654)
    assert seq.seed == 987654
    counts = np.bincount(seq.arm_indices(), minlength=2)
    assert counts[0] / counts.sum() == pytest.approx(2 / 3, abs=0.05)

    replay = generate_sequence(
        RandomizationConfig(method=RandomizationMethod.SIMPLE, ratio=(2, 1), seed=seq.seed), 3000
    )
    assert replay.pairs() == seq.pairs()


def test_seed_zero_is_a_real_seed():
    cfg = RandomizationConfig(method="simple", seed=0)
    seq = generate_sequence(cfg, 5, seed_source=lambda: 123)
    assert seq.seed == 0


def test_explicit_rng_takes_precedence():
    cfg = RandomizationConfig(method="simple", seed=1)
    seq = generate_sequence(cfg, 20, rng=SeededRandom(555))
    assert seq.seed == 555
    assert seq.pairs() == generate_sequence(RandomizationConfig(method="simple", seed=555), 20).pairs()


@pytest.mark.parametrize("method", list(RandomizationMethod))
@pytest.mark.parametrize("n", [0, 1, 5, 17])
def test_length_and_range_for_all_methods(method, n):
    cfg = RandomizationConfig(method=method, ratio=(1, 2, 1), seed=99)
    seq = generate_sequence(cfg, n)
    assert len(seq) == n
    assert all(0 <= a.arm_index < 3 for a in seq)
    assert [a.participant_id for a in seq] == list(range(1, n + 1))


def test_zero_participants_returns_empty():
    seq = generate_sequence(_block(), 0)
    assert len(seq) == 0
    assert seq.pairs() == []


def test_negative_participant_count_rejected():
    with pytest.raises(InvalidConfiguration):
        generate_sequence(_block(), -1)


def test_non_integer_participant_count_rejected():
    with pytest.raises(InvalidConfiguration):
        generate_sequence(_block(), 2.5)


def test_stratified_falls_back_to_block():
    cfg = RandomizationConfig(
        method=RandomizationMethod.STRATIFIED, seed=42, block_size=(4,),
        stratification_factors={"age_band", "site"},
    )
    seq = generate_sequence(cfg, 8)
    assert isinstance(seq.outcome, MethodFallback)
    assert seq.outcome.requested is RandomizationMethod.STRATIFIED
    assert seq.method is RandomizationMethod.BLOCK
    # same draws as an explicit block request with the same seed
    assert seq.pairs() == generate_sequence(_block(seed=42), 8).pairs()


@pytest.mark.parametrize("method", [
    RandomizationMethod.MINIMIZATION,
    RandomizationMethod.CLUSTER,
    RandomizationMethod.COVARIATE_ADAPTIVE,
])
def test_unsupported_methods_fall_back_to_simple(method):
    cfg = RandomizationConfig(method=method, ratio=(1, 1), seed=8)
    seq = generate_sequence(cfg, 30)
    assert seq.outcome.fell_back
    assert seq.outcome.actual is RandomizationMethod.SIMPLE
    assert seq.requested is method
    simple = generate_sequence(RandomizationConfig(method="simple", ratio=(1, 1), seed=8), 30)
    assert seq.pairs() == simple.pairs()


def test_strict_mode_rejects_unsupported_method():
    cfg = RandomizationConfig(method=RandomizationMethod.MINIMIZATION, seed=1)
    with pytest.raises(UnsupportedMethod) as exc:
        generate_sequence(cfg, 10, strict=True)
    assert exc.value.fallback is RandomizationMethod.SIMPLE


def test_strict_mode_keeps_stratified_fallback():
    outcome = resolve_method(RandomizationMethod.STRATIFIED, strict=True)
    assert outcome.actual is RandomizationMethod.BLOCK


def test_applied_outcome_for_implemented_methods():
    seq = generate_sequence(_block(), 4)
    assert seq.outcome == MethodApplied(RandomizationMethod.BLOCK)
    assert not seq.outcome.fell_back


def test_to_frame_has_block_and_arm_columns():
    seq = generate_sequence(_block(), 6)
    df = seq.to_frame(arm_names=["treatment", "control"])
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["participant_id", "arm_index", "block", "arm"]
    assert df["block"].tolist() == [0, 0, 0, 0, 1, 1]
    assert set(df["arm"]) <= {"treatment", "control"}


def test_to_frame_rejects_wrong_arm_name_count():
    seq = generate_sequence(_block(), 4)
    with pytest.raises(ValueError):
        seq.to_frame(arm_names=["only_one"])


def test_fallback_logs_warning():
    messages = []
    sink_id = logger.add(messages.append, level="WARNING", format="{level} {message}")
    try:
        generate_sequence(RandomizationConfig(method=RandomizationMethod.CLUSTER, seed=4), 6)
        generate_sequence(_block(), 4)
    finally:
        logger.remove(sink_id)
    assert len(messages) == 1
    assert messages[0].startswith("WARNING")
    assert "cluster" in messages[0] and "simple" in messages[0]
