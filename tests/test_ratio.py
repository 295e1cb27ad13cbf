import pytest

from paceguard_cli.detectors.ratio import calculate_ratio, is_ratio_healthy


def test_ratio_is_one_when_nothing_attributed() -> None:
    assert calculate_ratio(0, 0) == 1.0


@pytest.mark.parametrize(
    ("human", "agent", "expected"),
    [(1, 0, 1.0), (0, 5, 0.0), (1, 1, 0.5), (1, 3, 0.25), (3, 7, 0.3)],
)
def test_ratio_is_human_share(human: int, agent: int, expected: float) -> None:
    assert calculate_ratio(human, agent) == pytest.approx(expected)


def test_healthy_ratio_is_inclusive_of_target() -> None:
    assert is_ratio_healthy(1, 1, 0.5)
    assert not is_ratio_healthy(1, 2, 0.5)


def test_empty_history_is_healthy_for_any_target() -> None:
    assert is_ratio_healthy(0, 0, 1.0)
    assert is_ratio_healthy(0, 0, 0.0)


def test_zero_target_is_always_healthy() -> None:
    assert is_ratio_healthy(0, 100, 0.0)
