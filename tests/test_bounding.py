import pytest

from vault_invariants.bounding import clamp


@pytest.mark.parametrize("value", [0, 1, 50, 99, 100])
def test_clamp_keeps_in_range_values(value):
    assert clamp(value, 0, 100) == value


@pytest.mark.parametrize(
    "value,low,high,expected",
    [
        (101, 0, 100, 0),
        (102, 0, 100, 1),
        (202, 0, 100, 0),
        (-1, 0, 100, 100),
        (-2, 0, 100, 99),
        (0, 1, 10, 10),
        (11, 1, 10, 1),
        (2**256, 1, 1, 1),
        (-(2**255), 5, 5, 5),
    ],
)
def test_clamp_folds_out_of_range_values(value, low, high, expected):
    assert clamp(value, low, high) == expected


def test_clamp_result_always_in_range_and_idempotent():
    for value in (-(10**30), -7, 3, 10**9, 2**96, 2**256 - 1):
        result = clamp(value, 1, 86400)
        assert 1 <= result <= 86400
        assert clamp(result, 1, 86400) == result


def test_clamp_rejects_empty_range():
    with pytest.raises(ValueError, match="empty range"):
        clamp(5, 10, 1)


def test_clamp_logs_only_when_folding(capsys):
    clamp(5, 0, 10, log_on_clamp=True, label="deposit.amount")
    assert capsys.readouterr().err == ""

    clamp(15, 0, 10, log_on_clamp=True, label="deposit.amount")
    err = capsys.readouterr().err
    assert "deposit.amount" in err
    assert "15 -> 4" in err
