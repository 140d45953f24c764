import pytest

from etl.bingo import FREE_POSITION, LINES, compute_score


def test_twelve_lines_through_centre():
    assert len(LINES) == 12
    assert LINES[0] == (0, 1, 2, 3, 4)
    assert LINES[5] == (0, 5, 10, 15, 20)
    assert LINES[10] == (0, 6, 12, 18, 24)
    assert LINES[11] == (4, 8, 12, 16, 20)
    assert sum(FREE_POSITION in line for line in LINES) == 4


def test_empty_card_has_nothing():
    assert compute_score([]) == compute_score({FREE_POSITION})
    score = compute_score([])
    assert (score.lines, score.blackout, score.claimed) == (0, False, 0)


def test_row_column_and_diagonal():
    assert compute_score([20, 21, 22, 23, 24]).lines == 1
    assert compute_score([1, 6, 11, 16, 21]).lines == 1


def test_free_square_completes_middle_lines():
    middle_row = compute_score([10, 11, 13, 14])
    assert middle_row.lines == 1
    assert middle_row.claimed == 4

    diagonal = compute_score([0, 6, 18, 24])
    assert diagonal.lines == 1


def test_claiming_free_does_not_count():
    assert compute_score([FREE_POSITION, 0]).claimed == 1


def test_blackout():
    everything = [p for p in range(25) if p != FREE_POSITION]
    score = compute_score(everything)
    assert score == compute_score(range(25))
    assert (score.lines, score.blackout, score.claimed) == (12, True, 24)

    assert not compute_score(everything[1:]).blackout


def test_off_board_position():
    with pytest.raises(ValueError):
        compute_score([25])
