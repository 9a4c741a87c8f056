import pytest

from mipscache.predictor import BranchPredictor, JumpTable


def test_unknown_branch_is_strongly_not_taken():
    predictor = BranchPredictor()
    assert predictor.state(0x40) == 0
    assert predictor.predicted_target(0x40) is None


def test_new_taken_branch_is_strongly_taken():
    predictor = BranchPredictor()
    predictor.update(0x40, 0x80, True)
    assert predictor.state(0x40) == 3
    assert predictor.predicted_target(0x40) == 0x80


def test_new_not_taken_branch_is_strongly_not_taken():
    predictor = BranchPredictor()
    predictor.update(0x40, 0x80, False)
    assert 0x40 in predictor
    assert predictor.state(0x40) == 0
    assert predictor.predicted_target(0x40) is None


def test_counter_saturates_upwards():
    predictor = BranchPredictor()
    predictor.update(0x10, 0x20, False)
    states = []
    for _ in range(4):
        predictor.update(0x10, 0x20, True)
        states.append(predictor.state(0x10))
    assert states == [1, 2, 3, 3]


def test_counter_saturates_downwards():
    predictor = BranchPredictor()
    predictor.update(0x10, 0x20, True)
    states = []
    for _ in range(4):
        predictor.update(0x10, 0x20, False)
        states.append(predictor.state(0x10))
    assert states == [2, 1, 0, 0]


def test_target_fixed_by_first_update():
    predictor = BranchPredictor()
    predictor.update(0x10, 0x20, True)
    predictor.update(0x10, 0x99, True)
    assert predictor.predicted_target(0x10) == 0x20


def test_weak_taken_still_predicts_target():
    predictor = BranchPredictor()
    predictor.update(0x10, 0x20, True)
    predictor.update(0x10, 0x20, False)
    assert predictor.state(0x10) == 2
    assert predictor.predicted_target(0x10) == 0x20
    predictor.update(0x10, 0x20, False)
    assert predictor.predicted_target(0x10) is None


def test_full_table_ignores_new_branches():
    predictor = BranchPredictor(slots=2)
    predictor.update(4, 40, True)
    predictor.update(8, 80, True)
    predictor.update(12, 120, True)
    assert len(predictor) == 2
    assert 12 not in predictor
    assert predictor.state(12) == 0


def test_predictor_rejects_no_slots():
    with pytest.raises(ValueError):
        BranchPredictor(slots=0)


def test_jump_table_add_and_lookup():
    table = JumpTable()
    assert 0x30 not in table
    table.add(0x30, 0x100)
    assert 0x30 in table
    assert table.target(0x30) == 0x100


def test_jump_table_keeps_first_target():
    table = JumpTable()
    table.add(0x30, 0x100)
    table.add(0x30, 0x200)
    assert table.target(0x30) == 0x100
    assert len(table) == 1


def test_jump_table_capacity():
    table = JumpTable(slots=5)
    for pc in range(4, 28, 4):
        table.add(pc, pc * 10)
    assert len(table) == 5
    assert 24 not in table


def test_jump_table_unknown_target_raises():
    table = JumpTable()
    with pytest.raises(KeyError):
        table.target(0x44)


def test_jump_table_rejects_no_slots():
    with pytest.raises(ValueError):
        JumpTable(slots=0)