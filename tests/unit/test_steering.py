import pytest

from targetnet.steering import HeadingLock


def test_turn_is_proportional_to_offset_from_centre():
    lock = HeadingLock(frame_width=200, half_fov_degrees=45)
    assert lock.turn_for(100) == 0.0
    assert lock.turn_for(0) == pytest.approx(45.0)
    assert lock.turn_for(200) == pytest.approx(-45.0)


def test_no_prediction_means_no_turn():
    assert HeadingLock().next_turn() == 0.0


def test_lock_on_replaces_wild_jumps():
    lock = HeadingLock(frame_width=200)
    lock.on_prediction(104, 60)
    first = lock.next_turn()
    assert lock.locked
    assert lock.locked_turn == pytest.approx(first)

    lock.on_prediction(0, 60)
    assert lock.next_turn() == pytest.approx(first)

    lock.on_prediction(110, 60)
    assert lock.next_turn() == pytest.approx(lock.turn_for(110))
    assert lock.predictions == [(104, 60), (0, 60), (110, 60)]


def test_heading_change_is_clamped_and_wrapped():
    lock = HeadingLock(frame_width=200)
    lock.on_prediction(0, 100)
    assert lock.next_heading(350.0, max_deflection=10.0) == pytest.approx(0.0)

    lock = HeadingLock(frame_width=200)
    lock.on_prediction(200, 100)
    assert lock.next_heading(5.0, max_deflection=10.0) == pytest.approx(355.0)


def test_centred_target_keeps_heading():
    lock = HeadingLock(frame_width=200)
    lock.on_prediction(100, 100)
    assert lock.next_heading(123.0, max_deflection=10.0) == pytest.approx(123.0)
