from recorder.state import RecordingState, RecordingStateMachine


def test_starts_idle() -> None:
    machine = RecordingStateMachine()
    assert machine.state is RecordingState.IDLE
    assert not machine.is_recording
    assert not machine.is_closed


def test_begin_then_end() -> None:
    machine = RecordingStateMachine()
    assert machine.begin() is True
    assert machine.state is RecordingState.RECORDING
    assert machine.end() is True
    assert machine.state is RecordingState.CLOSED


def test_begin_twice_is_a_no_op() -> None:
    machine = RecordingStateMachine()
    assert machine.begin() is True
    assert machine.begin() is False
    assert machine.state is RecordingState.RECORDING


def test_end_is_idempotent() -> None:
    machine = RecordingStateMachine()
    machine.begin()
    assert machine.end() is True
    assert machine.end() is False
    assert machine.state is RecordingState.CLOSED


def test_end_from_idle_closes() -> None:
    machine = RecordingStateMachine()
    assert machine.end() is True
    assert machine.state is RecordingState.CLOSED


def test_never_moves_backward() -> None:
    machine = RecordingStateMachine()
    machine.begin()
    machine.end()
    assert machine.begin() is False
    assert machine.state is RecordingState.CLOSED
