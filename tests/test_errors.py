import pytest

from barry.errors import NotFoundError, is_not_found_error


def test_message():
    assert str(NotFoundError()) == "barry: not found"


def test_not_found_error_is_recognised():
    assert is_not_found_error(NotFoundError()) is True


def test_other_error_with_same_message_is_recognised():
    assert is_not_found_error(RuntimeError("barry: not found")) is True


@pytest.mark.parametrize("err", [None, RuntimeError("boom"), ValueError("")])
def test_other_errors_are_not_recognised(err):
    assert is_not_found_error(err) is False


def test_can_be_raised_and_caught():
    with pytest.raises(NotFoundError, match="barry: not found") as exc_info:
        raise NotFoundError()
    assert is_not_found_error(exc_info.value) is True