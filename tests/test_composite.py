# tests/test_composite.py
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from bmw_saver.schedule.base import WorkTimeProvider
from bmw_saver.schedule.composite import CompositeProvider

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def fake(result=True, error=None):
    p = MagicMock(spec=WorkTimeProvider)
    if error is not None:
        p.is_work_time.side_effect = error
    else:
        p.is_work_time.return_value = result
    return p


def test_all_true():
    assert CompositeProvider(fake(), fake()).is_work_time(NOW) is True


def test_empty_is_work_time():
    assert CompositeProvider().is_work_time(NOW) is True


def test_first_false_short_circuits():
    last = fake()
    assert CompositeProvider(fake(), fake(False), last).is_work_time(NOW) is False
    last.is_work_time.assert_not_called()


def test_error_propagates_unchanged():
    err = ValueError("broken source")
    with pytest.raises(ValueError) as exc:
        CompositeProvider(fake(), fake(error=err)).is_work_time(NOW)
    assert exc.value is err


def test_false_before_error_wins():
    broken = fake(error=RuntimeError("never reached"))
    assert CompositeProvider(fake(False), broken).is_work_time(NOW) is False


def test_close_closes_members():
    a, b = fake(), fake()
    CompositeProvider(a, b).close()
    a.close.assert_called_once()
    b.close.assert_called_once()
