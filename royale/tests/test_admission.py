"""
Tests for upload admission control.
"""
from __future__ import annotations

import pytest

from royale.errors import QuotaExceededError, ValidationError
from royale.services.admission import check_admission

PNG = "image/png"


def test_admits_batch_within_cap():
    assert check_admission(existing=2, total_matches=6, content_types=[PNG, "image/jpeg"]) is None


def test_cap_already_reached():
    with pytest.raises(QuotaExceededError) as exc:
        check_admission(existing=6, total_matches=6, content_types=[PNG])
    assert exc.value.remaining == 0
    assert "maximum number of matches (6)" in exc.value.user_message


def test_overflow_reports_one_more_screenshot():
    with pytest.raises(QuotaExceededError) as exc:
        check_admission(existing=5, total_matches=6, content_types=[PNG, PNG])
    assert exc.value.remaining == 1
    assert "1 more screenshot " in exc.value.user_message


def test_overflow_plural():
    with pytest.raises(QuotaExceededError) as exc:
        check_admission(existing=1, total_matches=4, content_types=[PNG] * 4)
    assert "3 more screenshots" in exc.value.user_message


def test_more_than_four_files():
    with pytest.raises(ValidationError, match="up to 4"):
        check_admission(existing=0, total_matches=10, content_types=[PNG] * 5)


def test_quota_checked_before_batch_size():
    with pytest.raises(QuotaExceededError):
        check_admission(existing=0, total_matches=3, content_types=[PNG] * 5)


def test_non_image_rejected():
    with pytest.raises(ValidationError, match="only image files"):
        check_admission(existing=0, total_matches=6, content_types=[PNG, "application/pdf"])
    with pytest.raises(ValidationError):
        check_admission(existing=0, total_matches=6, content_types=[None])


def test_empty_batch():
    with pytest.raises(ValidationError):
        check_admission(existing=0, total_matches=6, content_types=[])
