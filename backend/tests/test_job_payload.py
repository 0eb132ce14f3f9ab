import math

import pytest

from socialvault.shared.core.exceptions import ValidationError
from socialvault.shared.models.enums import ReminderDeliveryStatus
from socialvault.shared.utils.job_payload import (
    get_reminder_state,
    merge_job_payload,
    payload_float,
    payload_str,
    referenced_backup_ids,
)


def test_merge_preserves_untouched_keys():
    existing = {"username": "vaultfan", "max_tweets": 500, "target_profile": True}

    merged = merge_job_payload(existing, {"scrape_phase": "scraping"})

    assert merged == {
        "username": "vaultfan",
        "max_tweets": 500,
        "target_profile": True,
        "scrape_phase": "scraping",
    }


def test_merge_none_removes_key_and_missing_key_is_noop():
    merged = merge_job_payload({"partial_backup_id": "b1", "a": 1}, {"partial_backup_id": None, "never_set": None})

    assert merged == {"a": 1}


def test_merge_does_not_mutate_inputs():
    existing = {"a": 1}
    patch = {"b": 2}

    merge_job_payload(existing, patch)

    assert existing == {"a": 1}
    assert patch == {"b": 2}


def test_merge_treats_missing_payload_as_empty():
    assert merge_job_payload(None, {"a": "x"}) == {"a": "x"}


@pytest.mark.parametrize("value", [{"nested": 1}, [1, 2], math.inf])
def test_merge_rejects_non_scalar_values(value):
    with pytest.raises(ValidationError):
        merge_job_payload({}, {"key": value})


def test_merge_rejects_empty_key():
    with pytest.raises(ValidationError):
        merge_job_payload({}, {"": 1})


def test_accessors_tolerate_bad_values():
    payload = {"name": "  ", "cost": "1.5", "flag": True, "nan": "nan"}

    assert payload_str(payload, "name") is None
    assert payload_float(payload, "cost") == 1.5
    assert payload_float(payload, "flag") == 0.0
    assert payload_float(payload, "nan", default=2.0) == 2.0


def test_reminder_state_ignores_unknown_values():
    assert get_reminder_state({"reminder_delivery_status": "sent"}) == ReminderDeliveryStatus.SENT
    assert get_reminder_state({"reminder_delivery_status": "bogus"}) is None
    assert get_reminder_state({}) is None


def test_referenced_backup_ids_collects_all_reference_keys():
    payload = {"partial_backup_id": "p", "created_backup_id": "c", "result_backup_id": "", "other": "x"}

    assert referenced_backup_ids(payload) == {"p", "c"}
