import math

import pytest

from conftest import make_sample
from engines.validation import ValidationError, validate_interaction


def test_valid_sample_produces_vector(valid_sample):
    vector = validate_interaction(valid_sample)

    assert vector.reading_speed == 120.0
    assert vector.reading_errors.insertions == 1.0
    assert vector.response_time.mean == 3000.0
    assert vector.cultural_background == "maya"
    assert vector.warnings == ()
    assert vector.repetition_needed is False


def test_negative_field_is_named_in_error():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(readingSpeed=-3))

    assert excinfo.value.field == "readingSpeed"
    assert "readingSpeed" in str(excinfo.value)


def test_negative_nested_field_uses_dotted_name():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(readingErrors={"reversals": -1}))

    assert excinfo.value.field == "readingErrors.reversals"


def test_missing_field_is_reported():
    sample = make_sample()
    del sample["attentionSpan"]

    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(sample)

    assert excinfo.value.field == "attentionSpan"


@pytest.mark.parametrize("value", ["fast", True, float("nan"), None])
def test_non_numeric_values_are_rejected(value):
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(mathSpeed=value))

    assert excinfo.value.field == "mathSpeed"


def test_missing_sub_object_is_rejected():
    sample = make_sample()
    sample["mathErrors"] = [1, 2, 3]

    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(sample)

    assert excinfo.value.field == "mathErrors"


def test_blank_cultural_tag_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(culturalBackground="  "))

    assert excinfo.value.field == "culturalBackground"


def test_unknown_device_type_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(deviceType="smartwatch"))

    assert excinfo.value.field == "deviceType"


def test_offline_usage_above_one_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(offlineUsage=1.5))

    assert excinfo.value.field == "offlineUsage"


def test_optional_context_is_carried():
    vector = validate_interaction(
        make_sample(deviceType="tablet", sessionDuration=30, breaksTaken=2, timeOfDay="morning")
    )

    assert vector.device_type == "tablet"
    assert vector.session_duration == 30.0
    assert vector.breaks_taken == 2.0
    assert vector.time_of_day == "morning"
    assert vector.internet_speed is None


def test_zero_sensory_preferences_fail():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(
            make_sample(audioPreference=0, visualPreference=0, kinestheticPreference=0)
        )

    assert excinfo.value.field == "sensoryPreferences"


def test_sensory_preferences_outside_tolerance_are_rescaled_with_warning():
    vector = validate_interaction(
        make_sample(audioPreference=2, visualPreference=1, kinestheticPreference=1)
    )

    assert math.isclose(vector.sensory_total(), 1.0, abs_tol=1e-6)
    assert vector.audio_preference == pytest.approx(0.5)
    assert vector.visual_preference == pytest.approx(0.25)
    assert len(vector.warnings) == 1
    assert "rescaled" in vector.warnings[0]


def test_small_sensory_drift_is_corrected_silently():
    vector = validate_interaction(
        make_sample(audioPreference=0.35, visualPreference=0.35, kinestheticPreference=0.35)
    )

    assert math.isclose(vector.sensory_total(), 1.0, abs_tol=1e-6)
    assert vector.warnings == ()


def test_sensory_tolerance_is_configurable():
    sample = make_sample(audioPreference=0.35, visualPreference=0.35, kinestheticPreference=0.35)

    vector = validate_interaction(sample, sensory_tolerance=0.01)

    assert len(vector.warnings) == 1


def test_derived_features():
    vector = validate_interaction(
        make_sample(helpRequests=5, readingErrors={"substitutions": 3, "omissions": 4})
    )

    assert vector.error_rate == pytest.approx(0.07)
    assert vector.repetition_needed is True


def test_validation_is_idempotent(dyslexia_sample):
    first = validate_interaction(dyslexia_sample)
    second = validate_interaction(dyslexia_sample)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_input_sample_is_not_mutated(valid_sample):
    snapshot = make_sample()

    validate_interaction(make_sample(audioPreference=2))
    validate_interaction(valid_sample)

    assert valid_sample == snapshot


def test_vector_round_trips_through_dict(valid_sample):
    vector = validate_interaction(valid_sample)

    restored = type(vector).from_dict(vector.to_dict())

    assert restored == vector


def test_integer_beyond_float_range_is_a_field_error():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(readingSpeed=10**400))

    assert excinfo.value.field == "readingSpeed"
    assert "finite number" in excinfo.value.message


def test_huge_nested_integer_is_a_field_error():
    with pytest.raises(ValidationError) as excinfo:
        validate_interaction(make_sample(responseTime={"mean": 10**400}))

    assert excinfo.value.field == "responseTime.mean"
