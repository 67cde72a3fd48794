"""Tests for wire frame validation."""

import pytest
from pydantic import ValidationError

from schemas.messages import GestureEvent, GestureMessage


@pytest.mark.parametrize("confidence", [float("nan"), float("inf"), float("-inf")])
def test_confidence_must_be_finite(confidence) -> None:
    with pytest.raises(ValidationError):
        GestureMessage.model_validate({"gesture": "Merci", "confidence": confidence})
    with pytest.raises(ValidationError):
        GestureEvent(username="Ana", gesture="Merci", confidence=confidence)


@pytest.mark.parametrize("confidence", [88, 87.5, 0])
def test_confidence_accepts_numbers(confidence) -> None:
    gesture = GestureMessage.model_validate({"gesture": "Merci", "confidence": confidence})

    assert gesture.confidence == confidence
    assert type(gesture.confidence) is type(confidence)
