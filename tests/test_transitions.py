"""
Tests for the route status state machine.
"""

from itertools import product

import pytest

from logistics_api.exceptions.route import InvalidStatusTransitionException
from logistics_api.models.enums import RouteStatus, can_transition
from logistics_api.service.route_validator import RouteValidator

ALLOWED = {
    (RouteStatus.PLANNED, RouteStatus.IN_PROGRESS),
    (RouteStatus.PLANNED, RouteStatus.CANCELLED),
    (RouteStatus.IN_PROGRESS, RouteStatus.PAUSED),
    (RouteStatus.IN_PROGRESS, RouteStatus.COMPLETED),
    (RouteStatus.IN_PROGRESS, RouteStatus.CANCELLED),
    (RouteStatus.PAUSED, RouteStatus.IN_PROGRESS),
    (RouteStatus.PAUSED, RouteStatus.CANCELLED),
}

ALL_PAIRS = list(product(RouteStatus, RouteStatus))


@pytest.fixture
def validator(route_repository, driver_repository, vehicle_repository) -> RouteValidator:
    return RouteValidator(route_repository, driver_repository, vehicle_repository)


def test_all_pairs_are_covered():
    assert len(ALL_PAIRS) == 25


@pytest.mark.parametrize("current,new", ALL_PAIRS)
def test_can_transition(current, new):
    assert can_transition(current, new) is ((current, new) in ALLOWED)


@pytest.mark.parametrize("current,new", ALL_PAIRS)
def test_validate_status_transition(validator, current, new):
    if (current, new) in ALLOWED:
        validator.validate_status_transition(current, new)
    else:
        with pytest.raises(InvalidStatusTransitionException) as exc_info:
            validator.validate_status_transition(current, new)
        assert exc_info.value.current_status == current.value
        assert exc_info.value.new_status == new.value


@pytest.mark.parametrize("final", [RouteStatus.COMPLETED, RouteStatus.CANCELLED])
def test_final_statuses_have_no_exit(final):
    assert not any(can_transition(final, new) for new in RouteStatus)
