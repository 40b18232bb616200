"""
Distance, duration and cost estimation for routes.

Coordinates travel through the system as ``"POINT(lat lng)"`` strings. Distances
use the Haversine great-circle formula; durations and costs are derived from the
characteristics of the route type.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from logistics_api.models.enums import RouteType
from logistics_api.utils.coordinates import (
    format_coordinates,
    parse_coordinates,
    validate_coordinates,
)

logger = structlog.get_logger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class RouteTypeCharacteristics:
    avg_speed_kmh: float
    delay_factor: float
    cost_per_km: float
    avg_stop_minutes: int
    km_per_liter: float


# Delay factors multiply the raw travel time.
ROUTE_TYPE_CHARACTERISTICS: dict[RouteType, RouteTypeCharacteristics] = {
    RouteType.URBAN: RouteTypeCharacteristics(40, 1.3, 2.5, 15, 8),
    RouteType.INTERSTATE: RouteTypeCharacteristics(90, 1.1, 1.8, 10, 12),
    RouteType.RURAL: RouteTypeCharacteristics(60, 1.4, 2.2, 20, 9),
    RouteType.EXPRESS: RouteTypeCharacteristics(100, 1.0, 3.0, 8, 14),
    RouteType.LOCAL: RouteTypeCharacteristics(30, 1.2, 2.8, 12, 7),
}


@dataclass(frozen=True)
class RouteMetrics:
    distance_km: float
    duration_minutes: int
    estimated_cost: float
    fuel_consumption_liters: float
    fuel_cost: float


def get_route_type_characteristics(route_type: RouteType) -> RouteTypeCharacteristics:
    return ROUTE_TYPE_CHARACTERISTICS[RouteType(route_type)]


class DistanceCalculator:
    """
    Haversine based distance and duration estimator.

    Malformed coordinates never raise from the ``calculate_*`` methods: they
    are logged and counted as a zero distance so that route planning is not
    blocked by bad geodata.
    """

    def __init__(self, fuel_price_per_liter: float = 5.5) -> None:
        self.fuel_price_per_liter = fuel_price_per_liter

    parse_coordinates = staticmethod(parse_coordinates)
    validate_coordinates = staticmethod(validate_coordinates)
    format_coordinates = staticmethod(format_coordinates)

    def calculate_distance(self, point_a: str, point_b: str) -> float:
        """
        Great-circle distance between two points in kilometers, rounded to 2 decimals.

        Returns 0.0 (and logs a warning) when either point cannot be parsed.
        """
        try:
            lat1, lng1 = self.parse_coordinates(point_a)
            lat2, lng2 = self.parse_coordinates(point_b)
        except ValueError as e:
            logger.warning(
                "Could not parse coordinates, distance defaults to zero",
                point_a=point_a,
                point_b=point_b,
                error=str(e),
            )
            return 0.0

        phi1, phi2 = math.radians(lat1), math.radians(lat2)
        d_phi = math.radians(lat2 - lat1)
        d_lambda = math.radians(lng2 - lng1)
        a = (
            math.sin(d_phi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return round(EARTH_RADIUS_KM * c, 2)

    def calculate_leg_distances(self, points: Iterable[str]) -> list[float]:
        """Distance of each consecutive pair of points."""
        points = list(points)
        return [
            self.calculate_distance(points[i], points[i + 1])
            for i in range(len(points) - 1)
        ]

    def calculate_total_distance(self, points: Iterable[str]) -> float:
        points = list(points)
        if len(points) < 2:
            return 0.0
        return round(sum(self.calculate_leg_distances(points)), 2)

    @staticmethod
    def calculate_estimated_duration(
        distance_km: float, avg_speed_kmh: float = 50, delay_factor: float = 1.2
    ) -> int:
        """
        Travel time in whole minutes: ``ceil(distance / speed * 60 * delay_factor)``.

        Non-positive distance or speed yields 0.
        """
        if not distance_km or distance_km <= 0 or not avg_speed_kmh or avg_speed_kmh <= 0:
            return 0
        minutes = distance_km / avg_speed_kmh * 60 * delay_factor
        # strip float noise so that e.g. 144.00000000000003 stays 144
        return math.ceil(round(minutes, 6))

    @staticmethod
    def calculate_fuel_consumption(distance_km: float, km_per_liter: float = 10) -> float:
        if not distance_km or distance_km <= 0 or not km_per_liter or km_per_liter <= 0:
            return 0.0
        return round(distance_km / km_per_liter, 2)

    def calculate_fuel_cost(
        self,
        distance_km: float,
        km_per_liter: float = 10,
        price_per_liter: Optional[float] = None,
    ) -> float:
        price = self.fuel_price_per_liter if price_per_liter is None else price_per_liter
        return round(self.calculate_fuel_consumption(distance_km, km_per_liter) * price, 2)

    def calculate_metrics_by_type(
        self, distance_km: float, route_type: RouteType, stop_count: int = 0
    ) -> RouteMetrics:
        """
        Estimate duration, cost and fuel for a distance travelled on a route type.

        Args:
            distance_km: Distance to travel
            route_type: Route type whose characteristics apply
            stop_count: Number of stops, each adding the type's average stop time

        Returns:
            RouteMetrics for the given distance
        """
        characteristics = get_route_type_characteristics(route_type)
        duration = self.calculate_estimated_duration(
            distance_km, characteristics.avg_speed_kmh, characteristics.delay_factor
        )
        if duration and stop_count > 0:
            duration += stop_count * characteristics.avg_stop_minutes
        distance = max(distance_km or 0.0, 0.0)
        return RouteMetrics(
            distance_km=round(distance, 2),
            duration_minutes=duration,
            estimated_cost=round(distance * characteristics.cost_per_km, 2),
            fuel_consumption_liters=self.calculate_fuel_consumption(
                distance, characteristics.km_per_liter
            ),
            fuel_cost=self.calculate_fuel_cost(distance, characteristics.km_per_liter),
        )
