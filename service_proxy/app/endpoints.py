"""
Upstream endpoint registry for the weather proxy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class ResponseKind(str, Enum):
    """Shape of the raw payload an endpoint produces."""
    JSON_OBJECT = "json_object"
    JSON_FEED = "json_feed"
    DELIMITED_TEXT = "delimited_text"
    IMAGERY = "imagery"


@dataclass(frozen=True)
class EndpointDescriptor:
    """Static description of one upstream data source."""

    identifier: str
    url: str
    kind: ResponseKind
    forwarded_params: Tuple[str, ...] = ()
    required_params: Tuple[str, ...] = ()
    secret: Optional[str] = None

    @property
    def calls_upstream(self) -> bool:
        return self.kind is not ResponseKind.IMAGERY


ENDPOINTS: Dict[str, EndpointDescriptor] = {
    descriptor.identifier: descriptor
    for descriptor in (
        EndpointDescriptor(
            "nhc-storms",
            "https://www.nhc.noaa.gov/CurrentStorms.json",
            ResponseKind.JSON_OBJECT,
        ),
        EndpointDescriptor(
            "nhc-sample",
            "https://www.nhc.noaa.gov/productexamples/NHC_JSON_Sample.json",
            ResponseKind.JSON_OBJECT,
        ),
        EndpointDescriptor(
            "nws-alerts",
            "https://api.weather.gov/alerts/active",
            ResponseKind.JSON_FEED,
            forwarded_params=("area",),
        ),
        EndpointDescriptor(
            "hurdat2",
            "https://www.aoml.noaa.gov/hrd/hurdat/hurdat2.txt",
            ResponseKind.DELIMITED_TEXT,
        ),
        EndpointDescriptor(
            "weatherapi",
            "https://api.weatherapi.com/v1/current.json",
            ResponseKind.JSON_OBJECT,
            forwarded_params=("q",),
            required_params=("q",),
            secret="weatherapi_key",
        ),
        EndpointDescriptor(
            "goes-satellite",
            "https://cdn.star.nesdis.noaa.gov/GOES16/ABI/CONUS/GEOCOLOR",
            ResponseKind.IMAGERY,
        ),
        EndpointDescriptor(
            "nexrad-radar",
            "https://mapservices.weather.noaa.gov/eventdriven/rest/services/radar/radar_base_reflectivity_time/ImageServer",
            ResponseKind.IMAGERY,
        ),
        EndpointDescriptor(
            "wind-data",
            "https://earth.nullschool.net/api/v1/winds/current",
            ResponseKind.IMAGERY,
        ),
        EndpointDescriptor(
            "pressure-data",
            "https://earth.nullschool.net/api/v1/pressure/current",
            ResponseKind.IMAGERY,
        ),
        EndpointDescriptor(
            "sea-temp-data",
            "https://coastwatch.pfeg.noaa.gov/erddap/griddap/jplMURSST41.png",
            ResponseKind.IMAGERY,
        ),
    )
}

ALLOWED_PARAMS = ("q", "area", "year", "bounds", "zoom", "timestamp")


def get_endpoint(identifier: str) -> Optional[EndpointDescriptor]:
    """Look up an endpoint descriptor by its proxy identifier."""
    return ENDPOINTS.get(identifier)
