"""TCS courier adapter: books and tracks COD consignments over the TCS API.

Configuration comes from the environment (see ``TCSCourier.from_env``).
The base URL defaults to the TCS sandbox.
"""

import os

import requests
import structlog

from checkout.courier.port import BookingResult, CourierProvider, TrackingResult
from checkout.courier.shipment import consignee_name, parcel_weight, product_details
from checkout.errors import CourierBookingError, CourierError
from checkout.order.order import CourierStatus

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.tcscourier.com/sandbox/v1/cod"

HOME_CITY_ALIASES = ("lahore", "lhr", "لاہور")

# Days to deliver from the home city; anything unlisted takes the default
CITY_DELIVERY_DAYS = {
    "karachi": 2,
    "islamabad": 2,
    "rawalpindi": 2,
    "faisalabad": 2,
    "multan": 3,
    "peshawar": 4,
    "quetta": 5,
}
HOME_CITY_DELIVERY_DAYS = 1
DEFAULT_DELIVERY_DAYS = 5

# TCS tracking wording -> courier status
_TRACKING_STATUS_MAP = {
    "booked": CourierStatus.CREATED,
    "picked up": CourierStatus.PICKED_UP,
    "arrived at origin": CourierStatus.PICKED_UP,
    "in transit": CourierStatus.IN_TRANSIT,
    "departed": CourierStatus.IN_TRANSIT,
    "arrived at destination": CourierStatus.IN_TRANSIT,
    "out for delivery": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "returned": CourierStatus.FAILED,
    "undelivered": CourierStatus.FAILED,
    "cancelled": CourierStatus.CANCELLED,
}


def is_outside_home_city(city: str) -> bool:
    city = (city or "").lower()
    return not any(alias in city for alias in HOME_CITY_ALIASES)


def delivery_days(city: str) -> int:
    if not is_outside_home_city(city):
        return HOME_CITY_DELIVERY_DAYS
    city = (city or "").lower()
    for name, days in CITY_DELIVERY_DAYS.items():
        if name in city:
            return days
    return DEFAULT_DELIVERY_DAYS


def map_tracking_status(text: str | None) -> str:
    text = (text or "").lower()
    # "undelivered" contains "delivered"; check longer phrases first
    for phrase in sorted(_TRACKING_STATUS_MAP, key=len, reverse=True):
        if phrase in text:
            return _TRACKING_STATUS_MAP[phrase].value
    return CourierStatus.CREATED.value


class TCSCourier(CourierProvider):
    name = "tcs"

    def __init__(
        self,
        client_id: str,
        username: str,
        password: str,
        cost_center_code: str,
        base_url: str = DEFAULT_BASE_URL,
        origin_city: str = "Lahore",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.username = username
        self.password = password
        self.cost_center_code = cost_center_code
        self.base_url = base_url.rstrip("/")
        self.origin_city = origin_city
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "TCSCourier":
        return cls(
            client_id=os.environ.get("TCS_CLIENT_ID", ""),
            username=os.environ.get("TCS_USERNAME", ""),
            password=os.environ.get("TCS_PASSWORD", ""),
            cost_center_code=os.environ.get("TCS_COST_CENTER_CODE", ""),
            base_url=os.environ.get("TCS_API_BASE_URL", DEFAULT_BASE_URL),
            origin_city=os.environ.get("TCS_ORIGIN_CITY", "Lahore"),
            timeout=float(os.environ.get("TCS_TIMEOUT_SECONDS", "15")),
        )

    # -------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------
    def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        url = f"{self.base_url}{endpoint}"
        headers = {"X-IBM-Client-Id": self.client_id, "Content-Type": "application/json"}
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.error("TCS API request failed", method=method, endpoint=endpoint, error=str(exc))
            raise CourierError(f"TCS API error: {exc}") from exc
        except ValueError as exc:
            raise CourierError("TCS API returned a non-JSON response") from exc

    # -------------------------------------------------------------------
    # Provider capabilities
    # -------------------------------------------------------------------
    def map_from_order(self, order) -> dict:
        address = order.shipping_address
        return {
            "userName": self.username,
            "password": self.password,
            "costCenterCode": self.cost_center_code,
            "consigneeName": consignee_name(address),
            "consigneeAddress": address.address,
            "consigneeMobNo": address.phone or (order.contact.phone if order.contact else ""),
            "consigneeEmail": order.contact.email if order.contact else "",
            "originCityName": self.origin_city,
            "destinationCityName": address.city,
            "weight": parcel_weight(order),
            "pieces": len(order.items or []),
            "codAmount": str(order.total),
            "customerReferenceNo": order.ref_number,
            "services": "O",
            "productDetails": product_details(order),
            "fragile": "No",
            "remarks": f"Order #{order.order_number}",
            "insuranceValue": 0,
        }

    def create(self, payload: dict) -> BookingResult:
        try:
            data = self._request("POST", "/create-order", json=payload)
        except CourierError as exc:
            raise CourierBookingError(exc.message) from exc
        tracking = data.get("CN")
        if not tracking:
            message = (data.get("returnStatus") or {}).get("message", "No consignment number returned")
            raise CourierBookingError(f"TCS booking rejected: {message}", details=data)
        logger.info("TCS consignment booked", consignment_number=tracking, reference=payload.get("customerReferenceNo"))
        return BookingResult(tracking=tracking, raw=data)

    def track(self, tracking: str) -> TrackingResult:
        data = self._request(
            "GET",
            "/track-order",
            params={"userName": self.username, "password": self.password, "referenceNo": tracking},
        )
        details = data.get("cnDetail") or []
        if not details:
            return TrackingResult(status=CourierStatus.CREATED.value, raw=data)
        latest = details[-1]
        wording = latest.get("status") or latest.get("remarks")
        return TrackingResult(
            status=map_tracking_status(wording),
            location=latest.get("destination"),
            description=wording,
            raw=data,
        )

    def cancel(self, tracking: str) -> bool:
        data = self._request(
            "PUT",
            "/cancel-order",
            json={"userName": self.username, "password": self.password, "consignmentNumber": tracking},
        )
        status = (data.get("returnStatus") or {}).get("status", "")
        return status.lower() in ("success", "ok", "200")

    def estimate_days(self, city: str) -> int:
        return delivery_days(city)

    def is_outside_city(self, city: str) -> bool:
        return is_outside_home_city(city)
