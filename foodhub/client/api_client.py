"""
HTTP client for the FoodHub API
Transient failures are retried with exponential backoff; tracking code collisions get a fresh code
unless the collision is with our own order whose first response was lost
"""

import logging
import time
from typing import Callable, List, Optional

import httpx

from foodhub.client.session import CustomerSession, generate_tracking_code

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 1.0
RETRYABLE_STATUS = {502, 503, 504}


class FoodHubClientError(Exception):
    """Failure reported by the API (or the transport) with its error code"""

    def __init__(self, status_code: Optional[int], code: str, message: str, retryable: bool = False):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.retryable = retryable
        # server-side order state read back after a failed write, when available
        self.current_order: Optional[dict] = None
        super().__init__(f"{code}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "FoodHubClientError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return cls(
                response.status_code,
                error.get("code", f"HTTP_{response.status_code}"),
                error.get("message", response.text),
                bool(error.get("retryable", response.status_code in RETRYABLE_STATUS)),
            )
        detail = body.get("detail") if isinstance(body, dict) else None
        return cls(
            response.status_code,
            f"HTTP_{response.status_code}",
            str(detail or response.text),
            response.status_code in RETRYABLE_STATUS,
        )


class FoodHubClient:
    """Synchronous client used by kiosks, scripts and tests"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.http = httpx.Client(base_url=base_url, transport=transport, timeout=timeout)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep
        self.token: Optional[str] = None

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _backoff(self, attempt: int) -> None:
        delay = self.backoff_base * (2 ** attempt)
        logger.warning(f"Transient failure, retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})")
        self._sleep(delay)

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send once; transport failures become retryable client errors"""
        try:
            return self.http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise FoodHubClientError(None, "TRANSPORT_ERROR", str(e), retryable=True) from e

    def _request(
        self,
        method: str,
        path: str,
        expected: int = 200,
        on_retry: Optional[Callable[[FoodHubClientError], None]] = None,
        **kwargs
    ):
        attempt = 0
        while True:
            try:
                response = self._send(method, path, **kwargs)
                if response.status_code == expected:
                    return response.json()
                error = FoodHubClientError.from_response(response)
            except FoodHubClientError as e:
                error = e

            if not error.retryable or error.code == "DUPLICATE_TRACKING_ID" or attempt >= self.max_retries:
                raise error
            if on_retry is not None:
                on_retry(error)
            self._backoff(attempt)
            attempt += 1

    def _admin_headers(self) -> dict:
        if not self.token:
            raise FoodHubClientError(None, "NOT_AUTHENTICATED", "Call login() first")
        return {"Authorization": f"Bearer {self.token}"}

    def get_menu(self, category: Optional[str] = None) -> List[dict]:
        params = {"category": category} if category else None
        return self._request("GET", "/api/v1/menu/", params=params)

    def place_order(self, session: CustomerSession, customer_note: Optional[str] = None) -> dict:
        """
        Submit the session's cart as an order.

        A tracking code collision is retried with a new code, transient
        failures with exponential backoff; both share the retry ceiling.
        A collision that follows a transient retry may be our own earlier
        attempt, committed before its response was lost. The code is looked
        up under this session first and only regenerated when the order
        belongs to someone else. The cart is cleared only once the order exists.
        """
        tracking_code = generate_tracking_code()
        retried = []
        attempt = 0
        while True:
            payload = session.to_order_payload(tracking_code, customer_note)
            try:
                order = self._request(
                    "POST", "/api/v1/orders/", expected=201, on_retry=retried.append, json=payload
                )
                break
            except FoodHubClientError as error:
                if error.code != "DUPLICATE_TRACKING_ID":
                    raise
                if retried:
                    order = self._find_own_order(session, tracking_code)
                    if order is not None:
                        logger.warning(f"Order {tracking_code} was created by an earlier attempt; not resubmitting")
                        break
                if attempt >= self.max_retries:
                    raise
                logger.warning(f"Tracking code {tracking_code} already taken; generating a new one")
                tracking_code = generate_tracking_code()
                retried.clear()
                attempt += 1

        session.cart.clear()
        session.placed_orders.append(order["tracking_code"])
        logger.info(f"Placed order {order['tracking_code']} for session {session.session_id}")
        return order

    def track_order(self, session: CustomerSession, tracking_code: str) -> dict:
        return self._request("GET", f"/api/v1/orders/track/{tracking_code}", headers=session.headers)

    def _find_own_order(self, session: CustomerSession, tracking_code: str) -> Optional[dict]:
        try:
            return self.track_order(session, tracking_code)
        except FoodHubClientError as error:
            if error.code == "NOT_FOUND":
                return None
            raise

    def get_order(self, order_id: int, session: Optional[CustomerSession] = None) -> dict:
        """Read an order as its customer session, or as the logged-in admin"""
        headers = session.headers if session is not None else self._admin_headers()
        return self._request("GET", f"/api/v1/orders/{order_id}", headers=headers)

    def submit_payment(
        self,
        session: CustomerSession,
        order_id: int,
        amount,
        reference: str,
        payment_method: str = "bank_transfer",
    ) -> dict:
        """Attach a payment reference to one of the session's orders; never retried on conflict"""
        body = {"amount": str(amount), "reference": reference, "payment_method": payment_method}
        return self._request(
            "POST", f"/api/v1/orders/{order_id}/payments", expected=201, json=body, headers=session.headers
        )

    def login(self, username: str, password: str) -> dict:
        result = self._request("POST", "/api/v1/auth/login", json={"username": username, "password": password})
        self.token = result["access_token"]
        return result

    def list_orders(self, active_only: bool = False, page: int = 1, page_size: int = 20) -> dict:
        params = {"active_only": str(active_only).lower(), "page": page, "page_size": page_size}
        return self._request("GET", "/api/v1/orders/", params=params, headers=self._admin_headers())

    def transition_status(self, order_id: int, status: str, note: Optional[str] = None) -> dict:
        """
        Move an order along the pipeline.

        On failure the order is re-read and attached to the raised error as
        current_order, so callers refresh their view instead of trusting a
        stale local copy.
        """
        headers = self._admin_headers()
        body = {"status": status}
        if note:
            body["note"] = note
        try:
            return self._request("POST", f"/api/v1/orders/{order_id}/status", json=body, headers=headers)
        except FoodHubClientError as error:
            try:
                error.current_order = self.get_order(order_id)
            except FoodHubClientError as refetch_error:
                logger.warning(f"Could not re-read order {order_id} after failed transition: {refetch_error}")
            raise
