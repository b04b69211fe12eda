"""
Thin client for the Flutterwave v3 REST API: escrow release and bank transfers.
Checkout itself happens in the browser (inline modal), see routers/payments.py.
"""
import requests
from typing import Optional
from hireveno.config import get_settings
from hireveno.logger import logger

class FlutterwaveError(Exception):
    """Raised for network failures, non-2xx answers and answers whose status is not "success"."""
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}

class FlutterwaveClient:
    def __init__(self, secret_key: str, base_url: str, currency: str = "NGN", timeout: int = 30):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.currency = currency
        self.timeout = timeout

    def _post(self, path: str, body: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(url, json=body or {}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Flutterwave request to {path} failed: {str(e)}")
            raise FlutterwaveError(f"Could not reach Flutterwave: {str(e)}")

        try:
            data = response.json()
        except ValueError:
            raise FlutterwaveError(f"Flutterwave returned a non-JSON response ({response.status_code})",
                                   status_code=response.status_code)

        if response.status_code >= 400 or data.get("status") != "success":
            message = data.get("message") or f"Flutterwave call {path} failed"
            logger.error(f"Flutterwave {path} returned {response.status_code}: {message}")
            raise FlutterwaveError(message, status_code=response.status_code, payload=data)

        return data

    def settle_escrow(self, reference: str) -> dict:
        """Release the funds held in escrow for a charge."""
        return self._post(f"/transactions/{reference}/escrow/settle")

    def create_transfer(self, account_bank: str, account_number: str, amount: float, reference: str,
                        beneficiary_name: str, narration: str) -> dict:
        """
        Pay out to a bank account.

        Args:
            amount (float): Amount in major units (naira)
        """
        return self._post("/transfers", {
            "account_bank": account_bank,
            "account_number": account_number,
            "amount": amount,
            "currency": self.currency,
            "reference": reference,
            "beneficiary_name": beneficiary_name,
            "narration": narration,
        })

def get_payment_gateway() -> FlutterwaveClient:
    """Dependency providing the gateway client. Tests override it with a fake."""
    settings = get_settings()
    return FlutterwaveClient(
        secret_key=settings.flutterwave_secret_key,
        base_url=settings.flutterwave_base_url,
        currency=settings.currency,
        timeout=settings.flutterwave_timeout_seconds,
    )
