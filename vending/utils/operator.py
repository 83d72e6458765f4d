import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


def _operator_settings():
    return (
        getattr(settings, "VENDING_OPERATOR_ENABLED", False),
        getattr(settings, "VENDING_OPERATOR_BASE_URL", "http://localhost:8010"),
        getattr(settings, "VENDING_OPERATOR_TIMEOUT", 10),
    )


def request_operator_topup(phone_number: str, amount, operator: str) -> dict:
    """
    Ask a mobile-money operator to collect `amount` from `phone_number`.

    Handles both HTTP errors (non-200 answers from the operator) and network
    failures (connection errors, timeouts). Returns a structured result dict
    for consistent downstream handling.

    When VENDING_OPERATOR_ENABLED is off, no request is sent and the top-up
    is accepted as simulated.

    Returns:
        dict with keys:
            - success (bool): Whether the operator accepted the top-up.
            - response (dict): The raw response data or error details.
    """
    enabled, base_url, timeout = _operator_settings()

    if not enabled:
        logger.info(
            "Operator top-up simulated: operator=%s phone=%s amount=%s",
            operator,
            phone_number,
            amount,
        )
        return {"success": True, "response": {"simulated": True, "status": 200}}

    try:
        response = requests.post(
            f"{base_url}/topups",
            json={
                "operator": operator,
                "phone_number": phone_number,
                "amount": str(amount),
            },
            timeout=timeout,
        )

        response_data = response.json()

        # The operator reports its own status in the JSON body
        if response.ok and response_data.get("status") == 200:
            logger.info(
                "Operator top-up accepted: operator=%s phone=%s amount=%s",
                operator,
                phone_number,
                amount,
            )
            return {"success": True, "response": response_data}

        logger.warning(
            "Operator top-up refused: operator=%s phone=%s amount=%s response=%s",
            operator,
            phone_number,
            amount,
            response_data,
        )
        return {"success": False, "response": response_data}

    except requests.exceptions.ConnectionError as exc:
        logger.error(
            "Operator connection error: operator=%s amount=%s error=%s",
            operator,
            amount,
            str(exc),
        )
        return {
            "success": False,
            "response": {"error": "connection_error", "detail": str(exc)},
        }

    except requests.exceptions.Timeout as exc:
        logger.error(
            "Operator timeout: operator=%s amount=%s error=%s",
            operator,
            amount,
            str(exc),
        )
        return {
            "success": False,
            "response": {"error": "timeout", "detail": str(exc)},
        }

    except requests.exceptions.RequestException as exc:
        logger.error(
            "Operator request error: operator=%s amount=%s error=%s",
            operator,
            amount,
            str(exc),
        )
        return {
            "success": False,
            "response": {"error": "request_error", "detail": str(exc)},
        }

    except ValueError as exc:
        logger.error(
            "Operator returned a non-JSON body: operator=%s amount=%s error=%s",
            operator,
            amount,
            str(exc),
        )
        return {
            "success": False,
            "response": {"error": "invalid_response", "detail": str(exc)},
        }
