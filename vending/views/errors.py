from rest_framework.response import Response


def error_response(exc):
    """Render a VendingError as {"error", "code"} with the error's HTTP status."""
    return Response(
        {"error": exc.message, "code": exc.code},
        status=exc.status_code,
    )
