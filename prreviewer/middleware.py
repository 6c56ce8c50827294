"""Логирование HTTP-запросов"""

import time
import uuid

from prreviewer.logging import get_logger, set_correlation_id

logger = get_logger(__name__)


class RequestLoggingMiddleware:
    """Пишет в лог метод, путь, статус и длительность каждого запроса.

    correlation id берется из заголовка ``X-Correlation-ID``, если клиент его
    прислал, иначе генерируется uuid4. Возвращается в заголовке ответа.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        start = time.perf_counter()
        try:
            response = self.get_response(request)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            set_correlation_id(None)

        logger.info(
            "http_request",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            correlation_id=correlation_id,
        )
        response["X-Correlation-ID"] = correlation_id
        return response
