from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
import requests
import redis

from app.utils.settings import HTTP_RETRY_ATTEMPTS, REDIS_RETRY_ATTEMPTS


#tylko dla operacji idempotentnych (GET, cancel), nigdy dla tworzenia linku platnosci
#SDK PayOS zamienia odpowiedzi != 200 na zwykly Exception - ponawiamy tylko bledy sieci
def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(HTTP_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(REDIS_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
    )
