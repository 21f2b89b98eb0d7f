import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL, wiec tu jest get + porownanie + del wszystko naraz

REAPER_LOCK_KEY = "orders:reaper:lock"


class LockService:
    """
    -lock na sweep wygaslych zamowien (jeden worker na raz)
    -zwalnianie locka tylko przez wlasciciela
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key} for {owner}")
        #SET orders:reaper:lock "<owner>" NX EX 55
        return bool(
            self.redis.set(
                name=key,
                value=owner,
                nx=True, #not eXists, jesli klucz jest to nic nie rob i False
                ex=ttl, #wygasa sam, nawet jak worker padnie
            )
        )

    @redis_retry()
    def release(self, key: str, owner: str) -> bool:
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)
