"""
Shared collaborators, built once by Application.run():

    curl   httpx        always
    jwt    PyJWT        always
    redis  redis-py     RedisConfig.enable
    orm    SQLAlchemy   OrmConfig.enable
"""

from .curl import Curl, CurlResult
from .jwt import Jwt
from .orm import Base, Orm
from .redis import RedisClient, RedisResult

__all__ = ["Base", "Curl", "CurlResult", "Jwt", "Orm", "RedisClient", "RedisResult"]
