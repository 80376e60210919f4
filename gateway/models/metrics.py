from pydantic import BaseModel


class EndpointUsage(BaseModel):
    endpoint: str
    count: int


class StatusDistribution(BaseModel):
    success_2xx: int = 0
    client_error_4xx: int = 0
    server_error_5xx: int = 0


class PoolStats(BaseModel):
    size: int
    num_idle: int


class SystemMetrics(BaseModel):
    total_requests: int
    total_api_keys: int
    active_api_keys: int
    avg_response_time_ms: float | None = None
    requests_last_hour: int
    requests_last_24h: int
    top_endpoints: list[EndpointUsage]
    status_distribution: StatusDistribution
    database_pool_stats: PoolStats


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    database: str
    database_pool_stats: PoolStats
