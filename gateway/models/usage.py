from datetime import datetime

from pydantic import BaseModel


class UsageStats(BaseModel):
    api_key_name: str
    total_requests: int
    requests_today: int
    requests_this_month: int
    last_used: datetime | None = None


class DailyUsage(BaseModel):
    date: str
    requests: int


class MonthlyReport(BaseModel):
    api_key_name: str
    month: str
    year: int
    total_requests: int
    daily_breakdown: list[DailyUsage]
