from pydantic import BaseModel


class DashboardStats(BaseModel):
    users: int
    farms: int
    konsultan: int
    mitra: int
    open_tenders: int
    approved_tenders: int
