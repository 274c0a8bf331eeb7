from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ActiveRoom(BaseModel):
    id: str
    name: Optional[str] = None
    userCount: int
    createdAt: datetime

class ActiveRoomsResponse(BaseModel):
    rooms: list[ActiveRoom]

class HealthResponse(BaseModel):
    status: str
    activeConnections: int
    activeRooms: int
    uptime: float
    timestamp: datetime
