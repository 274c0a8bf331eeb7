from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, Union


class Envelope(BaseModel):
    """One WebSocket frame sent by a client."""
    event: str = Field(..., min_length=1)
    data: Any = None
    ack: Optional[Union[int, str]] = None


class CreateRoomData(BaseModel):
    roomId: Any = None
    name: Optional[str] = Field(None, max_length=100)


class SignalingMessage(BaseModel):
    target: str = Field(..., min_length=1)

    @staticmethod
    def _require(value: Any) -> Any:
        if value is None or value == "" or value == {} or value == []:
            raise ValueError("payload is empty")
        return value


class OfferMessage(SignalingMessage):
    offer: Any

    @field_validator("offer")
    @classmethod
    def offer_present(cls, v):
        return cls._require(v)


class AnswerMessage(SignalingMessage):
    answer: Any

    @field_validator("answer")
    @classmethod
    def answer_present(cls, v):
        return cls._require(v)


class IceCandidateMessage(SignalingMessage):
    candidate: Any

    @field_validator("candidate")
    @classmethod
    def candidate_present(cls, v):
        return cls._require(v)
