from pydantic import BaseModel
from typing import List


class MarkReadRequest(BaseModel):
    ids: List[int] = []
    all: bool = False
