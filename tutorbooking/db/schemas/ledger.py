from pydantic import BaseModel


class TutorBalanceReset(BaseModel):
    tutor_id: int
    updated_students: int
